"""
Part of mcdecrypter

Recovers the method bodies of a MaxtoCode protected .NET assembly. The packer replaces every method
body with a 0xFFF3 marker and keeps the real body encrypted in its own method table. The recovered
methods are returned by MethodDef token, ready to be written back into the metadata.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .constants import (PACKED_METHOD_MAGIC, METHODDEF_TOKEN_BASE, METHODDEF_FIELD_RVA, METHODDEF_FIELD_IMPL_FLAGS,
                        METHODDEF_FIELD_FLAGS, METHODDEF_FIELD_NAME, METHODDEF_FIELD_SIGNATURE,
                        METHODDEF_FIELD_PARAM_LIST, FORMAT_MASK, TINY_FORMAT)
from .headers import PeHeader, McHeader
from .image import PeImage
from .logger import get_logger
from .method_body import read_method_body, build_method_body
from .method_infos import MethodInfos


@dataclass
class DumpedMethod:
    token: int
    md_impl_flags: int
    md_flags: int
    md_name: bytes
    md_signature: bytes
    md_param_list: bytes
    mh_flags: int
    mh_max_stack: int
    mh_code_size: int
    mh_local_var_sig_tok: int
    code: bytes
    extra_sections: Optional[bytes] = None

    @property
    def header_size(self) -> int:
        if (self.mh_flags & FORMAT_MASK) == TINY_FORMAT:
            return 1
        return (self.mh_flags >> 12) * 4

    def get_method_body(self) -> bytes:
        return build_method_body(self.mh_flags, self.mh_max_stack, self.mh_local_var_sig_tok, self.code,
                                 self.extra_sections)


class FileDecrypter(object):
    def __init__(self, image, log_level: int = logging.INFO):
        if not hasattr(image, 'rva_to_offset'):
            image = PeImage(image, log_level=log_level)

        self.image = image
        self.log_level = log_level
        self.logger = get_logger('decrypter', level=log_level)

    def _read_field(self, method_def, row_offset: int, field_index: int) -> bytes:
        return self.image.read_bytes(row_offset + method_def.field_offset(field_index), method_def.field_size(field_index))

    def decrypt(self) -> Dict[int, DumpedMethod]:
        image = self.image
        pe_header = PeHeader(image)
        mc_header = McHeader(image, pe_header)
        method_infos = MethodInfos(image, pe_header, mc_header, log_level=self.log_level)
        method_infos.initialize_infos()

        dumped_methods = {}

        method_def = image.method_def_table
        for i in range(method_def.rows):
            method_def_offset = method_def.row_file_offset(i)
            body_rva = image.read_uint32(method_def_offset + method_def.field_offset(METHODDEF_FIELD_RVA))
            if body_rva == 0:
                continue

            info = method_infos.lookup(body_rva)
            if info is None:
                self.logger.debug(f'MethodDef row {i + 1}: body RVA 0x{body_rva:x} is not encrypted')
                continue

            magic = image.read_uint16(image.rva_to_offset(body_rva))
            if magic != PACKED_METHOD_MAGIC:
                self.logger.debug(f'MethodDef row {i + 1}: unexpected method body magic 0x{magic:04x}')
                continue

            method_body = read_method_body(info.body)

            dumped_method = DumpedMethod(
                token=METHODDEF_TOKEN_BASE + i,
                md_impl_flags=image.read_uint16(method_def_offset + method_def.field_offset(METHODDEF_FIELD_IMPL_FLAGS)),
                md_flags=image.read_uint16(method_def_offset + method_def.field_offset(METHODDEF_FIELD_FLAGS)),
                md_name=self._read_field(method_def, method_def_offset, METHODDEF_FIELD_NAME),
                md_signature=self._read_field(method_def, method_def_offset, METHODDEF_FIELD_SIGNATURE),
                md_param_list=self._read_field(method_def, method_def_offset, METHODDEF_FIELD_PARAM_LIST),
                mh_flags=method_body.flags,
                mh_max_stack=method_body.max_stack,
                mh_code_size=method_body.code_size,
                mh_local_var_sig_tok=method_body.local_var_sig_tok,
                code=method_body.code,
                extra_sections=method_body.extra_sections)

            dumped_methods[dumped_method.token] = dumped_method

        self.logger.info(f'recovered {len(dumped_methods)} of {method_def.rows} methods')

        return dumped_methods


def decrypt(image, log_level: int = logging.INFO) -> Dict[int, DumpedMethod]:
    """
    Recover all encrypted method bodies of an image.

    :param image: PeImage, or a path or the bytes of the file
    :param log_level: logging level of the decrypter
    :return: recovered methods by MethodDef token
    """
    return FileDecrypter(image, log_level=log_level).decrypt()
