"""
Part of mcdecrypter

MaxtoCode keeps one fixed size record per protected method. A record holds the method body RVA, the
total body size and the instruction RVA, followed by 3 or 6 fragment descriptors. All record fields
are XOR encrypted with the number of methods, the fragments themselves with one of the ciphers.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from . import ciphers
from .constants import (SIX_SLOTS_MAGIC_OFFSET, SIX_SLOTS_MAGIC, METHOD_INFO_HEADER_SIZE, ENCRYPTED_DATA_INFO_SIZE,
                        NUM_DATA_INFOS_DEFAULT, NUM_DATA_INFOS_EXTENDED, METHOD_INFOS_RVA_OFFSET,
                        METHOD_INFOS_XOR_KEY_OFFSET, ENCRYPTED_DATA_RVA_OFFSET, ENCRYPTED_DATA_XOR_KEY_OFFSET,
                        METHOD_INFOS_FIRST_RECORD, RECORD_RVA_DISPL, HEADER_SLOT, EXCEPTIONS_SLOT)
from .errors import McFormatError
from .headers import PeHeader, McHeader, is_old_version
from .logger import get_logger
from .util import to_int16, to_int32


@dataclass
class DecryptedMethodInfo:
    body_rva: int
    body: bytes


@dataclass
class EncryptedDataInfo:
    index: int
    encryption_type: int
    data_offset: int
    encrypted_size: int
    real_size: int
    ex_offset: int = 0


class MethodInfos(object):
    def __init__(self, image, pe_header: PeHeader, mc_header: McHeader, log_level: int = logging.INFO):
        self.image = image
        self.pe_header = pe_header
        self.mc_header = mc_header
        self.logger = get_logger('method_infos', level=log_level)
        self.xor_key = 0
        self.infos: Dict[int, DecryptedMethodInfo] = {}

        if mc_header.has_magic(SIX_SLOTS_MAGIC_OFFSET, *SIX_SLOTS_MAGIC):
            self.num_encrypted_data_infos = NUM_DATA_INFOS_EXTENDED
        else:
            self.num_encrypted_data_infos = NUM_DATA_INFOS_DEFAULT
        self.struct_size = METHOD_INFO_HEADER_SIZE + self.num_encrypted_data_infos * ENCRYPTED_DATA_INFO_SIZE

        method_infos_rva = pe_header.get_rva(METHOD_INFOS_RVA_OFFSET,
                                             mc_header.read_uint32(METHOD_INFOS_XOR_KEY_OFFSET))
        encrypted_data_rva = pe_header.get_rva(ENCRYPTED_DATA_RVA_OFFSET,
                                               mc_header.read_uint32(ENCRYPTED_DATA_XOR_KEY_OFFSET))

        self.method_infos_offset = image.rva_to_offset(method_infos_rva)
        self.encrypted_data_offset = image.rva_to_offset(encrypted_data_rva)

        self.logger.debug(
            f'method infos at RVA 0x{method_infos_rva:x} (offset 0x{self.method_infos_offset:x}), '
            f'encrypted data at RVA 0x{encrypted_data_rva:x} (offset 0x{self.encrypted_data_offset:x}), '
            f'record size: 0x{self.struct_size:x}')

    def lookup(self, body_rva: int) -> Optional[DecryptedMethodInfo]:
        return self.infos.get(body_rva)

    def _read_byte(self, offset: int) -> int:
        return self.image.read_byte(self.method_infos_offset + offset)

    def _read_uint16(self, offset: int) -> int:
        return self.image.read_uint16(self.method_infos_offset + offset)

    def _read_uint32(self, offset: int) -> int:
        return self.image.read_uint32(self.method_infos_offset + offset)

    def _read_encrypted_int16(self, offset: int) -> int:
        return to_int16(self._read_uint16(offset) ^ self.xor_key)

    def _read_encrypted_uint32(self, offset: int) -> int:
        return self._read_uint32(offset) ^ self.xor_key

    def _read_encrypted_int32(self, offset: int) -> int:
        return to_int32(self._read_encrypted_uint32(offset))

    def _read_encrypted_data_info(self, offset: int, slot: int) -> EncryptedDataInfo:
        info = EncryptedDataInfo(
            index=self._read_byte(offset),
            encryption_type=self._read_encrypted_int16(offset + 1),
            data_offset=self._read_encrypted_uint32(offset + 3),
            encrypted_size=self._read_encrypted_uint32(offset + 7),
            real_size=self._read_encrypted_uint32(offset + 11))

        if slot == EXCEPTIONS_SLOT:
            info.ex_offset = self._read_encrypted_int32(offset + 15)

        # The index byte is not used to order the fragments
        if info.index != slot:
            self.logger.debug(f'fragment index {info.index} stored in slot {slot} at record offset 0x{offset:x}')

        return info

    def initialize_infos(self) -> Dict[int, DecryptedMethodInfo]:
        num_methods = to_int32(self._read_uint32(0)) ^ to_int32(self._read_uint32(4))
        if num_methods < 0:
            raise McFormatError('Invalid number of encrypted methods')

        self.xor_key = num_methods
        rva_displ = 0 if is_old_version(self.image) else RECORD_RVA_DISPL
        self.logger.debug(f'number of encrypted methods: {num_methods}, fragment slots: '
                          f'{self.num_encrypted_data_infos}, record RVA displacement: 0x{rva_displ:x}')

        offset = METHOD_INFOS_FIRST_RECORD
        for _ in range(num_methods):
            method_body_rva = (self._read_encrypted_uint32(offset) - rva_displ) & 0xFFFFFFFF
            total_size = self._read_encrypted_uint32(offset + 4)
            if total_size > self.image.size:
                raise McFormatError(f'Invalid method body size 0x{total_size:x} exceeds file size '
                                    f'0x{self.image.size:x}')
            method_instruction_rva = (self._read_encrypted_uint32(offset + 8) - rva_displ) & 0xFFFFFFFF

            fragments, ex_offset = self._decrypt_fragments(offset + METHOD_INFO_HEADER_SIZE)
            body = self._assemble_body(total_size, fragments, ex_offset)

            self.logger.debug(f'decrypted method body RVA 0x{method_body_rva:x} size: 0x{total_size:x} '
                              f'instructions RVA 0x{method_instruction_rva:x}')

            # Records never share a body RVA in practice, a later record replaces an earlier one
            self.infos[method_body_rva] = DecryptedMethodInfo(method_body_rva, body)
            offset += self.struct_size

        return self.infos

    def _decrypt_fragments(self, offset: int) -> Tuple[List[Optional[bytes]], int]:
        fragments = []
        ex_offset = 0

        for slot in range(self.num_encrypted_data_infos):
            info = self._read_encrypted_data_info(offset, slot)
            if slot == EXCEPTIONS_SLOT:
                ex_offset = info.ex_offset

            if slot == EXCEPTIONS_SLOT and info.ex_offset == 0:
                fragments.append(None)
            else:
                fragments.append(self.decrypt(info.encryption_type, info.data_offset, info.encrypted_size,
                                              info.real_size))
            offset += ENCRYPTED_DATA_INFO_SIZE

        return fragments, ex_offset

    def _assemble_body(self, total_size: int, fragments: List[Optional[bytes]], ex_offset: int) -> bytes:
        """
        Header first, then the instruction fragments back to back. The exception handlers (or padding)
        go to their stored offset since the packer aligns them independently of the code length.
        """
        decrypted_data = bytearray(total_size)

        copy_offset = self._copy_data(decrypted_data, fragments[HEADER_SLOT], 0)
        for fragment in fragments[EXCEPTIONS_SLOT + 1:]:
            copy_offset = self._copy_data(decrypted_data, fragment, copy_offset)
        self._copy_data(decrypted_data, fragments[EXCEPTIONS_SLOT], ex_offset)

        return bytes(decrypted_data)

    @staticmethod
    def _copy_data(dest: bytearray, source: Optional[bytes], offset: int) -> int:
        if source is None:
            return offset
        if offset < 0 or offset + len(source) > len(dest):
            raise McFormatError(f'Method fragment of size 0x{len(source):x} at offset {offset} exceeds body '
                                f'size 0x{len(dest):x}')
        dest[offset:offset + len(source)] = source
        return offset + len(source)

    def _read_data(self, offset: int, size: int) -> bytes:
        return self.image.read_bytes(self.encrypted_data_offset + offset, size)

    def decrypt(self, encryption_type: int, data_offset: int, encrypted_size: int,
                real_size: int) -> Optional[bytes]:
        if real_size == 0:
            return None
        ciphers.check_sizes(encrypted_size, real_size)

        encrypted = self._read_data(data_offset, encrypted_size)
        return ciphers.decrypt(encryption_type, encrypted, real_size, self.mc_header)
