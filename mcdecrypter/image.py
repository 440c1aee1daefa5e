"""
Part of mcdecrypter

PE image access by file offset and RVA, built on pefile.
"""

from __future__ import annotations

import os
import logging
from dataclasses import dataclass
from pathlib import PurePath
from struct import unpack_from
from typing import List, Union

from pefile import PE, PEFormatError

from .errors import ImageReadError
from .logger import get_logger
from .metadata import MetadataTables, MethodDefTable


PathLike = Union[str, bytes, os.PathLike, PurePath]


@dataclass(frozen=True)
class SectionInfo:
    virtual_address: int
    pointer_to_raw_data: int
    size_of_raw_data: int


class PeImage(PE):
    def __init__(self, file_ref: PathLike, *args, log_level: int = logging.INFO, **kwargs):
        kwargs.setdefault('fast_load', True)
        try:
            if isinstance(file_ref, bytes):
                super().__init__(data=file_ref, *args, **kwargs)
            else:
                super().__init__(name=os.fspath(file_ref), *args, **kwargs)
        except PEFormatError as e:
            raise ImageReadError(f'File is not a valid PE image - {e}')  # pylint: disable=W0707

        self.logger = get_logger('image', level=log_level)
        self._section_infos = [SectionInfo(section.VirtualAddress, section.PointerToRawData, section.SizeOfRawData)
                               for section in self.sections]
        self._method_def_table = None

    @property
    def size(self) -> int:
        return len(self.__data__)

    @property
    def section_infos(self) -> List[SectionInfo]:
        return self._section_infos

    def _check_bounds(self, offset: int, length: int) -> None:
        if offset < 0 or length < 0 or offset + length > self.size:
            raise ImageReadError(f'Read of 0x{length:x} bytes at offset 0x{offset:x} exceeds file size '
                                 f'0x{self.size:x}')

    def read_bytes(self, offset: int, length: int) -> bytes:
        self._check_bounds(offset, length)
        return bytes(self.__data__[offset:offset + length])

    def read_byte(self, offset: int) -> int:
        self._check_bounds(offset, 1)
        return self.__data__[offset]

    def read_uint16(self, offset: int) -> int:
        return unpack_from('<H', self.read_bytes(offset, 2))[0]

    def read_uint32(self, offset: int) -> int:
        return unpack_from('<I', self.read_bytes(offset, 4))[0]

    def rva_to_offset(self, rva: int) -> int:
        try:
            offset = self.get_offset_from_rva(rva)
        except PEFormatError as e:
            raise ImageReadError(f'Cannot translate RVA 0x{rva:x} - {e}')  # pylint: disable=W0707

        if offset is None:
            raise ImageReadError(f'Cannot translate RVA 0x{rva:x}')

        return offset

    def read_uint32_at_rva(self, rva: int) -> int:
        return self.read_uint32(self.rva_to_offset(rva))

    @property
    def method_def_table(self) -> MethodDefTable:
        if self._method_def_table is None:
            self._method_def_table = MetadataTables(self).get_method_def_table()
            self.logger.debug(f'MethodDef table at offset 0x{self._method_def_table.file_offset:x} '
                              f'rows: {self._method_def_table.rows}')

        return self._method_def_table
