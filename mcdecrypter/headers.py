"""
Part of mcdecrypter

Read-only views over the two header blocks MaxtoCode keeps in a protected image: the mapped PE
header page (PeHeader) holding XOR encoded RVAs, and the packer header (McHeader) holding the
layout markers and key material of the ciphers.
"""

from .constants import (PE_HEADER_SIZE, PE_HEADER_XOR_KEY, RVA_DISPL_OFFSET, MC_HEADER_RVA_OFFSET, MC_HEADER_SIZE,
                        VERSION_MARKER_RVA, VERSION_MARKER_OLD)
from .logger import get_logger
from .util import read_uint32


def is_old_version(image) -> bool:
    return image.read_uint32_at_rva(VERSION_MARKER_RVA) == VERSION_MARKER_OLD


class PeHeader(object):
    def __init__(self, image):
        self.logger = get_logger('headers')
        self.data = self.get_pe_header_data(image)
        self.rva_displ = 0

        if not is_old_version(image):
            self.rva_displ = self.read_uint32(RVA_DISPL_OFFSET) ^ PE_HEADER_XOR_KEY

        self.logger.debug(f'PE header RVA displacement: 0x{self.rva_displ:x}')

    def read_uint32(self, offset: int) -> int:
        return read_uint32(self.data, offset)

    def has_magic(self, offset: int, magic1: int, magic2: int) -> bool:
        return self.read_uint32(offset) == magic1 and self.read_uint32(offset + 4) == magic2

    def get_rva(self, offset: int, xor_key: int) -> int:
        return ((self.read_uint32(offset) ^ xor_key) - self.rva_displ) & 0xFFFFFFFF

    def get_mc_header_rva(self) -> int:
        return self.get_rva(MC_HEADER_RVA_OFFSET, PE_HEADER_XOR_KEY)

    def get_pe_header_data(self, image) -> bytes:
        """
        Rebuild the first page of the image as the loader maps it: the file headers, overlaid with
        every section that is mapped inside the page.
        """
        data = bytearray(PE_HEADER_SIZE)
        sections = image.section_infos

        if sections:
            self._read_to(image, data, 0, 0, sections[0].pointer_to_raw_data)

        for section in sections:
            if section.virtual_address >= len(data):
                self.logger.debug(f'section at RVA 0x{section.virtual_address:x} is outside the header page')
                continue
            self._read_to(image, data, section.virtual_address, section.pointer_to_raw_data,
                          section.size_of_raw_data)

        return bytes(data)

    @staticmethod
    def _read_to(image, data: bytearray, dest_offset: int, image_offset: int, max_length: int) -> None:
        # Partial copies are fine here, the page is only a best effort mapping
        length = min(len(data) - dest_offset, max_length, max(image.size - image_offset, 0))
        if length <= 0:
            return
        data[dest_offset:dest_offset + length] = image.read_bytes(image_offset, length)


class McHeader(object):
    def __init__(self, image, pe_header: PeHeader):
        self.pe_header = pe_header
        mc_header_rva = pe_header.get_mc_header_rva()
        self.data = image.read_bytes(image.rva_to_offset(mc_header_rva), MC_HEADER_SIZE)

        get_logger('headers').debug(f'packer header at RVA 0x{mc_header_rva:x}')

    def __len__(self) -> int:
        return len(self.data)

    def has_magic(self, offset: int, magic1: int, magic2: int) -> bool:
        return self.read_uint32(offset) == magic1 and self.read_uint32(offset + 4) == magic2

    def read_byte(self, offset: int) -> int:
        return self.data[offset]

    def read_uint32(self, offset: int) -> int:
        return read_uint32(self.data, offset)
