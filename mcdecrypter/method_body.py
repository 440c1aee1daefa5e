"""
Part of mcdecrypter

Standard CLI method body encoding (ECMA-335, partition II, 25.4).
"""

from dataclasses import dataclass
from struct import pack
from typing import Optional

from .constants import (TINY_FORMAT, FORMAT_MASK, TINY_MAX_STACK, TINY_MAX_CODE_SIZE, FAT_FORMAT, FAT_HEADER_SIZE,
                        MORE_SECTS)
from .util import ByteCursor, align_up


@dataclass
class MethodBody:
    flags: int
    max_stack: int
    code_size: int
    local_var_sig_tok: int
    code: bytes
    extra_sections: Optional[bytes] = None
    header_size: int = 1


def read_method_header(reader: ByteCursor) -> MethodBody:
    """
    Read a tiny or fat method header. The reader is left at the first instruction byte.
    """
    first_byte = reader.peek_uint8()

    if (first_byte & FORMAT_MASK) == TINY_FORMAT:
        reader.advance(1)
        return MethodBody(flags=TINY_FORMAT, max_stack=TINY_MAX_STACK, code_size=first_byte >> 2,
                          local_var_sig_tok=0, code=b'', header_size=1)

    flags = reader.read_uint16()
    max_stack = reader.read_uint16()
    code_size = reader.read_uint32()
    local_var_sig_tok = reader.read_uint32()

    # The upper 4 bits of the flags hold the header size in dwords
    header_size = (flags >> 12) * 4
    reader.advance(header_size - FAT_HEADER_SIZE)

    return MethodBody(flags=flags, max_stack=max_stack, code_size=code_size, local_var_sig_tok=local_var_sig_tok,
                      code=b'', header_size=header_size)


def read_method_body(data: bytes) -> MethodBody:
    reader = ByteCursor(data)
    method_body = read_method_header(reader)

    method_body.code = reader.read_bytes(method_body.code_size)

    if method_body.flags & MORE_SECTS:
        reader.align(4)
        method_body.extra_sections = reader.read_to_end()

    return method_body


def build_method_body(flags: int, max_stack: int, local_var_sig_tok: int, code: bytes,
                      extra_sections: Optional[bytes] = None) -> bytes:
    """
    Encode a method body. The tiny header is used whenever the method allows it.
    """
    if (flags & FORMAT_MASK) == TINY_FORMAT and len(code) < TINY_MAX_CODE_SIZE and max_stack <= TINY_MAX_STACK \
            and local_var_sig_tok == 0 and not extra_sections:
        return bytes([(len(code) << 2) | TINY_FORMAT]) + code

    fat_flags = (flags & 0x0FFF & ~FORMAT_MASK) | FAT_FORMAT | ((FAT_HEADER_SIZE // 4) << 12)
    if extra_sections:
        fat_flags |= MORE_SECTS
    else:
        fat_flags &= ~MORE_SECTS

    result = pack('<HHII', fat_flags, max_stack, len(code), local_var_sig_tok) + code
    if extra_sections:
        result += b'\x00' * (align_up(len(result), 4) - len(result)) + extra_sections

    return result
