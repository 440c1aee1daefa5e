from struct import pack

import pytest

from mcdecrypter.errors import McFormatError
from mcdecrypter.method_body import read_method_header, read_method_body, build_method_body
from mcdecrypter.util import ByteCursor


def test_tiny_header():
    reader = ByteCursor(b'\x06\x2a')

    header = read_method_header(reader)

    assert (header.flags, header.max_stack, header.code_size, header.local_var_sig_tok) == (2, 8, 1, 0)
    assert reader.position == 1


def test_tiny_body():
    body = read_method_body(b'\x0e\x00\x02\x2a\xff')

    assert body.code == b'\x00\x02\x2a'
    assert body.extra_sections is None


def test_fat_header_with_extra_sections():
    code = bytes(range(1, 11))
    extra = b'\x01\x0c\x00\x00' + bytes(range(0x20, 0x28))
    data = pack('<HHII', 0x300B, 8, 10, 0) + code + b'\x00\x00' + extra
    reader = ByteCursor(data)

    header = read_method_header(reader)
    assert reader.position == 12
    assert (header.flags, header.max_stack, header.code_size, header.local_var_sig_tok) == (0x300B, 8, 10, 0)

    body = read_method_body(data)
    assert body.code == code
    assert body.extra_sections == extra


def test_fat_header_without_more_sects_flag_ignores_trailing_data():
    code = bytes(range(1, 11))
    data = pack('<HHII', 0x3003, 8, 10, 0) + code + b'\x00\x00\xde\xad\xbe\xef'

    body = read_method_body(data)

    assert body.header_size == 12
    assert body.code == code
    assert body.extra_sections is None


def test_fat_header_size_from_flags():
    # 4 dwords of header, the last one is skipped
    data = pack('<HHIII', 0x4013, 2, 2, 0x11000001, 0xCCCCCCCC) + b'\x16\x2a'

    body = read_method_body(data)

    assert body.header_size == 16
    assert body.local_var_sig_tok == 0x11000001
    assert body.code == b'\x16\x2a'


def test_extra_sections_alignment_past_end_gives_empty_blob():
    data = pack('<HHII', 0x300B, 8, 1, 0) + b'\x2a'

    assert read_method_body(data).extra_sections == b''


def test_truncated_code_fails():
    with pytest.raises(McFormatError):
        read_method_body(pack('<HHII', 0x3003, 8, 10, 0) + b'\x2a')

    with pytest.raises(McFormatError):
        read_method_body(b'')


def test_build_tiny_body():
    assert build_method_body(2, 8, 0, b'\x2a') == b'\x06\x2a'


def test_build_fat_body_when_tiny_is_not_possible():
    body = build_method_body(2, 8, 0x11000002, b'\x2a')

    assert body == pack('<HHII', 0x3003, 8, 1, 0x11000002) + b'\x2a'


def test_build_fat_body_with_extra_sections():
    code = bytes(range(1, 11))
    extra = b'\x01\x0c\x00\x00' + bytes(8)

    body = build_method_body(0x301B, 4, 0, code, extra)

    assert body == pack('<HHII', 0x301B, 4, 10, 0) + code + b'\x00\x00' + extra
    assert read_method_body(body).extra_sections == extra
