from struct import pack

import pytest

from mcdecrypter import ciphers
from mcdecrypter.ciphers import EncryptionType
from mcdecrypter.constants import CIPHER2_KEY_OFFSET, CIPHER3_KEY_OFFSET, MC_HEADER_SIZE
from mcdecrypter.errors import McFormatError, UnsupportedCipherError

from packer_fixture import KeyBlock, make_mc_header, encrypt1, encrypt2, encrypt3, encrypt4, ENCRYPTORS


ZERO_KEY = KeyBlock(bytes(MC_HEADER_SIZE))


@pytest.fixture
def key_data():
    return make_mc_header(seed=7)


def test_decrypt1_uses_packer_header_as_keystream(key_data):
    plain = bytes(i & 0xFF for i in range(MC_HEADER_SIZE + 0x20))
    encrypted = encrypt1(plain, key_data)

    assert encrypted[0] == plain[0] ^ key_data[0]
    # The keystream wraps at the end of the packer header
    assert encrypted[MC_HEADER_SIZE + 1] == plain[MC_HEADER_SIZE + 1] ^ key_data[1]
    assert ciphers.decrypt1(encrypted, KeyBlock(key_data)) == plain


def test_decrypt2_rotates_block_by_six_bits():
    assert ciphers.decrypt2(pack('<II', 1, 0), ZERO_KEY) == pack('<II', 64, 0)
    assert ciphers.decrypt2(pack('<II', 0x80000000, 0), ZERO_KEY) == pack('<II', 0, 0x20)


def test_decrypt2_xors_key_dwords():
    key_data = bytearray(MC_HEADER_SIZE)
    key_data[CIPHER2_KEY_OFFSET + 16:CIPHER2_KEY_OFFSET + 24] = pack('<II', 0x11111111, 0x22222222)

    assert ciphers.decrypt2(bytes(8), KeyBlock(bytes(key_data))) == pack('<II', 0x11111111, 0x22222222)


def test_decrypt3_rounds_add_up_to_two_bit_rotation():
    assert ciphers.decrypt3(pack('<II', 1, 0), ZERO_KEY) == pack('<II', 4, 0)
    assert ciphers.decrypt3(pack('<II', 0, 0x80000000), ZERO_KEY) == pack('<II', 2, 0)


def test_decrypt3_xors_key_dwords():
    key_data = bytearray(MC_HEADER_SIZE)
    key_data[CIPHER3_KEY_OFFSET:CIPHER3_KEY_OFFSET + 16] = pack('<IIII', 0xA5A5A5A5, 1, 2, 0x5A5A5A5A)

    assert ciphers.decrypt3(bytes(8), KeyBlock(bytes(key_data))) == pack('<II', 0xA5A5A5A5, 0x5A5A5A5A)


@pytest.mark.parametrize('decrypt_func, encrypt_func', [
    (ciphers.decrypt2, encrypt2),
    (ciphers.decrypt3, encrypt3),
])
def test_block_ciphers_invert_hand_written_encryptors(key_data, decrypt_func, encrypt_func):
    plain = bytes(range(0x40, 0x80))

    assert decrypt_func(encrypt_func(plain, key_data), KeyBlock(key_data)) == plain


@pytest.mark.parametrize('decrypt_func', [ciphers.decrypt2, ciphers.decrypt3])
def test_block_ciphers_reject_unaligned_input(decrypt_func):
    with pytest.raises(McFormatError):
        decrypt_func(bytes(12), ZERO_KEY)


def test_decrypt4_recombines_nibbles():
    # One triple gives two bytes plus the reserved trailing byte
    assert ciphers.decrypt4(b'\xab\xcd\xef', ZERO_KEY) == b'\xac\xdf\x00'
    assert ciphers.decrypt4(b'\xab\xcd\xef\x11', ZERO_KEY) == b'\xac\xdf\x11'


def test_decrypt4_key_cursor_skips_first_byte_of_each_group():
    key_data = bytearray(MC_HEADER_SIZE)
    key_data[0:8] = b'\xff\x10\x20\x03\x77\x00\x00\x00'

    decrypted = ciphers.decrypt4(bytes([0x10 ^ 0xA0, 0x20 ^ 0xBC, 0x03 ^ 0x0D, 0x77 ^ 0x42]), KeyBlock(bytes(key_data)))

    assert decrypted == b'\xab\xcd\x42'


@pytest.mark.parametrize('plain', [b'\x2a', b'\x01\x02', bytes(range(1, 30))])
def test_decrypt4_inverts_hand_written_encryptor(key_data, plain):
    encrypted = encrypt4(plain, key_data)

    assert ciphers.decrypt(EncryptionType.NIBBLE, encrypted, len(plain), KeyBlock(key_data)) == plain


@pytest.mark.parametrize('encryption_type', [1, 2, 3, 4])
def test_decrypt_truncates_to_real_size(key_data, encryption_type):
    plain = bytes(range(1, 12))
    encrypted = ENCRYPTORS[encryption_type](plain, key_data)

    decrypted = ciphers.decrypt(encryption_type, encrypted, len(plain), KeyBlock(key_data))

    assert decrypted == plain


@pytest.mark.parametrize('encryption_type', [0, 1, 2, 3, 4, 5, 6, 7, 8])
def test_zero_real_size_is_an_absent_fragment(encryption_type):
    assert ciphers.decrypt(encryption_type, bytes(8), 0, ZERO_KEY) is None


@pytest.mark.parametrize('encryption_type', [1, 2, 3, 4, 5, 6, 7])
def test_real_size_larger_than_encrypted_size_fails(encryption_type):
    with pytest.raises(McFormatError, match='realSize'):
        ciphers.decrypt(encryption_type, bytes(8), 9, ZERO_KEY)


@pytest.mark.parametrize('encryption_type', [5, 6, 7])
def test_unsupported_ciphers_fail(encryption_type):
    with pytest.raises(UnsupportedCipherError, match=f'#{encryption_type}'):
        ciphers.decrypt(encryption_type, bytes(8), 8, ZERO_KEY)


@pytest.mark.parametrize('encryption_type', [0, 8, -1, 0x7FFF])
def test_invalid_encryption_type(encryption_type):
    with pytest.raises(McFormatError, match='Invalid encryption type'):
        ciphers.decrypt(encryption_type, bytes(8), 8, ZERO_KEY)


def test_short_decrypted_output_fails():
    # 6 encrypted bytes only decrypt to 5 bytes with the nibble cipher
    with pytest.raises(McFormatError, match='Invalid decrypted length'):
        ciphers.decrypt(EncryptionType.NIBBLE, bytes(6), 6, ZERO_KEY)
