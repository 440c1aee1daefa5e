"""
Part of mcdecrypter

The byte level ciphers MaxtoCode applies to method fragments. Each cipher takes its key material
from the packer header (McHeader).
"""

from enum import IntEnum
from struct import iter_unpack, pack
from typing import Callable, Dict, Optional

from .constants import MC_HEADER_SIZE, CIPHER2_KEY_OFFSET, CIPHER3_KEY_OFFSET, CIPHER3_SHIFTS
from .errors import McFormatError, UnsupportedCipherError


class EncryptionType(IntEnum):
    XOR_STREAM = 1
    ROTATE_XOR = 2
    ROTATE_XOR_16_ROUNDS = 3
    NIBBLE = 4
    TYPE5 = 5
    TYPE6 = 6
    TYPE7 = 7


def _check_block_size(encrypted: bytes, encryption_type: int) -> None:
    if len(encrypted) & 7 != 0:
        raise McFormatError(f'Invalid encryption #{encryption_type} length: {len(encrypted)}')


def decrypt1(encrypted: bytes, key) -> bytes:
    return bytes(b ^ key.read_byte(i % MC_HEADER_SIZE) for i, b in enumerate(encrypted))


def decrypt2(encrypted: bytes, key) -> bytes:
    _check_block_size(encrypted, EncryptionType.ROTATE_XOR)
    key4 = key.read_uint32(CIPHER2_KEY_OFFSET + 4 * 4)
    key5 = key.read_uint32(CIPHER2_KEY_OFFSET + 5 * 4)

    words = []
    for val0, val1 in iter_unpack('<II', encrypted):
        x = ((val1 >> 26) + (val0 << 6)) & 0xFFFFFFFF
        y = ((val0 >> 26) + (val1 << 6)) & 0xFFFFFFFF
        words.append(x ^ key4)
        words.append(y ^ key5)

    return pack(f'<{len(words)}I', *words)


def decrypt3(encrypted: bytes, key) -> bytes:
    _check_block_size(encrypted, EncryptionType.ROTATE_XOR_16_ROUNDS)
    key0 = key.read_uint32(CIPHER3_KEY_OFFSET + 0 * 4)
    key3 = key.read_uint32(CIPHER3_KEY_OFFSET + 3 * 4)

    words = []
    for x, y in iter_unpack('<II', encrypted):
        for shift in CIPHER3_SHIFTS:
            x, y = ((y >> (32 - shift)) + (x << shift)) & 0xFFFFFFFF, ((x >> (32 - shift)) + (y << shift)) & 0xFFFFFFFF
        words.append(x ^ key0)
        words.append(y ^ key3)

    return pack(f'<{len(words)}I', *words)


def decrypt4(encrypted: bytes, key) -> bytes:
    """
    Every 3 encrypted bytes give 2 decrypted bytes, a trailing byte is only XOR encrypted. The output
    always reserves one byte for that trailing byte.
    """
    decrypted = bytearray(len(encrypted) // 3 * 2 + 1)

    i = j = k = 0
    for _ in range(len(encrypted) // 3):
        k1 = key.read_byte(j + 1)
        k2 = key.read_byte(j + 2)
        k3 = key.read_byte(j + 3)
        middle = encrypted[i + 1] ^ k2
        decrypted[k] = (middle >> 4) | ((encrypted[i] ^ k1) & 0xF0)
        decrypted[k + 1] = ((middle << 4) + ((encrypted[i + 2] ^ k3) & 0x0F)) & 0xFF
        i += 3
        k += 2
        j = (j + 4) % MC_HEADER_SIZE

    if len(encrypted) % 3 != 0:
        decrypted[k] = encrypted[i] ^ key.read_byte(j)

    return bytes(decrypted)


def _not_implemented(encryption_type: int) -> Callable[[bytes, object], bytes]:
    def decrypt(encrypted: bytes, key) -> bytes:
        raise UnsupportedCipherError(f'Encryption type #{encryption_type} not implemented yet')

    return decrypt


CIPHERS: Dict[EncryptionType, Callable[[bytes, object], bytes]] = {
    EncryptionType.XOR_STREAM: decrypt1,
    EncryptionType.ROTATE_XOR: decrypt2,
    EncryptionType.ROTATE_XOR_16_ROUNDS: decrypt3,
    EncryptionType.NIBBLE: decrypt4,
    EncryptionType.TYPE5: _not_implemented(5),
    EncryptionType.TYPE6: _not_implemented(6),
    EncryptionType.TYPE7: _not_implemented(7),
}


def get_encryption_type(encryption_type: int) -> EncryptionType:
    try:
        return EncryptionType(encryption_type)
    except ValueError:
        raise McFormatError(f'Invalid encryption type: {encryption_type & 0xFFFF:02X}')  # pylint: disable=W0707


def check_sizes(encrypted_size: int, real_size: int) -> None:
    if real_size > encrypted_size:
        raise McFormatError(f'Invalid realSize: 0x{real_size:x} > encrypted size 0x{encrypted_size:x}')


def decrypt(encryption_type: int, encrypted: bytes, real_size: int, key) -> Optional[bytes]:
    """
    Decrypt one method fragment and cut it to its real size.

    :param encryption_type: cipher selector stored with the fragment
    :param encrypted: encrypted fragment bytes
    :param real_size: size of the decrypted fragment, 0 when the fragment is absent
    :param key: packer header providing the key material
    :return: decrypted bytes or None for an absent fragment
    """
    if real_size == 0:
        return None
    check_sizes(len(encrypted), real_size)

    decrypted = CIPHERS[get_encryption_type(encryption_type)](encrypted, key)

    if real_size > len(decrypted):
        raise McFormatError('Invalid decrypted length')

    return decrypted[:real_size]
