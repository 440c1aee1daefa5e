"""
Part of mcdecrypter
"""

from struct import unpack_from, error as StructError

from .errors import McFormatError


def read_uint16(data: bytes, offset: int) -> int:
    return unpack_from('<H', data, offset)[0]


def read_uint32(data: bytes, offset: int) -> int:
    return unpack_from('<I', data, offset)[0]


def to_int16(value: int) -> int:
    value &= 0xFFFF
    return value - 0x10000 if value & 0x8000 else value


def to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def align_up(value: int, alignment: int) -> int:
    return (value + alignment - 1) & ~(alignment - 1)


class ByteCursor:
    """
    Read position over an owned byte buffer. Reads never run past the end of the buffer.
    """

    def __init__(self, data: bytes, position: int = 0):
        self.data = bytes(data)
        self.position = position

    def __len__(self) -> int:
        return len(self.data)

    @property
    def remaining(self) -> int:
        return max(len(self.data) - self.position, 0)

    def seek(self, position: int) -> None:
        if position < 0:
            raise McFormatError(f'Invalid reader position: {position}')
        self.position = position

    def advance(self, count: int) -> None:
        self.seek(self.position + count)

    def align(self, alignment: int) -> None:
        self.seek(align_up(self.position, alignment))

    def peek_uint8(self) -> int:
        if self.position >= len(self.data):
            raise McFormatError(f'Read past end of data at position {self.position}')
        return self.data[self.position]

    def _unpack(self, fmt: str, size: int) -> int:
        try:
            value = unpack_from(fmt, self.data, self.position)[0]
        except StructError:
            raise McFormatError(f'Read of {size} bytes past end of data at position {self.position}')  # pylint: disable=W0707
        self.position += size
        return value

    def read_uint8(self) -> int:
        return self._unpack('<B', 1)

    def read_uint16(self) -> int:
        return self._unpack('<H', 2)

    def read_uint32(self) -> int:
        return self._unpack('<I', 4)

    def read_bytes(self, count: int) -> bytes:
        if count > self.remaining:
            raise McFormatError(f'Read of {count} bytes past end of data at position {self.position}')
        result = self.data[self.position:self.position + count]
        self.position += count
        return result

    def read_to_end(self) -> bytes:
        result = self.data[self.position:]
        self.position = max(self.position, len(self.data))
        return result
