"""
Part of mcdecrypter

Minimal CLI metadata reader. It only resolves what the method decrypter needs: the location and
the column layout of the MethodDef table.

The following references were used:
    CLI specification (ECMA-335 standard), partition II, 24.2 and 22
        https://www.ecma-international.org/publications/files/ECMA-ST/ECMA-335.pdf
    Erik Pistelli's .NET file format documentation
        https://www.ntcore.com/files/dotnetformat.htm
"""

from __future__ import annotations

from math import ceil, log2
from struct import unpack_from
from typing import Dict, List, Tuple, Union

from pefile import DIRECTORY_ENTRY

from .constants import (METADATA_SIGNATURE, METADATA_TABLE_INDEXES, METADATA_TABLE_SCHEMAS, HEAP_SIZE_FLAGS,
                        TABLE_EXTRA_DATA_FLAG, TABLE_ROW_VARIABLE_LENGTH_FIELDS, METHODDEF_FIELDS)
from .errors import ImageReadError


class MethodDefTable(object):
    def __init__(self, file_offset: int, rows: int, field_sizes: List[int]):
        self.file_offset = file_offset
        self.rows = rows
        self.field_sizes = list(field_sizes)
        self.field_offsets = []

        offset = 0
        for size in self.field_sizes:
            self.field_offsets.append(offset)
            offset += size
        self.row_size = offset

    def row_file_offset(self, index: int) -> int:
        return self.file_offset + index * self.row_size

    def field_offset(self, field_index: int) -> int:
        return self.field_offsets[field_index]

    def field_size(self, field_index: int) -> int:
        return self.field_sizes[field_index]

    def __repr__(self) -> str:
        fields = ', '.join(f'{name}:{size}' for name, size in zip(METHODDEF_FIELDS, self.field_sizes))
        return f'MethodDefTable(offset=0x{self.file_offset:x}, rows={self.rows}, fields=[{fields}])'


class MetadataTables(object):
    def __init__(self, image):
        self.image = image
        self.metadata_offset = self._get_metadata_offset()
        self.table_stream_offset = self._get_table_stream_offset()
        self.heap_sizes, self.row_counts, self.tables_offset = self._parse_table_stream_header()

    def _get_clr_header_rva(self) -> int:
        dotnet_data_dir = DIRECTORY_ENTRY['IMAGE_DIRECTORY_ENTRY_COM_DESCRIPTOR']
        try:
            clr_header_rva = self.image.OPTIONAL_HEADER.DATA_DIRECTORY[dotnet_data_dir].VirtualAddress
        except (AttributeError, IndexError):
            raise ImageReadError('File has no .NET data directory.')  # pylint: disable=W0707

        if clr_header_rva == 0:
            raise ImageReadError('File is not a .NET assembly.')

        return clr_header_rva

    def _get_metadata_offset(self) -> int:
        clr_header_offset = self.image.rva_to_offset(self._get_clr_header_rva())
        # Skip Cb (4 bytes), MajorRuntimeVersion (2 bytes) and MinorRuntimeVersion (2 bytes)
        metadata_rva = self.image.read_uint32(clr_header_offset + 4 + 2 + 2)
        metadata_offset = self.image.rva_to_offset(metadata_rva)

        if self.image.read_uint32(metadata_offset) != METADATA_SIGNATURE:
            raise ImageReadError('CLR metadata signature not found.')

        return metadata_offset

    def _get_stream_headers(self) -> Dict[str, Tuple[int, int]]:
        # Signature, MajorVersion, MinorVersion, Reserved, then the version string length
        version_length = self.image.read_uint32(self.metadata_offset + 12)
        offset = self.metadata_offset + 16 + version_length
        # Flags (2 bytes) precede the number of streams
        num_streams = self.image.read_uint16(offset + 2)
        offset += 4

        result = {}
        for _ in range(num_streams):
            stream_offset = self.image.read_uint32(offset)
            stream_size = self.image.read_uint32(offset + 4)
            name_bytes = self.image.read_bytes(offset + 8, min(32, self.image.size - offset - 8))
            name = name_bytes.split(b'\x00', 1)[0].decode('ascii', errors='replace')
            # Name is null terminated and padded to the next 4 byte boundary
            offset += 8 + ((len(name) + 4) & ~3)

            # Obfuscators add fake streams after the real ones, the first one wins
            if name not in result:
                result[name] = (stream_offset, stream_size)

        return result

    def _get_table_stream_offset(self) -> int:
        stream_headers = self._get_stream_headers()
        for stream_name in ('#~', '#-'):
            if stream_name in stream_headers:
                return self.metadata_offset + stream_headers[stream_name][0]

        raise ImageReadError('CLR metadata has no tables stream.')

    def _parse_table_stream_header(self) -> Tuple[int, Dict[str, int], int]:
        # Reserved (4 bytes), MajorVersion, MinorVersion, HeapSizes, Reserved (1 byte each)
        heap_sizes = self.image.read_byte(self.table_stream_offset + 6)
        valid_mask = unpack_from('<Q', self.image.read_bytes(self.table_stream_offset + 8, 8))[0]
        offset = self.table_stream_offset + 24

        row_counts = {}
        for index in range(64):
            if valid_mask & (1 << index):
                table_name = METADATA_TABLE_INDEXES.get(index, f'Unknown{index}')
                row_counts[table_name] = self.image.read_uint32(offset)
                offset += 4

        # Some protectors add 4 bytes of extra data after the row counts
        if heap_sizes & TABLE_EXTRA_DATA_FLAG:
            offset += 4

        return heap_sizes, row_counts, offset

    def _get_index_size(self, table_name: str) -> int:
        return 4 if self.row_counts.get(table_name, 0) > 0xFFFF else 2

    def _get_coded_index_size(self, coded_index_name: str) -> int:
        tables = TABLE_ROW_VARIABLE_LENGTH_FIELDS[coded_index_name]
        tag_bits = ceil(log2(len(tables)))
        max_rows = max(self.row_counts.get(table_name, 0) for table_name in tables)

        return 2 if max_rows < (1 << (16 - tag_bits)) else 4

    def get_column_size(self, column: Union[int, str]) -> int:
        if isinstance(column, int):
            return column
        if column in HEAP_SIZE_FLAGS:
            return 4 if self.heap_sizes & HEAP_SIZE_FLAGS[column] else 2
        if column in TABLE_ROW_VARIABLE_LENGTH_FIELDS:
            return self._get_coded_index_size(column)

        return self._get_index_size(column)

    def get_row_size(self, table_name: str) -> int:
        return sum(self.get_column_size(column) for column in METADATA_TABLE_SCHEMAS[table_name])

    def get_method_def_table(self) -> MethodDefTable:
        offset = self.tables_offset

        # Tables are stored in index order, everything in front of MethodDef has a known schema
        for index in sorted(METADATA_TABLE_INDEXES):
            table_name = METADATA_TABLE_INDEXES[index]
            if table_name == 'MethodDef':
                break
            offset += self.row_counts.get(table_name, 0) * self.get_row_size(table_name)

        field_sizes = [self.get_column_size(column) for column in METADATA_TABLE_SCHEMAS['MethodDef']]

        return MethodDefTable(offset, self.row_counts.get('MethodDef', 0), field_sizes)
