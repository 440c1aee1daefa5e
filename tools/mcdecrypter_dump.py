"""
Display the method bodies recovered from a MaxtoCode protected .NET assembly.

The IL disassembly needs dncil (https://github.com/mandiant/dncil).
"""

# pylint: disable=E0401

import sys
import logging
import argparse

from typing import List, Optional

from mcdecrypter import decrypt, DumpedMethod, DecrypterError


def format_method(method: DumpedMethod, show_hex: bool = False) -> List[str]:
    lines = [
        f'Method token: 0x{method.token:08x}',
        f'\tFlags: 0x{method.md_flags:04x}, implementation flags: 0x{method.md_impl_flags:04x}',
        f'\tHeader flags: 0x{method.mh_flags:04x} (header size: {method.header_size})',
        f'\tMax stack: {method.mh_max_stack}',
        f'\tCode size: {method.mh_code_size}',
        f'\tLocal variables signature token: 0x{method.mh_local_var_sig_tok:08x}',
        f'\tExtra sections size: {len(method.extra_sections) if method.extra_sections is not None else 0}'
    ]

    if show_hex:
        for offset in range(0, len(method.code), 16):
            lines.append(f'\t\t{offset:04x}  {method.code[offset:offset + 16].hex(" ")}')

    return lines


def disassemble_method(method: DumpedMethod) -> List[str]:
    from dncil.cil.body import reader
    from dncil.cil.error import MethodBodyFormatError

    try:
        method_body = reader.read_method_body_from_bytes(method.get_method_body())
    except MethodBodyFormatError as e:
        return [f'\tDisassembling of method failed - {e}']

    lines = ['\tDisassembled code:']
    for instruction in method_body.instructions:
        if instruction.operand:
            lines.append(f'\t\t{instruction.mnemonic}\t{instruction.operand}')
        else:
            lines.append(f'\t\t{instruction.mnemonic}')

    return lines


def process_file(file_path: str, show_hex: bool = False, show_disassembly: bool = False,
                 log_level: int = logging.INFO) -> bool:
    print('---')
    print(f'Processing: {file_path}')
    print('---\n')

    try:
        dumped_methods = decrypt(file_path, log_level=log_level)
    except DecrypterError as e:
        print(f'[-] File could not be processed - {e}')
        return False

    print(f'Recovered methods: {len(dumped_methods)}\n')
    for token in sorted(dumped_methods):
        method = dumped_methods[token]
        lines = format_method(method, show_hex)
        if show_disassembly:
            lines += disassemble_method(method)
        print('\n'.join(lines))

    return True


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog='mcdecrypter_dump.py',
                                     description='Display method bodies recovered from MaxtoCode protected files.')
    parser.add_argument('file', type=str, help='File path of the .NET assembly.')
    parser.add_argument('--hex', action='store_true', help='Show a hex dump of the recovered code.')
    parser.add_argument('--disassemble', action='store_true', help='Disassemble the recovered code (needs dncil).')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging.')
    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    if not process_file(args.file, args.hex, args.disassemble, log_level):
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
