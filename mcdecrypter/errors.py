"""
Part of mcdecrypter
"""


class DecrypterError(Exception):
    def __init__(self, value):
        self.value = value

    def __str__(self):
        return repr(self.value)


class McFormatError(DecrypterError):
    """
    The packer data of the file does not have the expected layout.
    """


class UnsupportedCipherError(DecrypterError):
    """
    A method fragment is encrypted with a cipher that cannot be decrypted yet.
    """


class ImageReadError(DecrypterError):
    """
    A read outside of the PE image or an RVA that does not translate to a file offset.
    """
