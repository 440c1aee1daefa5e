__version__ = '0.1.0'

from .decrypter import FileDecrypter, DumpedMethod, decrypt  # noqa: F401
from .errors import DecrypterError, McFormatError, UnsupportedCipherError, ImageReadError  # noqa: F401
from .image import PeImage  # noqa: F401
