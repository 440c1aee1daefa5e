"""
Part of mcdecrypter
"""

import logging
from typing import Optional


PACKAGE_LOGGER_NAME = 'mcdecrypter'
LOG_FORMAT = '%(levelname)s - %(process)d - %(asctime)s - %(filename)s - %(lineno)d - %(message)s'


def initialize_logging(logger_name: str, level: Optional[int] = None) -> logging.Logger:
    curr_logger = logging.getLogger(logger_name)

    if not curr_logger.hasHandlers():
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        curr_logger.addHandler(console_handler)
        curr_logger.propagate = False
        if level is None:
            level = logging.INFO

    # Components share the package logger, the latest explicit level wins
    if level is not None:
        curr_logger.setLevel(level)
        for handler in curr_logger.handlers:
            handler.setLevel(level)

    return curr_logger


def get_logger(component: str = '', level: Optional[int] = None) -> logging.Logger:
    """
    Get the package logger or one of its children. Children have no handlers of their own and
    propagate to the package logger.
    """
    package_logger = initialize_logging(PACKAGE_LOGGER_NAME, level)

    if component:
        return package_logger.getChild(component)

    return package_logger
