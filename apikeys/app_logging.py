"""Log configuration for the API key service."""

import logging
from typing import Union

from pythonjsonlogger import jsonlogger

PLAIN_FORMAT = '(%(levelname)s): (%(asctime)s) %(name)s %(message)s'


def setup_logger(level: Union[int, str] = logging.INFO,
                 json: bool = True) -> None:
    """Attach a single stream handler to the root logger."""
    logHandler = logging.StreamHandler()
    if json:
        formatter: logging.Formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(name)s %(message)s',
            rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
        )
    else:
        formatter = logging.Formatter(PLAIN_FORMAT)
    logHandler.setFormatter(formatter)
    logger = logging.getLogger()
    for handler in list(logger.handlers):
        if getattr(handler, '_apikeys', False):
            logger.removeHandler(handler)
    logHandler._apikeys = True   # type: ignore
    logger.addHandler(logHandler)
    if isinstance(level, str):
        level = int(level) if level.isdigit() else level.upper()
    logger.setLevel(level)
