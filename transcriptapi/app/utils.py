import logging
import sys

from loguru import logger as loguru_logger


def setup_logger(name: str, level: str = "INFO") -> logging.Logger:
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stdout
    )
    loguru_logger.remove()
    loguru_logger.add(sys.stdout, level=level)
    return logging.getLogger(name)


def validate_url_param(url) -> bool:
    return isinstance(url, str) and bool(url.strip())
