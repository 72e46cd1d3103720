# catalog/utils/log.py
import logging

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    """Get a logger with the catalog stream handler attached once.

    Args:
        name: Logger name, usually the owning class name
        level: Level name applied when the handler is first installed

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger
