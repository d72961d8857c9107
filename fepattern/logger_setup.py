import logging


def setup_logger(name):
    """Create the package logger with a console handler.

    Args:
        name (str): Logger name, usually the package ``__name__``.

    Returns:
        logging.Logger: Configured logger.
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)

    # Avoid stacking handlers when the package is re-imported
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)
        formatter = logging.Formatter(
            "[%(asctime)s][%(levelname)s] %(name)s: %(message)s",
            datefmt="%m/%d/%Y %H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False
    return logger
