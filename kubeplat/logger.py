import logging

logger = logging.getLogger("kubeplat")


def setup_logger(verbose: bool = False, format: str = "%(message)s") -> None:
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)

    formatter = logging.Formatter(format)
    ch.setFormatter(formatter)

    logger.addHandler(ch)


setup_logger()
