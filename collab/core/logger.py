import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class _CollabHandler(logging.StreamHandler):
    """Marker subclass so repeated setup calls don't stack handlers."""


def setup_logging(level: str | int = logging.INFO) -> None:
    handler = _CollabHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    for logger_name in ("collab", "worker"):
        logger = logging.getLogger(logger_name)
        logger.setLevel(level)
        if not any(isinstance(h, _CollabHandler) for h in logger.handlers):
            logger.addHandler(handler)
