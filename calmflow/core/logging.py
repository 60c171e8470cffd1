import logging

from calmflow.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """
    Configure root logging once for the process.
    Repeated calls only adjust the level.
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level_name, format=LOG_FORMAT)
    root.setLevel(level_name)
    # Timer ticks are chatty at DEBUG; keep the access log quiet unless asked.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
