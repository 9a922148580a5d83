import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: int | str = logging.INFO) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    # uvicorn reloads and the RQ worker may both call this
    if any(getattr(h, "_storage_limit", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._storage_limit = True  # type: ignore[attr-defined]
    root.addHandler(handler)
