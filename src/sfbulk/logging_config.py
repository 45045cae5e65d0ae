from __future__ import annotations

import logging
from typing import Iterable, Optional

_DEFAULT_FMT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DEFAULT_DATEFMT = "%H:%M:%S"

# Third-party loggers that are chatty at DEBUG while streaming bulk results.
_NOISY_LOGGERS = ("urllib3.connection", "urllib3.connectionpool")


def configure_logging(level: Optional[int], noisy: Iterable[str] = _NOISY_LOGGERS) -> None:
    """Configure root logging once; later calls only adjust the level."""
    lvl = level if level is not None else logging.WARNING
    root = logging.getLogger()

    if root.handlers:
        root.setLevel(lvl)
    else:
        logging.basicConfig(level=lvl, format=_DEFAULT_FMT, datefmt=_DEFAULT_DATEFMT)

    # Keep connection-level chatter out of -vv output unless it is an error.
    floor = logging.ERROR if lvl > logging.DEBUG else logging.WARNING
    for name in noisy:
        lg = logging.getLogger(name)
        if lg.level == logging.NOTSET or lg.level < floor:
            lg.setLevel(floor)
