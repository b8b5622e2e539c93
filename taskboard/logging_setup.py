from __future__ import annotations

import logging
import sys
from typing import Optional

_handler: Optional[logging.Handler] = None


def setup_logging(level: int = logging.WARNING) -> None:
    """
    Send log records to stderr so they never mix with command output.

    Repeated calls (tests, embedding) swap out the handler installed by the
    previous call; handlers added by anyone else are left in place.
    """
    global _handler

    root = logging.getLogger()
    root.setLevel(level)

    if _handler is not None:
        root.removeHandler(_handler)

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(level)
    ch.setFormatter(fmt)
    root.addHandler(ch)
    _handler = ch

    logging.captureWarnings(True)
