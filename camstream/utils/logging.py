"""
Logging helpers for camstream.

Every module logs through ``logging.getLogger(__name__)``; only the entrypoint
calls :func:`configure_logging`.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, Union

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: Union[int, str] = logging.INFO, format: Optional[str] = None) -> None:
    """
    Configure the root logger once; later calls only adjust the level.
    """

    root = logging.getLogger()
    if root.handlers:
        # Respect any user provided configuration.
        root.setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format=format or DEFAULT_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
