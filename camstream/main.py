"""
Process entrypoint.

Configuration is read from the YAML file named by ``CAMSTREAM_CONFIG``; when
the variable is unset the built-in defaults are used.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Mapping, Optional

from .config import CONFIG_ENV_VAR, ConfigError, load_config
from .runtime.lifecycle import EXIT_CONFIG_ERROR, EXIT_OK, LifecycleController
from .utils.logging import configure_logging

LOG = logging.getLogger(__name__)


def main(environ: Optional[Mapping[str, str]] = None) -> int:
    env = os.environ if environ is None else environ
    configure_logging()

    try:
        config = load_config(env.get(CONFIG_ENV_VAR) or None)
    except ConfigError as exc:
        LOG.error("%s", exc)
        return EXIT_CONFIG_ERROR
    configure_logging(config.log_level)

    controller = LifecycleController(config)
    try:
        return controller.run()
    except KeyboardInterrupt:
        LOG.info("Streaming interrupted by user.")
        controller.shutdown()
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
