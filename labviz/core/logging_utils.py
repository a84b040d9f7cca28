from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a module logger, configuring the root handler on first use.

    The default level is read from LABVIZ_LOG_LEVEL (INFO when unset).
    """
    logger = logging.getLogger(name)
    if not logging.getLogger().handlers:
        level_name = os.environ.get("LABVIZ_LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, level_name, logging.INFO),
            format=LOG_FORMAT,
        )
    return logger
