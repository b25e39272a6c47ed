from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

ENV_LOG_LEVEL = "RICEMILL_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(log_dir: Path | None = None) -> None:
    """Console + rotating file logging for the `ricemill` logger tree. Safe to call on every rerun."""
    global _configured
    if _configured:
        return

    level = os.getenv(ENV_LOG_LEVEL, "INFO").upper()
    root = logging.getLogger("ricemill")
    root.setLevel(getattr(logging, level, logging.INFO))

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir is not None:
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_dir / "ricemill.log", maxBytes=1_000_000, backupCount=3, encoding="utf-8"
            )
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
        except OSError as e:
            root.warning("File logging disabled (%s): %s", log_dir, e)

    _configured = True
