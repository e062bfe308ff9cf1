"""
Logging setup.

All modules log through named children of the ``dispatch`` logger.
"""

import logging
import sys

from dispatch.core.config import get_settings

_ROOT_NAME = "dispatch"
_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _configure_root() -> logging.Logger:
    root = logging.getLogger(_ROOT_NAME)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
        root.setLevel(logging.DEBUG if get_settings().DEBUG else logging.INFO)
        root.propagate = False
    return root


def setup_logger(name: str) -> logging.Logger:
    """Return a logger for ``name`` under the application root logger."""
    root = _configure_root()
    if name == _ROOT_NAME or name.startswith(f"{_ROOT_NAME}."):
        return logging.getLogger(name)
    return root.getChild(name)


logger = setup_logger(_ROOT_NAME)
