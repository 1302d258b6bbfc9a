"""Chat proxy package: forwards prompts upstream with per-thread disk history.

This package provides a FastAPI application factory named ``create_app``
inside ``chat_proxy/server.py`` (see :func:`create_app`).

Typical usage
-------------
from chat_proxy import create_app
app = create_app()

or, from the provided launcher:

python scripts/run_server.py --host 127.0.0.1 --port 4000
"""

from __future__ import annotations

from .server import create_app

__all__ = ["create_app", "__version__", "get_version"]

# ---------------------------------------------------------------------
# Version handling
# ---------------------------------------------------------------------
__version__ = "0.1.0"


def get_version() -> str:
    """Return the package version."""
    return __version__
