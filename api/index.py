"""Vercel serverless function serving the Fabric Muse API."""

from __future__ import annotations

import sys
from pathlib import Path

# The function bundle ships the repo tree, not an installed wheel.
SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from fabric_muse.api.asgi import app  # noqa: E402

__all__ = ["app"]
