"""Launch script that resolves the concierge package before starting Uvicorn."""

from __future__ import annotations

import importlib
import logging
import os
import sys
from pathlib import Path

import uvicorn

logger = logging.getLogger("concierge.launcher")


def _bootstrap_paths() -> None:
    repo_root = Path(__file__).resolve().parent
    if not (repo_root / "concierge" / "main.py").is_file():
        raise RuntimeError("concierge package not found next to serve.py")
    root = str(repo_root)
    if root not in sys.path:
        sys.path.insert(0, root)


def main() -> None:
    _bootstrap_paths()

    app_module = importlib.import_module("concierge.main")
    app = app_module.app  # type: ignore[attr-defined]

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))
    logger.debug("Serving on %s:%s", host, port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
