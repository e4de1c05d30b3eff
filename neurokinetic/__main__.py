from __future__ import annotations

import logging
import sys
from pathlib import Path


def _ensure_repo_root_on_path() -> None:
    """Put the repository root (parent of this package) on ``sys.path``.

    Needed when the file is run directly (``python neurokinetic/__main__.py``)
    instead of with ``python -m neurokinetic``.
    """
    repo_root = str(Path(__file__).resolve().parent.parent)
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


try:
    # python -m neurokinetic
    from . import config
    from .app import run
except ImportError:
    _ensure_repo_root_on_path()
    from neurokinetic import config
    from neurokinetic.app import run


def main() -> int:
    """Entry point for running the trainer from the command line."""
    logging.basicConfig(
        level=config.log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
