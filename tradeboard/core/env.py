from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv


def load_local_environment() -> None:
    """Load environment variables from a single canonical location.

    Canonical path: <project_root>/.env (derived from this package location),
    which OVERRIDES any already-set variables. If that file does not exist,
    we fallback to ~/.tradeboard/.env (also with override=True).
    The resolved path is exposed via TRADEBOARD_ENV_PATH for diagnostics.
    """
    project_root = Path(__file__).resolve().parents[2]
    root_env = project_root / ".env"

    for candidate in (root_env, Path.home() / ".tradeboard" / ".env"):
        if candidate.exists():
            load_dotenv(dotenv_path=candidate, override=True)
            os.environ["TRADEBOARD_ENV_PATH"] = str(candidate)
            return

    # If nothing was loaded, still indicate the intended canonical path
    os.environ.setdefault("TRADEBOARD_ENV_PATH", str(root_env))
