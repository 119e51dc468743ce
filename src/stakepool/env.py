# src/stakepool/env.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_LOADED = False


def load_dotenv_if_present(dotenv_path: Optional[str] = None) -> bool:
    """
    Load a .env file once per process, without overriding variables that are
    already set.

    Path: `dotenv_path`, else STAKEPOOL_DOTENV_PATH, else ".env" in the
    working directory. Returns True only when a file was found and loaded.
    """
    global _LOADED
    if _LOADED:
        return False
    _LOADED = True

    path = Path(dotenv_path or os.getenv("STAKEPOOL_DOTENV_PATH", ".env")).expanduser()
    if not path.is_file():
        return False

    load_dotenv(dotenv_path=str(path), override=False)
    return True
