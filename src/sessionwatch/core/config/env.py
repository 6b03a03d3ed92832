"""Load SESSIONWATCH_* settings from .env files.

Lookup order, lowest precedence first:

    ~/.config/sessionwatch/.env  <  <project>/.env  <  <project>/.env.local

Variables already exported in the shell always win: a .env file never
replaces a value that was in ``os.environ`` before loading started.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from dotenv import dotenv_values

from .loader import get_xdg_config_home

logger = logging.getLogger(__name__)


def default_env_files(project_dir: Path | None = None) -> list[Path]:
    """Env files to read, ordered from lowest to highest precedence."""
    project_dir = project_dir or Path.cwd()
    return [
        get_xdg_config_home() / "sessionwatch" / ".env",
        project_dir / ".env",
        project_dir / ".env.local",
    ]


def load_env_files(
    project_dir: Path | None = None,
    paths: Iterable[Path] | None = None,
) -> dict[str, str]:
    """
    Merge the given env files into ``os.environ``.

    Args:
        project_dir: Base directory for project env files (defaults to cwd)
        paths: Explicit files to read instead of ``default_env_files()``

    Returns:
        The variables that were set by this call
    """
    preexisting = set(os.environ)
    loaded: dict[str, str] = {}

    for path in paths if paths is not None else default_env_files(project_dir):
        if not path.is_file():
            continue
        for key, value in dotenv_values(path).items():
            if value is None or key in preexisting:
                continue
            loaded[key] = value

    os.environ.update(loaded)
    if loaded:
        logger.debug("Loaded %d variables from env files", len(loaded))
    return loaded
