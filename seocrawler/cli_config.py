"""Configuration loading helpers for CLI entrypoints."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional


def load_config(
    *,
    config_dir: Path,
    config_env_file: Path,
    cwd: Path,
    load_env: Callable[[Path], bool],
    copy_file: Callable[[Path, Path], object],
    example_file: Optional[Path] = None,
) -> Optional[Path]:
    """Load the first ``.env`` found and return its path.

    Search order: ``<cwd>/.env``, then ``config_env_file``. When neither
    exists, ``example_file`` (default: ``.env.example`` beside the package)
    is copied to ``config_env_file`` and loaded.
    """
    for candidate in (cwd / ".env", config_env_file):
        if candidate.is_file():
            load_env(candidate)
            return candidate

    example = example_file or Path(__file__).parent.parent / ".env.example"
    if not example.is_file():
        return None

    try:
        config_dir.mkdir(parents=True, exist_ok=True)
        copy_file(example, config_env_file)
    except OSError as exc:
        logging.debug("Could not seed %s: %s", config_env_file, exc)
        return None

    logging.info(
        "Created config file at %s from .env.example. "
        "Edit it to change crawl defaults.",
        config_env_file,
    )
    load_env(config_env_file)
    return config_env_file
