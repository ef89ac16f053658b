"""Ignore-rule handling for workspace walks."""

import logging
from pathlib import Path
from typing import Callable

import pathspec

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_FILE = ".gitignore"


def load_ignore_spec(workspace_root, ignore_file: str = DEFAULT_IGNORE_FILE) -> pathspec.PathSpec:
    """
    Parse the ignore-rules file at the workspace root.

    Only the root-level file is read. A missing file yields an empty rule set.

    Args:
        workspace_root: The workspace root directory
        ignore_file: Name of the ignore-rules file

    Returns:
        A PathSpec object representing the rules
    """
    ignore_path = Path(workspace_root) / ignore_file
    lines = []

    if ignore_path.is_file():
        try:
            with open(ignore_path, 'r', encoding='utf-8', errors='ignore') as file:
                lines = file.read().splitlines()
            logger.debug(f"Loaded {len(lines)} lines from {ignore_path}")
        except OSError as e:
            logger.warning(f"Could not read ignore file {ignore_path}: {e}")

    return pathspec.GitIgnoreSpec.from_lines(lines)


def build_ignore_filter(workspace_root, ignore_file: str = DEFAULT_IGNORE_FILE) -> Callable[[str], bool]:
    """
    Compile the workspace ignore rules into a predicate.

    The predicate takes a POSIX path relative to the workspace root and
    returns True when the path is ignored. Directory paths should carry a
    trailing slash so directory-only patterns (``build/``) apply to them.

    Args:
        workspace_root: The workspace root directory
        ignore_file: Name of the ignore-rules file

    Returns:
        The is-ignored predicate
    """
    spec = load_ignore_spec(workspace_root, ignore_file)

    def is_ignored(relative_path: str) -> bool:
        relative_path = relative_path.replace("\\", "/")
        if relative_path.startswith("./"):
            relative_path = relative_path[2:]
        if not relative_path or relative_path == "/":
            return False
        return spec.match_file(relative_path)

    return is_ignored
