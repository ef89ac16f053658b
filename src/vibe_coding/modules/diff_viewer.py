"""Materialize before/after snapshots of a change for external diff views."""

import os
import difflib
import logging
import tempfile

from vibe_coding.modules.xml_parser import FileChange

logger = logging.getLogger(__name__)

TEMP_PREFIX = "vibe-coding-diff-"


class DiffArtifacts:
    """Paths of the two temporary files holding a change's snapshots."""

    def __init__(self, before_path: str, after_path: str, title: str):
        self.before_path = before_path
        self.after_path = after_path
        self.title = title

    def to_dict(self) -> dict:
        return {
            "beforePath": self.before_path,
            "afterPath": self.after_path,
            "title": self.title,
        }

    def __repr__(self) -> str:
        return f"DiffArtifacts({self.before_path!r}, {self.after_path!r})"


def materialize_diff(change: FileChange, temp_root=None) -> DiffArtifacts:
    """
    Write a change's ``before`` and ``after`` text to two new temporary files.

    Every call creates a fresh, uniquely named directory. The real target
    file is never touched, and the caller owns cleanup of the artifacts.

    Args:
        change: The change to materialize
        temp_root: Directory to create the artifacts in (system temp dir by default)

    Returns:
        The DiffArtifacts for the change
    """
    temp_dir = tempfile.mkdtemp(prefix=TEMP_PREFIX, dir=temp_root)
    base_name = os.path.basename(change.file_path.rstrip("/\\")) or "file"

    before_path = os.path.join(temp_dir, f"original_{base_name}")
    after_path = os.path.join(temp_dir, f"modified_{base_name}")

    with open(before_path, 'w', encoding='utf-8', newline='') as f:
        f.write(change.before)
    with open(after_path, 'w', encoding='utf-8', newline='') as f:
        f.write(change.after)

    title = f"{base_name} (Original) ↔ {base_name} (Modified)"
    logger.debug(f"Materialized diff for {change.file_path} in {temp_dir}")
    return DiffArtifacts(before_path, after_path, title)


def unified_diff(artifacts: DiffArtifacts, context_lines: int = 3) -> str:
    """Render a unified diff of two materialized artifacts."""
    with open(artifacts.before_path, 'r', encoding='utf-8', newline='') as f:
        before = f.read()
    with open(artifacts.after_path, 'r', encoding='utf-8', newline='') as f:
        after = f.read()

    diff = difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=os.path.basename(artifacts.before_path),
        tofile=os.path.basename(artifacts.after_path),
        n=context_lines,
    )
    return "".join(diff)
