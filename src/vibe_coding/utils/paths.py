"""Path utilities for resolving change paths against a workspace."""

import os
from pathlib import Path


class PathOutsideWorkspaceError(Exception):
    """Exception raised when a path resolves outside the workspace root."""

    def __init__(self, path: str, workspace_root: str):
        super().__init__(f"Path '{path}' resolves outside the workspace root '{workspace_root}'")
        self.path = path
        self.workspace_root = workspace_root


def normalize_file_path(file_path: str) -> str:
    """
    Canonicalize a user-supplied file path.

    Absolute paths are only OS-normalized. Relative paths are given a
    leading ``./`` (unless they already climb with ``../``) before
    normalization, so ``a.txt`` and ``./a.txt`` end up identical.

    Args:
        file_path: The raw path from the change description

    Returns:
        The normalized path string
    """
    file_path = file_path.strip()
    if os.path.isabs(file_path):
        return os.path.normpath(file_path)

    normalized = os.path.normpath(file_path.replace("\\", "/"))
    if normalized == os.pardir or normalized.startswith(os.pardir + os.sep):
        return normalized
    if normalized == os.curdir:
        return os.curdir
    return os.curdir + os.sep + normalized


def resolve_workspace_path(workspace_root, file_path: str) -> Path:
    """
    Resolve a (normalized) change path to an absolute path inside the workspace.

    Args:
        workspace_root: The workspace root directory
        file_path: A relative or absolute file path

    Returns:
        The absolute Path

    Raises:
        PathOutsideWorkspaceError: If the path escapes the workspace root
    """
    root = Path(workspace_root).resolve()
    candidate = Path(file_path)
    if not candidate.is_absolute():
        candidate = root / candidate
    resolved = candidate.resolve(strict=False)

    if resolved != root and root not in resolved.parents:
        raise PathOutsideWorkspaceError(file_path, str(root))
    return resolved

