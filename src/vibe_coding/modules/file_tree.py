"""Workspace tree builder."""

import os
import logging
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional

from vibe_coding.utils.ignore import DEFAULT_IGNORE_FILE, build_ignore_filter

logger = logging.getLogger(__name__)

BIGGEST_FILES_COUNT = 10

# Dependency and tool caches that are never part of the workspace tree
EXCLUDED_DIRS = {
    ".git", ".hg", ".svn",
    # Node.js
    "node_modules", "bower_components", "jspm_packages", ".next", ".nuxt",
    # Python
    "__pycache__", ".venv", "venv", ".tox", ".mypy_cache", ".pytest_cache", ".ruff_cache",
    # Java/Gradle, Swift
    ".gradle", "Pods",
}


class WorkspaceNode:
    """A file or directory in the workspace tree."""

    def __init__(
        self,
        path: str,
        is_directory: bool,
        size: int = 0,
        children: Optional[List['WorkspaceNode']] = None,
        selected: bool = True,
        expanded: bool = False,
    ):
        """Initialize a WorkspaceNode.

        Args:
            path: POSIX path relative to the workspace root
            is_directory: Whether this node is a directory
            size: File size in bytes (always 0 for directories)
            children: Child nodes (directories only)
            selected: Presentation selection flag
            expanded: Presentation expansion flag
        """
        self.path = path
        self.name = path.rsplit("/", 1)[-1]
        self.is_directory = is_directory
        self.size = 0 if is_directory else size
        self.children = children if children is not None else []
        self.selected = selected
        self.expanded = expanded

    def __repr__(self) -> str:
        kind = "Directory" if self.is_directory else "File"
        return f"WorkspaceNode({kind}, {self.path})"

    def sort_children(self) -> None:
        """Sort directories before files, each alphabetically, recursively."""
        self.children.sort(key=lambda node: (not node.is_directory, node.name))
        for child in self.children:
            if child.is_directory:
                child.sort_children()

    def to_dict(self) -> dict:
        """Serialize to the camelCase shape used by host messages."""
        data = {
            "path": self.path,
            "name": self.name,
            "isDirectory": self.is_directory,
            "selected": self.selected,
            "expanded": self.expanded,
        }
        if self.is_directory:
            data["children"] = [child.to_dict() for child in self.children]
        else:
            data["size"] = self.size
        return data


class WorkspaceTree:
    """The hierarchical workspace model plus the biggest-files index."""

    def __init__(self, root: Path, tree: List[WorkspaceNode], biggest_files: List[WorkspaceNode],
                 files: List[WorkspaceNode]):
        self.root = root
        self.tree = tree
        self.biggest_files = biggest_files
        # Every retained file node, in traversal order
        self.files = files

    def to_dict(self) -> dict:
        return {
            "tree": [node.to_dict() for node in self.tree],
            "biggestFiles": [node.to_dict() for node in self.biggest_files],
        }


def walk_workspace(workspace_root, is_ignored: Callable[[str], bool]) -> Iterator[str]:
    """
    Yield POSIX relative paths of every retained file under the root.

    Excluded cache directories and ignored directories are pruned from the
    walk; directory and file names are visited alphabetically.

    Args:
        workspace_root: The workspace root directory
        is_ignored: Ignore predicate over relative paths

    Yields:
        Relative file paths
    """
    root = Path(workspace_root)

    for current, dirs, files in os.walk(root):
        current_path = Path(current)
        rel_dir = "" if current_path == root else current_path.relative_to(root).as_posix() + "/"

        kept_dirs = []
        for directory in sorted(dirs):
            if directory in EXCLUDED_DIRS or is_ignored(f"{rel_dir}{directory}/"):
                continue
            # Don't follow directory symlinks out of the tree
            if os.path.islink(os.path.join(current, directory)):
                continue
            kept_dirs.append(directory)
        dirs[:] = kept_dirs

        for file in sorted(files):
            rel_path = f"{rel_dir}{file}"
            if is_ignored(rel_path):
                continue
            yield rel_path


def build_file_tree(
    workspace_root,
    ignore_file: str = DEFAULT_IGNORE_FILE,
    biggest_files_count: int = BIGGEST_FILES_COUNT,
) -> WorkspaceTree:
    """
    Build the workspace tree and the biggest-files index.

    Args:
        workspace_root: The workspace root directory
        ignore_file: Name of the ignore-rules file at the root
        biggest_files_count: Size of the biggest-files index

    Returns:
        The WorkspaceTree
    """
    root = Path(workspace_root)
    is_ignored = build_ignore_filter(root, ignore_file)

    tree: List[WorkspaceNode] = []
    directories: Dict[str, WorkspaceNode] = {}
    files: List[WorkspaceNode] = []
    sized_files: List[WorkspaceNode] = []

    for rel_path in walk_workspace(root, is_ignored):
        try:
            size = (root / rel_path).stat().st_size
            stat_ok = True
        except OSError as e:
            logger.warning(f"Could not stat {rel_path}: {e}")
            size = 0
            stat_ok = False

        segments = rel_path.split("/")
        siblings = tree
        cumulative = ""
        for segment in segments[:-1]:
            cumulative = f"{cumulative}/{segment}" if cumulative else segment
            directory = directories.get(cumulative)
            if directory is None:
                directory = WorkspaceNode(cumulative, is_directory=True)
                directories[cumulative] = directory
                siblings.append(directory)
            siblings = directory.children

        node = WorkspaceNode(rel_path, is_directory=False, size=size)
        siblings.append(node)
        files.append(node)
        if stat_ok:
            sized_files.append(node)

    tree.sort(key=lambda node: (not node.is_directory, node.name))
    for node in tree:
        if node.is_directory:
            node.sort_children()

    # sorted() is stable, so equal sizes keep traversal order
    biggest_files = sorted(sized_files, key=lambda node: node.size, reverse=True)[:biggest_files_count]

    logger.info(f"Built workspace tree for {root}: {len(files)} files, {len(directories)} directories")
    return WorkspaceTree(root, tree, biggest_files, files)


def format_file_map(workspace_tree: WorkspaceTree) -> str:
    """Render the tree as an indented plain-text listing."""
    lines = [workspace_tree.root.resolve().name or str(workspace_tree.root)]

    def add_nodes(nodes: List[WorkspaceNode], prefix: str) -> None:
        for i, node in enumerate(nodes):
            is_last = i == len(nodes) - 1
            lines.append(f"{prefix}{'└── ' if is_last else '├── '}{node.name}")
            if node.is_directory:
                add_nodes(node.children, prefix + ('    ' if is_last else '│   '))

    add_nodes(workspace_tree.tree, "")
    return "\n".join(lines)
