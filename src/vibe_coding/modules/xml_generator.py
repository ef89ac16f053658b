"""Serialize a workspace selection into the XML change dialect for LLM prompts."""

import time
import logging
from pathlib import PurePosixPath
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from xml.sax.saxutils import escape, quoteattr

from vibe_coding.config import Settings
from vibe_coding.modules.file_tree import WorkspaceNode, WorkspaceTree, build_file_tree, format_file_map
from vibe_coding.modules.xml_parser import FENCE, INSTRUCTIONS_TAG, is_fence_safe

logger = logging.getLogger(__name__)

DOCUMENT_TAG = "vibe_coding"

# Content of these is never embedded, selected or not
BINARY_EXTENSIONS = {
    # Archives
    ".zip", ".tar", ".gz", ".tgz", ".bz2", ".xz", ".rar", ".7z", ".jar", ".war", ".ear",
    # Compiled objects and executables
    ".exe", ".dll", ".so", ".dylib", ".o", ".a", ".obj", ".lib", ".class", ".pyc", ".pyo",
    ".wasm", ".bin", ".dat",
    # Images
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".tif", ".tiff", ".psd",
    ".heic", ".avif",
    # Audio / video
    ".mp3", ".wav", ".ogg", ".flac", ".aac", ".m4a", ".mp4", ".mov", ".avi", ".mkv", ".webm",
    # Office documents
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".odt", ".ods", ".odp",
    # Fonts and databases
    ".woff", ".woff2", ".ttf", ".otf", ".eot", ".sqlite", ".db",
}

USAGE_INSTRUCTIONS = f"""You are editing the files listed above. Reply ONLY with XML in the format below.

Rules:
- Wrap every file you touch in a "file" element with a "path" attribute (relative to the
  workspace root) and an "action" attribute: "create", "rewrite" or "delete".
- For "create" and "rewrite", add one "change" element holding a short "description" and
  the COMPLETE new file content inside "content", fenced by lines containing only {FENCE}.
  Never send partial files or diffs.
- For "delete", the "file" element needs no children.
- Do not add commentary outside the XML.

Example:
<file path="src/example.py" action="rewrite">
  <change>
    <description>Explain what changed</description>
    <content>
{FENCE}
def example():
    return 42
{FENCE}
    </content>
  </change>
</file>
<file path="src/obsolete.py" action="delete"/>"""


def is_binary_path(path: str) -> bool:
    """Check whether a path has an extension on the binary denylist."""
    return PurePosixPath(path).suffix.lower() in BINARY_EXTENSIONS


def _clean_selection_path(path: str) -> str:
    path = path.replace("\\", "/").strip()
    while path.startswith("./"):
        path = path[2:]
    return path.strip("/")


def build_selection_filter(selection: Optional[Iterable[Dict]]) -> Callable[[str], bool]:
    """
    Compile the user's selection into an inclusion predicate.

    A file is included when its path is explicitly selected or when it lies
    under a selected directory. Directory matching is by path segment, so
    selecting ``lib`` never pulls in ``lib2/``. An empty selection includes
    everything.

    Args:
        selection: Items shaped ``{"path": str, "isDirectory": bool}``

    Returns:
        The predicate over relative file paths
    """
    selected_files = set()
    selected_dirs = set()

    for item in selection or []:
        path = _clean_selection_path(item.get("path", ""))
        is_directory = item.get("isDirectory", item.get("is_directory", False))
        if is_directory:
            selected_dirs.add(path)
        elif path:
            selected_files.add(path)

    if not selected_files and not selected_dirs:
        return lambda _path: True

    def is_selected(path: str) -> bool:
        if path in selected_files:
            return True
        if "" in selected_dirs:
            return True
        parent = PurePosixPath(path).parent
        while str(parent) != ".":
            if str(parent) in selected_dirs:
                return True
            parent = parent.parent
        return False

    return is_selected


def _comment(text: str) -> str:
    # "--" is not allowed inside XML comments
    return "<!-- " + text.replace("--", "- -") + " -->"


def _file_block(path: str, content: str) -> str:
    return (
        f"<file path={quoteattr(path)} action=\"rewrite\">\n"
        f"<change>\n"
        f"<description>{escape(f'Current content of {path}')}</description>\n"
        f"<content>\n{FENCE}\n{content}\n{FENCE}\n</content>\n"
        f"</change>\n"
        f"</file>"
    )


class WorkspaceXMLGenerator:
    """Builds the XML prompt document for one workspace.

    After :meth:`generate` the generator exposes what happened:
    ``included_files``, ``skipped_files`` (path to reason) and
    ``total_bytes`` of embedded content.
    """

    def __init__(
        self,
        workspace_root,
        settings: Optional[Settings] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
        yield_callback: Optional[Callable[[], None]] = None,
    ):
        self.workspace_root = workspace_root
        self.settings = settings or Settings()
        self.progress_callback = progress_callback
        self.yield_callback = yield_callback or (lambda: time.sleep(0))

        self.included_files: List[str] = []
        self.skipped_files: Dict[str, str] = {}
        self.total_bytes = 0

    def _report_progress(self, processed: int, total: int) -> None:
        if self.progress_callback is not None:
            self.progress_callback(processed, total)

    def _read_text(self, node: WorkspaceNode) -> Optional[str]:
        try:
            with open(self.workspace_root / node.path, 'r', encoding='utf-8', newline='') as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Could not read {node.path} as text: {e}")
            return None
        if "\x00" in content:
            return None
        return content

    def _render_file(self, node: WorkspaceNode, limit_reached: bool) -> Tuple[str, bool]:
        """Render one file block or skip placeholder; returns (text, limit_reached)."""
        max_file_size = self.settings.max_file_size
        max_total_size = self.settings.max_total_size

        if node.size > max_file_size:
            reason = f"{node.size} bytes exceeds the per-file limit of {max_file_size} bytes"
            self.skipped_files[node.path] = reason
            return _comment(f"Skipped {node.path}: {reason}"), limit_reached

        if limit_reached:
            reason = f"total output limit of {max_total_size} bytes reached"
            self.skipped_files[node.path] = reason
            return _comment(f"Skipped {node.path} ({node.size} bytes): {reason}"), limit_reached

        content = self._read_text(node)
        if content is None:
            reason = "could not be read as UTF-8 text"
            self.skipped_files[node.path] = reason
            return _comment(f"Skipped {node.path}: {reason}"), limit_reached

        # An empty payload would compile back to a delete
        if not content.strip():
            reason = "file is empty"
            self.skipped_files[node.path] = reason
            return _comment(f"Skipped {node.path}: {reason}"), limit_reached

        if not is_fence_safe(content):
            reason = "contains fence markers the change format cannot delimit"
            self.skipped_files[node.path] = reason
            return _comment(f"Skipped {node.path}: {reason}"), limit_reached

        size = len(content.encode("utf-8"))
        if size > max_file_size:
            reason = f"{size} bytes exceeds the per-file limit of {max_file_size} bytes"
            self.skipped_files[node.path] = reason
            return _comment(f"Skipped {node.path}: {reason}"), limit_reached

        if max_total_size is not None and self.total_bytes + size > max_total_size:
            logger.warning(f"Total output limit of {max_total_size} bytes reached at {node.path}")
            reason = f"total output limit of {max_total_size} bytes reached"
            self.skipped_files[node.path] = reason
            return _comment(f"Skipped {node.path} ({size} bytes): {reason}"), True

        self.total_bytes += size
        self.included_files.append(node.path)
        return _file_block(node.path, content), limit_reached

    def generate(
        self,
        instructions: str = "",
        selection: Optional[Iterable[Dict]] = None,
        workspace_tree: Optional[WorkspaceTree] = None,
    ) -> str:
        """
        Generate the XML document.

        Args:
            instructions: Free-text instructions appended for the LLM
            selection: Selected paths, ``{"path": str, "isDirectory": bool}``
            workspace_tree: A prebuilt tree (built fresh when omitted)

        Returns:
            The XML text
        """
        if workspace_tree is None:
            workspace_tree = build_file_tree(
                self.workspace_root,
                ignore_file=self.settings.ignore_file,
                biggest_files_count=self.settings.biggest_files_count,
            )
        self.workspace_root = workspace_tree.root
        self.included_files = []
        self.skipped_files = {}
        self.total_bytes = 0

        is_selected = build_selection_filter(selection)
        candidates = sorted(
            (node for node in workspace_tree.files if is_selected(node.path) and not is_binary_path(node.path)),
            key=lambda node: node.path,
        )
        total = len(candidates)
        batch_size = max(1, self.settings.batch_size)

        parts = [
            f"<{DOCUMENT_TAG}>",
            "<file_map>",
            escape(format_file_map(workspace_tree)),
            "</file_map>",
        ]

        self._report_progress(0, total)
        limit_reached = False
        for start in range(0, total, batch_size):
            for node in candidates[start:start + batch_size]:
                block, limit_reached = self._render_file(node, limit_reached)
                parts.append(block)
            self._report_progress(min(start + batch_size, total), total)
            self.yield_callback()

        parts.append(f"<{INSTRUCTIONS_TAG}>\n{USAGE_INSTRUCTIONS}\n</{INSTRUCTIONS_TAG}>")
        if instructions and instructions.strip():
            parts.append(f"<user_instructions>\n{escape(instructions.strip())}\n</user_instructions>")
        parts.append(f"</{DOCUMENT_TAG}>")

        logger.info(
            f"Generated XML for {len(self.included_files)} files "
            f"({self.total_bytes} bytes), skipped {len(self.skipped_files)}"
        )
        return "\n".join(parts)


def generate_workspace_xml(
    workspace_root,
    instructions: str = "",
    selection: Optional[Iterable[Dict]] = None,
    settings: Optional[Settings] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    yield_callback: Optional[Callable[[], None]] = None,
) -> str:
    """
    Serialize the workspace (or the selected part of it) into XML.

    Args:
        workspace_root: The workspace root directory
        instructions: Free-text instructions appended for the LLM
        selection: Selected paths, ``{"path": str, "isDirectory": bool}``
        settings: Size ceilings and batch size
        progress_callback: Called with ``(processed, total)`` at batch boundaries
        yield_callback: Called between batches to hand control back to the host

    Returns:
        The XML text
    """
    generator = WorkspaceXMLGenerator(workspace_root, settings, progress_callback, yield_callback)
    return generator.generate(instructions, selection)
