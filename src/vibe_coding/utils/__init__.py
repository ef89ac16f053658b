"""Utilities package for vibe coding.

This package provides utility functions shared between the CLI, the WebUI
and the core change-set modules.
"""

from vibe_coding.utils.paths import normalize_file_path, resolve_workspace_path, PathOutsideWorkspaceError
from vibe_coding.utils.ignore import build_ignore_filter, load_ignore_spec
from vibe_coding.utils.clipboard import copy_to_clipboard, paste_from_clipboard, ClipboardError
from vibe_coding.utils.notifications import show_toast
