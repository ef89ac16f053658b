"""Modules package for vibe coding.

This package provides a unified API for the CLI and WebUI components
to access the core functionality of vibe coding.
"""

from vibe_coding.modules.xml_parser import (
    ChangeAction,
    FileChange,
    MalformedXMLError,
    ParseOutcome,
    ParseWarning,
    XMLParserError,
    parse_xml_string,
)
from vibe_coding.modules.change_applier import ApplyReport, InvalidSelectionError, apply_changes
from vibe_coding.modules.diff_viewer import DiffArtifacts, materialize_diff
from vibe_coding.modules.file_tree import WorkspaceNode, WorkspaceTree, build_file_tree
from vibe_coding.modules.xml_generator import WorkspaceXMLGenerator, generate_workspace_xml
from vibe_coding.modules.session import Command, Event, Session

# Define a version to track API compatibility
__api_version__ = '1.0.0'
