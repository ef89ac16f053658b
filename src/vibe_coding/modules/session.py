"""Message contract between a host (WebUI, editor panel) and the core modules.

A host sends ``{"command": ..., "payload": ...}`` messages to
:meth:`Session.handle_message` and receives ``{"command": ..., "payload": ...}``
events through the ``post_message`` callback it supplied. The command and
event vocabularies are closed enums; every command has exactly one handler.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from vibe_coding.config import Settings
from vibe_coding.modules.change_applier import InvalidSelectionError, apply_changes
from vibe_coding.modules.diff_viewer import DiffArtifacts, materialize_diff
from vibe_coding.modules.file_tree import build_file_tree
from vibe_coding.modules.xml_generator import WorkspaceXMLGenerator
from vibe_coding.modules.xml_parser import FileChange, XMLParserError, parse_xml_string
from vibe_coding.utils.clipboard import ClipboardError, copy_to_clipboard

logger = logging.getLogger(__name__)


class Command(str, Enum):
    """Requests a host can send."""
    APPLY_XML = "applyXml"
    CONFIRM_APPLY = "confirmApply"
    CANCEL_CHANGES = "cancelChanges"
    VIEW_DIFF = "viewDiff"
    GET_FILE_TREE = "getFileTree"
    COPY_FILE_TREE_OUTPUT = "copyFileTreeOutput"


class Event(str, Enum):
    """Responses and notifications posted back to the host."""
    DISPLAY_CHANGES = "displayChanges"
    CHANGES_APPLIED = "changesApplied"
    CHANGES_CLEARED = "changesCleared"
    OPEN_DIFF = "openDiff"
    DISPLAY_FILE_TREE = "displayFileTree"
    PROCESSING_STARTED = "processingStarted"
    PROCESSING_PROGRESS = "processingProgress"
    PROCESSING_COMPLETE = "processingComplete"
    WARNING = "warning"
    ERROR = "error"


class Session:
    """One host session: owns the pending change batch for a workspace."""

    def __init__(
        self,
        workspace_root,
        post_message: Callable[[Dict[str, Any]], None],
        settings: Optional[Settings] = None,
        clipboard: Callable[[str], None] = copy_to_clipboard,
        diff_opener: Optional[Callable[[DiffArtifacts], None]] = None,
        yield_callback: Optional[Callable[[], None]] = None,
    ):
        """Initialize a Session.

        Args:
            workspace_root: The workspace all paths are resolved against
            post_message: Callback receiving event messages for the host
            settings: Size ceilings, batch size and ignore file
            clipboard: Callable delivering emitted XML to the clipboard
            diff_opener: Callable opening an external diff view; when omitted
                an ``openDiff`` event carrying the artifact paths is posted
            yield_callback: Cooperative yield used between emitter batches
        """
        self.workspace_root = Path(workspace_root)
        self.post_message = post_message
        self.settings = settings or Settings()
        self.clipboard = clipboard
        self.diff_opener = diff_opener
        self.yield_callback = yield_callback
        self.pending_changes: List[FileChange] = []

        self._handlers = {
            Command.APPLY_XML: self._apply_xml,
            Command.CONFIRM_APPLY: self._confirm_apply,
            Command.CANCEL_CHANGES: self._cancel_changes,
            Command.VIEW_DIFF: self._view_diff,
            Command.GET_FILE_TREE: self._get_file_tree,
            Command.COPY_FILE_TREE_OUTPUT: self._copy_file_tree_output,
        }
        missing = set(Command) - set(self._handlers)
        if missing:
            raise RuntimeError(f"Commands without handlers: {missing}")

    def post(self, event: Event, payload: Any = None) -> None:
        """Post an event message to the host."""
        self.post_message({"command": event.value, "payload": payload})

    def post_error(self, message: str) -> None:
        logger.error(message)
        self.post(Event.ERROR, {"message": message})

    def handle_message(self, message: Dict[str, Any]) -> None:
        """Dispatch one host message. Never raises."""
        if not isinstance(message, dict):
            self.post_error(f"Invalid message: {message!r}")
            return

        raw_command = message.get("command")
        try:
            command = Command(raw_command)
        except ValueError:
            logger.warning(f"Unknown command received: {raw_command}")
            self.post_error(f"Unknown command: {raw_command}")
            return

        payload = message.get("payload")
        try:
            self._handlers[command](payload if payload is not None else {})
        except Exception as e:
            logger.exception(f"Unhandled error while processing {command.value}")
            self.post_error(f"Error processing {command.value}: {e}")

    def _apply_xml(self, payload) -> None:
        # A new parse always discards the previous batch
        self.pending_changes = []
        xml_string = payload if isinstance(payload, str) else payload.get("xml", "")

        if not xml_string or not xml_string.strip():
            self.post_error("No XML input provided.")
            return

        try:
            outcome = parse_xml_string(xml_string, self.workspace_root)
        except XMLParserError as e:
            self.post_error(str(e))
            return

        if outcome.warning is not None:
            self.post(Event.WARNING, {"message": outcome.warning_message, "reason": outcome.warning.value})

        self.pending_changes = outcome.changes
        self.post(Event.DISPLAY_CHANGES, [change.to_dict() for change in self.pending_changes])

    def _confirm_apply(self, payload) -> None:
        if isinstance(payload, dict):
            selected_indexes = payload.get("selectedIndexes")
        else:
            selected_indexes = payload
        if selected_indexes is None:
            selected_indexes = [change.index for change in self.pending_changes if change.selected]

        try:
            report = apply_changes(self.pending_changes, selected_indexes, self.workspace_root)
        except InvalidSelectionError as e:
            # The pending batch survives an invalid request
            self.post_error(str(e))
            return

        self.pending_changes = []
        if report.failed:
            failed = ", ".join(change.file_path for change, _ in report.failed)
            self.post(Event.WARNING, {"message": f"Failed to apply {len(report.failed)} changes: {failed}"})
        self.post(Event.CHANGES_APPLIED, report.to_dict())

    def _cancel_changes(self, payload) -> None:
        self.pending_changes = []
        self.post(Event.CHANGES_CLEARED)

    def _view_diff(self, payload) -> None:
        index = payload.get("index") if isinstance(payload, dict) else payload
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(self.pending_changes):
            self.post_error(f"Invalid change index: {index}")
            return

        artifacts = materialize_diff(self.pending_changes[index])
        if self.diff_opener is not None:
            self.diff_opener(artifacts)
        else:
            self.post(Event.OPEN_DIFF, dict(artifacts.to_dict(), index=index))

    def _get_file_tree(self, payload) -> None:
        workspace_tree = build_file_tree(
            self.workspace_root,
            ignore_file=self.settings.ignore_file,
            biggest_files_count=self.settings.biggest_files_count,
        )
        self.post(Event.DISPLAY_FILE_TREE, workspace_tree.to_dict())

    def _copy_file_tree_output(self, payload) -> None:
        instructions = payload.get("instructions", "") or ""
        selection = payload.get("selection") or []

        self.post(Event.PROCESSING_STARTED)

        def report_progress(processed: int, total: int) -> None:
            self.post(Event.PROCESSING_PROGRESS, {"processed": processed, "total": total})

        generator = WorkspaceXMLGenerator(
            self.workspace_root,
            settings=self.settings,
            progress_callback=report_progress,
            yield_callback=self.yield_callback,
        )
        xml_output = generator.generate(instructions, selection)

        try:
            self.clipboard(xml_output)
        except ClipboardError as e:
            self.post_error(f"Could not copy output to clipboard: {e}")
            return

        self.post(Event.PROCESSING_COMPLETE, {
            "includedCount": len(generator.included_files),
            "skippedCount": len(generator.skipped_files),
            "totalBytes": generator.total_bytes,
            "length": len(xml_output),
        })
