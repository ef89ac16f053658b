"""Apply a user-selected subset of parsed file changes to the workspace."""

import os
import logging
from typing import Iterable, List, Optional, Tuple

from vibe_coding.modules.xml_parser import ChangeAction, FileChange
from vibe_coding.utils.paths import resolve_workspace_path

logger = logging.getLogger(__name__)


class InvalidSelectionError(Exception):
    """Exception raised when a selection references entries that do not exist."""

    def __init__(self, invalid_indexes: Iterable[int]):
        self.invalid_indexes = sorted(invalid_indexes)
        super().__init__(f"Invalid change index(es): {', '.join(str(i) for i in self.invalid_indexes)}")


class ApplyReport:
    """Outcome of applying a selection of changes.

    ``results`` holds one ``(change, success, error_message)`` tuple per
    selected change, in the order the changes were applied.
    """

    def __init__(self, results: Optional[List[Tuple[FileChange, bool, Optional[str]]]] = None):
        self.results = results or []

    @property
    def nothing_applied(self) -> bool:
        return not self.results

    @property
    def applied(self) -> List[FileChange]:
        return [change for change, success, _ in self.results if success]

    @property
    def failed(self) -> List[Tuple[FileChange, Optional[str]]]:
        return [(change, error) for change, success, error in self.results if not success]

    @property
    def success(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        """Serialize to the shape used by host messages."""
        return {
            "nothingApplied": self.nothing_applied,
            "appliedCount": len(self.applied),
            "failedCount": len(self.failed),
            "results": [
                {
                    "index": change.index,
                    "filePath": change.file_path,
                    "action": change.action.value,
                    "success": success,
                    "error": error,
                }
                for change, success, error in self.results
            ],
        }

    def __repr__(self) -> str:
        return f"ApplyReport(applied={len(self.applied)}, failed={len(self.failed)})"


def write_file(repo_path, relative_path: str, content: str) -> None:
    """Create or overwrite a file, creating parent directories as needed.

    Raises:
        OSError: If the file cannot be written
        PathOutsideWorkspaceError: If the path escapes the workspace
    """
    full_path = resolve_workspace_path(repo_path, relative_path)
    os.makedirs(full_path.parent, exist_ok=True)

    with open(full_path, 'w', encoding='utf-8', newline='') as f:
        f.write(content or "")


def delete_file(repo_path, relative_path: str) -> None:
    """Delete a file from the workspace.

    Raises:
        FileNotFoundError: If the file does not exist
        OSError: If the file cannot be removed
        PathOutsideWorkspaceError: If the path escapes the workspace
    """
    full_path = resolve_workspace_path(repo_path, relative_path)
    os.remove(full_path)


def apply_change(change: FileChange, repo_path) -> None:
    """Perform the filesystem mutation for a single change."""
    if change.action is ChangeAction.DELETE:
        delete_file(repo_path, change.file_path)
    else:
        write_file(repo_path, change.file_path, change.after)


def validate_selection(changes: List[FileChange], selected_indexes: Iterable[int]) -> set:
    """Check that every selected index names a change in the batch.

    Returns:
        The selection as a set of ints

    Raises:
        InvalidSelectionError: If any index is unknown
    """
    try:
        selection = {int(index) for index in selected_indexes}
    except (TypeError, ValueError) as e:
        raise InvalidSelectionError([]) from e

    known = {change.index for change in changes}
    unknown = selection - known
    if unknown:
        raise InvalidSelectionError(unknown)
    return selection


def apply_changes(changes: List[FileChange], selected_indexes: Iterable[int], repo_path) -> ApplyReport:
    """Apply the selected changes in their original order.

    Each change is applied independently: a failure is recorded in the report
    and the remaining changes still run. Duplicate paths are applied in order,
    so the last selected change to a path wins.

    Args:
        changes: The parsed change set
        selected_indexes: Indexes of the changes to apply
        repo_path: The workspace root

    Returns:
        An ApplyReport (``nothing_applied`` when the selection is empty)

    Raises:
        InvalidSelectionError: If the selection references unknown indexes.
            Nothing is applied in that case.
    """
    selection = validate_selection(changes, selected_indexes)
    selected = [change for change in changes if change.index in selection]

    if not selected:
        logger.info("No changes selected, nothing applied")
        return ApplyReport()

    results = []
    for change in selected:
        try:
            apply_change(change, repo_path)
        except FileNotFoundError:
            error_message = f"File does not exist: {change.file_path}"
            logger.error(f"Failed to apply {change.action.value} to {change.file_path}: {error_message}")
            results.append((change, False, error_message))
        except Exception as e:
            logger.error(f"Failed to apply {change.action.value} to {change.file_path}: {e}")
            results.append((change, False, str(e)))
        else:
            logger.info(f"Applied {change.action.value} to {change.file_path}")
            results.append((change, True, None))

    report = ApplyReport(results)
    logger.info(f"Applied {len(report.applied)} changes successfully")
    if report.failed:
        logger.warning(f"Failed to apply {len(report.failed)} changes")
    return report
