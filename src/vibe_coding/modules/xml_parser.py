"""XML parser module turning LLM change descriptions into file changes."""

import re
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from xml.dom import minidom
from xml.parsers.expat import ExpatError

from vibe_coding.utils.paths import normalize_file_path, resolve_workspace_path, PathOutsideWorkspaceError

# Configure logging
logger = logging.getLogger(__name__)

FENCE = "==="
ROOT_TAG = "changes"
INSTRUCTIONS_TAG = "xml_formatting_instructions"

ACTION_ALIASES = {
    "update": "rewrite",
    "replace": "rewrite",
}

_CONTENT_OPEN_RE = re.compile(r"<content\b[^>]*>", re.IGNORECASE)
_CONTENT_CLOSE_RE = re.compile(r"</content\s*>", re.IGNORECASE)
_FILE_OPEN_RE = re.compile(r"<file\b", re.IGNORECASE)
_LEADING_FENCE_RE = re.compile(r"\s*===")
_XML_DECLARATION_RE = re.compile(r"^\s*<\?xml[^>]*\?>\s*")
_OPEN_TAG_RE = re.compile(r"<([A-Za-z_][\w.:-]*)[^>]*?(/?)>")
_LAST_CLOSE_TAG_RE = re.compile(r"</([A-Za-z_][\w.:-]*)\s*>\s*$")
_MARKDOWN_BLOCK_RE = re.compile(r"```(?:xml)?\s*\n(.*?)```", re.DOTALL)


class XMLParserError(Exception):
    """Exception raised for errors in the XML parser."""
    pass


class MalformedXMLError(XMLParserError):
    """Exception raised when the change description cannot be parsed as markup."""

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        super().__init__(message)
        self.line = line
        self.column = column


class ChangeAction(str, Enum):
    """The kind of mutation a FileChange performs."""
    CREATE = "create"
    REWRITE = "rewrite"
    DELETE = "delete"


class ParseWarning(str, Enum):
    """Reasons a well-formed change description produced no changes."""
    NO_FILE_ELEMENTS = "no_file_elements"
    NO_CHANGES = "no_changes"


WARNING_MESSAGES = {
    ParseWarning.NO_FILE_ELEMENTS: "No <file> elements were found in the provided XML.",
    ParseWarning.NO_CHANGES: "No valid changes were prepared from the provided XML.",
}


class FileChange:
    """Class representing one atomic file change from parsed XML."""

    def __init__(
        self,
        file_path: str,
        action: ChangeAction,
        description: Optional[str] = None,
        before: str = "",
        after: str = "",
        index: int = 0,
        selected: bool = True,
    ):
        """Initialize a FileChange object.

        Args:
            file_path: The normalized file path (relative to the workspace or absolute)
            action: The change action (create, rewrite or delete)
            description: Human readable summary; generated when missing
            before: Snapshot of the file content at parse time
            after: Desired file content (always empty for delete)
            index: Position in the change set, used as the selection key
            selected: Whether the change is selected for applying
        """
        self.file_path = file_path
        self.action = ChangeAction(action)
        self.description = description or default_description(self.action, file_path)
        self.before = before or ""
        self.after = "" if self.action is ChangeAction.DELETE else (after or "")
        self.index = index
        self.selected = selected

    def __repr__(self) -> str:
        """Return a string representation of the FileChange object."""
        return f"FileChange({self.index}, {self.action.value}, {self.file_path})"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase shape used by host messages."""
        return {
            "filePath": self.file_path,
            "action": self.action.value,
            "description": self.description,
            "before": self.before,
            "after": self.after,
            "index": self.index,
            "selected": self.selected,
        }


class ParseOutcome:
    """Result of a successful compile: the changes plus an optional warning."""

    def __init__(
        self,
        changes: List[FileChange],
        warning: Optional[ParseWarning] = None,
        skipped: Optional[List[str]] = None,
    ):
        self.changes = changes
        self.warning = warning
        self.skipped = skipped or []

    @property
    def warning_message(self) -> Optional[str]:
        if self.warning is None:
            return None
        return WARNING_MESSAGES[self.warning]

    def __repr__(self) -> str:
        return f"ParseOutcome(changes={len(self.changes)}, warning={self.warning})"


def default_description(action: ChangeAction, file_path: str) -> str:
    """Generate a description for a change without one."""
    verbs = {
        ChangeAction.CREATE: "Create",
        ChangeAction.REWRITE: "Rewrite",
        ChangeAction.DELETE: "Delete",
    }
    return f"{verbs[ChangeAction(action)]} {file_path}"


def _cdata(text: str) -> str:
    """Wrap text in CDATA sections, splitting any embedded terminators.

    Carriage returns are written as ``&#13;`` between sections, since the
    parser would otherwise fold CRLF line endings into LF.
    """
    return "&#13;".join(
        "<![CDATA[" + part.replace("]]>", "]]]]><![CDATA[>") + "]]>"
        for part in text.split("\r")
    )


def _find_content_close(xml_string: str, inner_start: int):
    """Find the ``</content>`` tag closing the region that starts at ``inner_start``.

    A plain region ends at its first ``</content>``. A region that opens with
    a fence ends at the first ``</content>`` preceded by a second fence, so
    payloads may mention ``</content>`` themselves. That search never runs
    past the next ``<file`` tag; without a closing fence in reach the region
    falls back to its first ``</content>``.

    Returns:
        The regex match of the closing tag, or None if there is none
    """
    closes = _CONTENT_CLOSE_RE.finditer(xml_string, inner_start)
    first = next(closes, None)
    if first is None or not _LEADING_FENCE_RE.match(xml_string, inner_start):
        return first

    next_file = _FILE_OPEN_RE.search(xml_string, inner_start)
    limit = next_file.start() if next_file else len(xml_string)

    close_match = first
    while close_match is not None:
        if close_match is not first and close_match.start() > limit:
            break
        if xml_string.count(FENCE, inner_start, close_match.start()) >= 2:
            return close_match
        close_match = next(closes, None)
    return first


def is_fence_safe(payload: str) -> bool:
    """Check whether a payload survives a round trip through a fenced <content> block."""
    # A trailing carriage return would merge with the closing fence newline
    if payload.endswith("\r"):
        return False
    region = f"<content>\n{FENCE}\n{payload}\n{FENCE}\n</content>"
    close_match = _find_content_close(region, len("<content>"))
    return close_match is not None and close_match.end() == len(region)


def convert_fences_to_cdata(xml_string: str) -> str:
    """Convert ===...=== fenced blocks inside <content> tags to CDATA sections.

    For every <content> region whose inner text holds at least two ``===``
    markers, the text strictly between the first and last marker becomes a
    literal CDATA payload. Regions with fewer markers pass through unchanged.

    Args:
        xml_string: The raw change description

    Returns:
        The text with fenced content made literal
    """
    if FENCE not in xml_string:
        return xml_string

    parts = []
    position = 0

    while True:
        open_match = _CONTENT_OPEN_RE.search(xml_string, position)
        if not open_match:
            break

        inner_start = open_match.end()
        close_match = _find_content_close(xml_string, inner_start)
        if not close_match:
            break

        inner = xml_string[inner_start:close_match.start()]
        first = inner.find(FENCE)
        last = inner.rfind(FENCE)

        parts.append(xml_string[position:inner_start])
        if first != -1 and last > first:
            parts.append(_cdata(inner[first + len(FENCE):last]))
        else:
            parts.append(inner)
        parts.append(close_match.group(0))
        position = close_match.end()

    parts.append(xml_string[position:])
    return "".join(parts)


def extract_xml_from_markdown(text: str) -> str:
    """Extract XML content from markdown code blocks if present.

    Args:
        text: The text that may contain markdown-formatted XML

    Returns:
        The extracted XML content or the original text if no code blocks found
    """
    # Don't process text that already has XML tags at the beginning
    if text.lstrip().startswith('<'):
        return text

    match = _MARKDOWN_BLOCK_RE.search(text)
    if match and '<' in match.group(1):
        return match.group(1)

    return text


def _first_element_name(xml_string: str) -> Optional[str]:
    """Return the name of the first element, skipping comments and declarations."""
    stripped = re.sub(r"<!--.*?-->", "", xml_string, flags=re.DOTALL).lstrip()
    match = _OPEN_TAG_RE.match(stripped)
    if not match:
        return None
    return match.group(1)


def has_root_element(xml_string: str) -> bool:
    """Check whether the text appears to be enclosed by a single root element."""
    stripped = xml_string.strip()
    first = _first_element_name(stripped)
    if first is None:
        return False
    last = _LAST_CLOSE_TAG_RE.search(stripped)
    return last is not None and last.group(1) == first


def ensure_root_element(xml_string: str) -> str:
    """Wrap the change description in a synthetic root element when it has none.

    Text that opens with a bare ``<file>`` element is always wrapped, since
    LLM replies frequently list several top-level <file> blocks. A leading XML
    declaration stays in front of the synthetic root.

    Args:
        xml_string: The (fence-repaired) change description

    Returns:
        Text with exactly one root element
    """
    declaration = ""
    match = _XML_DECLARATION_RE.match(xml_string)
    if match:
        declaration = match.group(0).strip()
        xml_string = xml_string[match.end():]

    xml_string = xml_string.strip()
    if _first_element_name(xml_string) == "file" or not has_root_element(xml_string):
        logger.debug("Wrapping change description in a synthetic root element")
        xml_string = f"<{ROOT_TAG}>{xml_string}</{ROOT_TAG}>"

    return declaration + xml_string


def _wrap_in_root(xml_string: str) -> str:
    match = _XML_DECLARATION_RE.match(xml_string)
    if match:
        return match.group(0).strip() + f"<{ROOT_TAG}>{xml_string[match.end():]}</{ROOT_TAG}>"
    return f"<{ROOT_TAG}>{xml_string}</{ROOT_TAG}>"


def parse_document(xml_string: str) -> minidom.Document:
    """Parse repaired markup into a DOM document.

    If the root heuristic was wrong (content after the document element),
    parsing is retried once inside a synthetic root.

    Raises:
        MalformedXMLError: If the markup cannot be parsed
    """
    try:
        return minidom.parseString(xml_string.encode("utf-8"))
    except ExpatError as first_error:
        if not xml_string.lstrip().startswith(f"<{ROOT_TAG}>"):
            try:
                document = minidom.parseString(_wrap_in_root(xml_string).encode("utf-8"))
                logger.debug("Parsed change description after wrapping in a synthetic root")
                return document
            except ExpatError:
                pass
        logger.error(f"XML parsing error: {first_error}")
        raise MalformedXMLError(
            f"Failed to parse XML input: {first_error}",
            line=getattr(first_error, "lineno", None),
            column=getattr(first_error, "offset", None),
        ) from first_error


def _trim_fence_newlines(text: str) -> str:
    """Drop the newline after an opening fence and the one before the closing fence."""
    text = re.sub(r"\A[ \t]*\r?\n", "", text, count=1)
    return re.sub(r"\r?\n[ \t]*\Z", "", text, count=1)


def get_element_text(element) -> str:
    """Return the content of an element.

    Fenced (CDATA) payloads are returned verbatim apart from the fence
    newlines; plain text is whitespace-trimmed.
    """
    if any(node.nodeType == node.CDATA_SECTION_NODE for node in element.childNodes):
        # Carriage returns sit between the CDATA sections as text nodes
        literal = [
            node.data for node in element.childNodes
            if node.nodeType == node.CDATA_SECTION_NODE
            or (node.nodeType == node.TEXT_NODE and node.data and not node.data.strip("\r"))
        ]
        return _trim_fence_newlines("".join(literal))

    texts = []
    for node in element.childNodes:
        if node.nodeType == node.TEXT_NODE:
            texts.append(node.data)
        elif node.nodeType == node.ELEMENT_NODE:
            texts.append(get_element_text(node))
    return "".join(texts).strip()


def _is_instruction_example(element) -> bool:
    """Check whether an element sits inside a formatting-instructions block."""
    parent = element.parentNode
    while parent is not None and parent.nodeType == parent.ELEMENT_NODE:
        if parent.tagName == INSTRUCTIONS_TAG:
            return True
        parent = parent.parentNode
    return False


def normalize_action(action: str) -> Optional[ChangeAction]:
    """Map an action attribute onto a ChangeAction, or None if unknown."""
    action = action.strip().lower()
    action = ACTION_ALIASES.get(action, action)
    try:
        return ChangeAction(action)
    except ValueError:
        return None


def make_file_reader(workspace_root) -> Callable[[str], str]:
    """
    Build a reader for before-snapshots rooted at the workspace.

    Unreadable files, missing files and paths outside the workspace all read
    as an empty string.
    """
    def read_file(file_path: str) -> str:
        try:
            full_path = resolve_workspace_path(workspace_root, file_path)
            with open(full_path, 'r', encoding='utf-8', newline='') as f:
                return f.read()
        except FileNotFoundError:
            return ""
        except (OSError, UnicodeDecodeError, PathOutsideWorkspaceError) as e:
            logger.debug(f"Could not read {file_path} for snapshot: {e}")
            return ""

    return read_file


def _read_snapshot(file_reader: Callable[[str], str], file_path: str) -> str:
    try:
        return file_reader(file_path) or ""
    except Exception as e:
        logger.debug(f"Snapshot reader failed for {file_path}: {e}")
        return ""


def extract_changes(document: minidom.Document, file_reader: Callable[[str], str]) -> ParseOutcome:
    """Extract FileChange records from a parsed document, in document order.

    Args:
        document: The parsed change description
        file_reader: Callable returning the current content of a path

    Returns:
        The ParseOutcome for the document
    """
    file_elements = [
        element for element in document.getElementsByTagName("file")
        if not _is_instruction_example(element)
    ]
    logger.debug(f"{len(file_elements)} <file> elements found")

    if not file_elements:
        logger.warning("No <file> elements found in XML input")
        return ParseOutcome([], ParseWarning.NO_FILE_ELEMENTS)

    changes: List[FileChange] = []
    skipped: List[str] = []

    def add_change(file_path, action, description, before, after):
        if action is ChangeAction.REWRITE and not after.strip():
            logger.info(f"Empty rewrite of {file_path} treated as delete")
            action = ChangeAction.DELETE
        changes.append(FileChange(file_path, action, description, before, after, index=len(changes)))

    for position, file_element in enumerate(file_elements):
        raw_path = file_element.getAttribute("path").strip()
        raw_action = file_element.getAttribute("action").strip()

        if not raw_path or not raw_action:
            note = f"<file> element {position} is missing its 'path' or 'action' attribute"
            logger.debug(note)
            skipped.append(note)
            continue

        action = normalize_action(raw_action)
        if action is None:
            note = f"Unknown action '{raw_action}' for {raw_path}"
            logger.warning(note)
            skipped.append(note)
            continue

        file_path = normalize_file_path(raw_path)

        if action is ChangeAction.DELETE:
            add_change(file_path, action, None, _read_snapshot(file_reader, file_path), "")
            continue

        before = _read_snapshot(file_reader, file_path) if action is ChangeAction.REWRITE else ""
        change_elements = file_element.getElementsByTagName("change")

        if not change_elements:
            add_change(file_path, action, None, before, "")
            continue

        for change_element in change_elements:
            content_elements = change_element.getElementsByTagName("content")
            if not content_elements:
                note = f"<change> without <content> for {file_path}"
                logger.debug(note)
                skipped.append(note)
                continue

            description_elements = change_element.getElementsByTagName("description")
            description = get_element_text(description_elements[0]) if description_elements else None
            add_change(file_path, action, description, before, get_element_text(content_elements[0]))

    if not changes:
        logger.warning("No valid changes were prepared from the provided XML")
        return ParseOutcome([], ParseWarning.NO_CHANGES, skipped)

    logger.info(f"Prepared {len(changes)} changes from XML")
    return ParseOutcome(changes, None, skipped)


def parse_xml_string(
    xml_string: str,
    repo_path=None,
    file_reader: Optional[Callable[[str], str]] = None,
) -> ParseOutcome:
    """Parse a change description into an ordered list of FileChange objects.

    Steps: markdown extraction, fence repair, root repair, parse, extraction.

    Args:
        xml_string: The XML-like text to parse
        repo_path: Workspace root used to read before-snapshots
        file_reader: Optional callable overriding how before-snapshots are read

    Returns:
        A ParseOutcome; its ``warning`` is set when the input was well formed
        but yielded no changes

    Raises:
        XMLParserError: If the input is empty
        MalformedXMLError: If the input cannot be parsed
    """
    if not xml_string or not xml_string.strip():
        raise XMLParserError("Empty XML string provided")

    if file_reader is None:
        if repo_path is None:
            file_reader = lambda _path: ""
        else:
            file_reader = make_file_reader(repo_path)

    xml_string = extract_xml_from_markdown(xml_string)
    xml_string = convert_fences_to_cdata(xml_string)
    xml_string = ensure_root_element(xml_string)

    document = parse_document(xml_string)
    try:
        return extract_changes(document, file_reader)
    finally:
        document.unlink()
