"""Clipboard utilities for vibe coding."""

import logging

import pyperclip

logger = logging.getLogger(__name__)


class ClipboardError(Exception):
    """Exception raised when the system clipboard is unavailable."""
    pass


def copy_to_clipboard(text: str) -> None:
    """
    Copy text to clipboard.

    Args:
        text: The text to copy.

    Raises:
        ClipboardError: If no clipboard mechanism is available.
    """
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        logger.error(f"Clipboard copy failed: {e}")
        raise ClipboardError(str(e)) from e
    logger.debug(f"Copied {len(text)} characters to clipboard")


def paste_from_clipboard() -> str:
    """
    Read text from the clipboard.

    Returns:
        The clipboard text (empty string if the clipboard is empty).

    Raises:
        ClipboardError: If no clipboard mechanism is available.
    """
    try:
        return pyperclip.paste() or ""
    except pyperclip.PyperclipException as e:
        logger.error(f"Clipboard paste failed: {e}")
        raise ClipboardError(str(e)) from e
