"""Notification utilities for vibe coding."""

from rich.console import Console

console = Console()

_STYLES = {
    "info": "bold green",
    "warning": "bold yellow",
    "error": "bold red",
}


def show_toast(message: str, level: str = "info") -> None:
    """
    Show a toast notification.

    Args:
        message: The message to display.
        level: One of ``info``, ``warning`` or ``error``.
    """
    style = _STYLES.get(level, _STYLES["info"])
    console.print(f"[{style}]{message}[/{style}]", highlight=False)
