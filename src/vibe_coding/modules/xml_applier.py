"""Interactive XML change applier module."""

import shutil
from pathlib import Path
from typing import List, Optional

import inquirer
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from vibe_coding.modules.change_applier import ApplyReport, apply_changes
from vibe_coding.modules.diff_viewer import materialize_diff, unified_diff
from vibe_coding.modules.xml_parser import FileChange, XMLParserError, parse_xml_string
from vibe_coding.utils.clipboard import ClipboardError, paste_from_clipboard
from vibe_coding.utils.notifications import show_toast

console = Console()

ACTION_STYLES = {
    "create": "green",
    "rewrite": "cyan",
    "delete": "red",
}


def display_changes(changes: List[FileChange]) -> None:
    """
    Display the pending changes as a table.

    Args:
        changes: The parsed change set
    """
    table = Table(title="Pending changes", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Action")
    table.add_column("Path")
    table.add_column("Description")
    table.add_column("Lines", justify="right")

    for change in changes:
        style = ACTION_STYLES.get(change.action.value, "white")
        before_lines = len(change.before.splitlines())
        after_lines = len(change.after.splitlines())
        table.add_row(
            str(change.index),
            Text(change.action.value, style=style),
            change.file_path,
            change.description,
            f"{before_lines} → {after_lines}",
        )

    console.print(table)


def show_diff(change: FileChange) -> None:
    """
    Print a unified diff of a change in the terminal.

    Args:
        change: The change to show
    """
    artifacts = materialize_diff(change)
    try:
        diff_text = unified_diff(artifacts)
    finally:
        shutil.rmtree(Path(artifacts.before_path).parent, ignore_errors=True)

    if not diff_text:
        console.print(f"[yellow]No differences for {change.file_path}[/yellow]")
        return
    console.print(Panel(Syntax(diff_text, "diff", word_wrap=True), title=artifacts.title))


def display_apply_report(report: ApplyReport) -> None:
    """
    Display the result of applying changes.

    Args:
        report: The ApplyReport to summarize
    """
    if report.nothing_applied:
        console.print("[yellow]No changes selected, nothing was applied.[/yellow]")
        return

    for change, success, error in report.results:
        if success:
            console.print(f"  [green]✓[/green] {change.action.value} {change.file_path}")
        else:
            console.print(f"  [red]✗[/red] {change.action.value} {change.file_path}: {error}")

    border = "green" if report.success else "yellow"
    console.print(Panel(
        Text.from_markup(
            f"[green]• {len(report.applied)}[/green] changes applied\n"
            f"[red]• {len(report.failed)}[/red] changes failed"
        ),
        title="Apply Complete",
        border_style=border,
    ))


def read_xml_input() -> Optional[str]:
    """Ask the user where to read the change description from."""
    questions = [
        inquirer.List(
            "source",
            message="Where is the XML?",
            choices=[
                ("Clipboard", "clipboard"),
                ("File", "file"),
                ("Open editor", "editor"),
                ("Back to main menu", None),
            ],
        ),
    ]
    answers = inquirer.prompt(questions)
    if not answers or answers["source"] is None:
        return None

    source = answers["source"]
    if source == "clipboard":
        try:
            return paste_from_clipboard()
        except ClipboardError as e:
            console.print(f"[bold red]Could not read clipboard:[/bold red] {e}")
            return None

    if source == "file":
        answers = inquirer.prompt([inquirer.Path("path", message="Path to the XML file", exists=True,
                                                 path_type=inquirer.Path.FILE)])
        if not answers:
            return None
        with open(answers["path"], 'r', encoding='utf-8') as f:
            return f.read()

    answers = inquirer.prompt([inquirer.Editor("xml", message="Paste the XML changes")])
    return answers["xml"] if answers else None


def xml_changes_applier(workspace_root=None) -> bool:
    """
    Run the interactive XML change applier.

    Args:
        workspace_root: The workspace to apply changes to (current directory by default)

    Returns:
        True if changes were applied
    """
    workspace_root = Path(workspace_root or Path.cwd())
    console.print(f"[bold blue]Workspace:[/bold blue] {workspace_root}")

    xml_string = read_xml_input()
    if not xml_string:
        return False

    try:
        outcome = parse_xml_string(xml_string, workspace_root)
    except XMLParserError as e:
        show_toast(f"Error parsing XML: {e}", level="error")
        return False

    if outcome.warning is not None:
        show_toast(outcome.warning_message, level="warning")
        return False

    changes = outcome.changes
    display_changes(changes)

    while True:
        questions = [
            inquirer.List(
                "next_action",
                message="What would you like to do?",
                choices=[
                    ("Select changes and apply", "apply"),
                    ("View a diff", "diff"),
                    ("Cancel", "cancel"),
                ],
                default="apply",
            ),
        ]
        answers = inquirer.prompt(questions)
        if not answers or answers["next_action"] == "cancel":
            show_toast("Changes discarded.", level="warning")
            return False

        if answers["next_action"] == "diff":
            diff_answers = inquirer.prompt([
                inquirer.List(
                    "index",
                    message="Select a change",
                    choices=[(f"{c.index}: {c.action.value} {c.file_path}", c.index) for c in changes],
                ),
            ])
            if diff_answers:
                show_diff(changes[diff_answers["index"]])
            continue

        select_answers = inquirer.prompt([
            inquirer.Checkbox(
                "indexes",
                message="Select the changes to apply",
                choices=[(f"{c.index}: {c.action.value} {c.file_path}", c.index) for c in changes],
                default=[c.index for c in changes if c.selected],
            ),
        ])
        if not select_answers:
            return False

        report = apply_changes(changes, select_answers["indexes"], workspace_root)
        display_apply_report(report)
        if not report.nothing_applied:
            show_toast(f"Applied {len(report.applied)} of {len(report.results)} changes")
        return bool(report.applied)
