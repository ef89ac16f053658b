"""Workspace context copier module."""

from pathlib import Path
from typing import List, Optional

import inquirer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from vibe_coding.config import Settings, load_settings
from vibe_coding.modules.file_tree import WorkspaceNode, WorkspaceTree, build_file_tree
from vibe_coding.modules.xml_generator import WorkspaceXMLGenerator, is_binary_path
from vibe_coding.utils.clipboard import ClipboardError, copy_to_clipboard
from vibe_coding.utils.notifications import show_toast

console = Console()


def format_size(size: int) -> str:
    """Format a byte count with a KB/MB suffix."""
    if size < 1024:
        return f"{size} B"
    elif size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    else:
        return f"{size / (1024 * 1024):.1f} MB"


def display_file_tree(workspace_tree: WorkspaceTree) -> None:
    """
    Print the workspace tree.

    Args:
        workspace_tree: The tree to display
    """
    root = Tree(f"[bold blue]{workspace_tree.root.resolve().name}[/bold blue]")

    def add_nodes(parent: Tree, nodes: List[WorkspaceNode]) -> None:
        for node in nodes:
            if node.is_directory:
                add_nodes(parent.add(f"[bold]{node.name}/[/bold]"), node.children)
            elif is_binary_path(node.path):
                parent.add(f"[dim]{node.name}[/dim]")
            else:
                parent.add(f"{node.name} [dim]({format_size(node.size)})[/dim]")

    add_nodes(root, workspace_tree.tree)
    console.print(root)


def display_biggest_files(workspace_tree: WorkspaceTree) -> None:
    """
    Print the biggest-files index.

    Args:
        workspace_tree: The tree whose index to display
    """
    if not workspace_tree.biggest_files:
        return

    table = Table(title="Biggest files")
    table.add_column("Path")
    table.add_column("Size", justify="right")
    for node in workspace_tree.biggest_files:
        table.add_row(node.path, format_size(node.size))
    console.print(table)


def select_paths(workspace_tree: WorkspaceTree) -> Optional[list]:
    """
    Ask which top-level entries of the workspace to include.

    Returns:
        A selection list (empty means everything) or None if cancelled
    """
    choices = [
        (f"{node.name}/" if node.is_directory else node.name, node.path)
        for node in workspace_tree.tree
    ]
    if not choices:
        return []

    answers = inquirer.prompt([
        inquirer.Checkbox(
            "paths",
            message="Select what to include (nothing selected = everything)",
            choices=choices,
        ),
    ])
    if answers is None:
        return None

    directories = {node.path for node in workspace_tree.tree if node.is_directory}
    return [{"path": path, "isDirectory": path in directories} for path in answers["paths"]]


def copy_workspace_context(
    workspace_root,
    instructions: str = "",
    selection: Optional[list] = None,
    settings: Optional[Settings] = None,
    workspace_tree: Optional[WorkspaceTree] = None,
) -> Optional[str]:
    """
    Generate the workspace XML with a progress bar and copy it to the clipboard.

    Args:
        workspace_root: The workspace root directory
        instructions: Free-text instructions for the LLM
        selection: Selected paths (empty or None means everything)
        settings: Size ceilings and batch size
        workspace_tree: A prebuilt tree to reuse

    Returns:
        The generated XML, or None if it could not be copied
    """
    settings = settings or load_settings()
    with Progress() as progress:
        task = progress.add_task("[green]Generating workspace XML...", total=None)

        def report_progress(processed: int, total: int) -> None:
            progress.update(task, completed=processed, total=total)

        generator = WorkspaceXMLGenerator(workspace_root, settings, progress_callback=report_progress)
        xml_output = generator.generate(instructions, selection, workspace_tree)

    try:
        copy_to_clipboard(xml_output)
    except ClipboardError as e:
        show_toast(f"Could not copy to clipboard: {e}", level="error")
        return None

    show_toast(f"Workspace XML copied to clipboard ({format_size(len(xml_output.encode('utf-8')))})")

    skipped_lines = "".join(
        f"\n[yellow]  - {path}: {reason}[/yellow]" for path, reason in sorted(generator.skipped_files.items())
    )
    console.print(Panel(
        Text.from_markup(
            f"[green]• {len(generator.included_files)}[/green] files included "
            f"({format_size(generator.total_bytes)})\n"
            f"[yellow]• {len(generator.skipped_files)}[/yellow] files skipped"
            f"{skipped_lines}"
        ),
        title="Copy Complete",
        border_style="green",
    ))
    return xml_output


def repo_context_copier(workspace_root=None) -> bool:
    """Run the interactive workspace context copier."""
    workspace_root = Path(workspace_root or Path.cwd())
    settings = load_settings()
    console.print(f"[bold blue]Reading workspace:[/bold blue] {workspace_root}")

    with Progress() as progress:
        task = progress.add_task("[green]Scanning workspace files...", total=None)
        workspace_tree = build_file_tree(
            workspace_root,
            ignore_file=settings.ignore_file,
            biggest_files_count=settings.biggest_files_count,
        )
        progress.update(task, completed=True)

    if not workspace_tree.files:
        console.print("[bold yellow]No files found in the workspace![/bold yellow]")
        return False

    display_file_tree(workspace_tree)
    display_biggest_files(workspace_tree)

    selection = select_paths(workspace_tree)
    if selection is None:
        return False

    answers = inquirer.prompt([inquirer.Text("instructions", message="Instructions for the LLM (optional)")])
    if answers is None:
        return False

    return copy_workspace_context(
        workspace_root,
        instructions=answers["instructions"],
        selection=selection,
        settings=settings,
        workspace_tree=workspace_tree,
    ) is not None
