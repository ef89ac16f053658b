"""Menu system for vibe coding."""

import os
import inquirer
from rich.console import Console
from rich.align import Align
from rich.text import Text

from vibe_coding.modules.context_copier import repo_context_copier
from vibe_coding.modules.xml_applier import xml_changes_applier

console = Console()


def clear_screen():
    """Clear the terminal screen."""
    os.system('cls' if os.name == 'nt' else 'clear')


def display_main_menu(workspace_root=None) -> None:
    """Display the main menu and handle user selection."""
    from vibe_coding.webui import get_webui_url, start_webui, stop_webui

    try:
        while True:
            clear_screen()

            title = Text("VIBE CODING", style="bold cyan")
            console.print(Align.center(title, vertical="middle"))
            console.print()

            questions = [
                inquirer.List(
                    "module",
                    message="Select a module",
                    choices=[
                        ("Apply XML Changes", "xml_applier"),
                        ("Copy Workspace Context", "context_copier"),
                        ("Start WebUI", "webui"),
                        ("Exit", "exit"),
                    ],
                    carousel=True,
                    default="xml_applier",
                ),
            ]

            answers = inquirer.prompt(questions)

            if not answers:  # User pressed Ctrl+C
                break

            module = answers["module"]

            if module == "exit":
                console.print("[yellow]Exiting...[/yellow]")
                break

            clear_screen()

            if module == "xml_applier":
                console.print("[bold green]Apply XML Changes[/bold green]")
                if xml_changes_applier(workspace_root):
                    console.print("[green]Changes applied.[/green]")
            elif module == "context_copier":
                console.print("[bold green]Copy Workspace Context[/bold green]")
                if repo_context_copier(workspace_root):
                    console.print("[green]Workspace context copied successfully![/green]")
            elif module == "webui":
                console.print("[bold green]Starting WebUI...[/bold green]")
                start_webui(debug=False, open_browser=True, block=False, workspace_root=workspace_root)
                console.print(f"[green]WebUI is running at {get_webui_url()}[/green]")
                console.print("[cyan]The WebUI will remain active until you exit the program.[/cyan]")
            else:
                console.print(f"[red]Unknown module: {module}[/red]")

            # Pause for user to see results
            console.print("\n[cyan]Press Enter to continue...[/cyan]")
            input()
    finally:
        stop_webui()
        clear_screen()
