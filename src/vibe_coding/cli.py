"""Command line interface for vibe coding."""

import sys
import atexit
import logging
import argparse
from pathlib import Path
from rich.console import Console

from vibe_coding import __version__
from vibe_coding.config import load_settings
from vibe_coding.menu import display_main_menu
from vibe_coding.modules.change_applier import apply_changes
from vibe_coding.modules.context_copier import (
    copy_workspace_context,
    display_biggest_files,
    display_file_tree,
)
from vibe_coding.modules.file_tree import build_file_tree
from vibe_coding.modules.xml_applier import display_apply_report, display_changes
from vibe_coding.modules.xml_generator import WorkspaceXMLGenerator
from vibe_coding.modules.xml_parser import XMLParserError, parse_xml_string
from vibe_coding.utils.clipboard import ClipboardError, paste_from_clipboard
from vibe_coding.utils.notifications import show_toast
from vibe_coding.webui import get_webui_url, start_webui, stop_webui

console = Console()

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the ``vibe-coding`` command."""
    parser = argparse.ArgumentParser(description='Apply LLM XML changes and copy workspace context')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--workspace',
        default=None,
        help='Workspace root directory (default: current directory)'
    )
    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Apply command
    apply_parser = subparsers.add_parser('apply', help='Apply XML changes to the workspace')
    apply_parser.add_argument(
        '--file',
        default=None,
        help='Read the XML from a file ("-" for stdin) instead of the clipboard'
    )
    apply_parser.add_argument(
        '--yes',
        action='store_true',
        help='Apply every change without asking'
    )

    # Copy command
    copy_parser = subparsers.add_parser('copy', help='Copy the workspace as XML for an LLM prompt')
    copy_parser.add_argument(
        '--instructions',
        default='',
        help='Instructions appended to the XML'
    )
    copy_parser.add_argument(
        '--select',
        action='append',
        default=[],
        metavar='PATH',
        help='Only include this file or directory (repeatable)'
    )
    copy_parser.add_argument(
        '--output',
        default=None,
        help='Write the XML to a file instead of the clipboard'
    )
    copy_parser.add_argument(
        '--max-file-size',
        type=int,
        default=None,
        help='Per-file size ceiling in bytes'
    )

    # Tree command
    subparsers.add_parser('tree', help='Show the workspace tree and the biggest files')

    # WebUI command
    webui_parser = subparsers.add_parser('webui', help='Start the web UI')
    webui_parser.add_argument(
        '--debug',
        action='store_true',
        dest='webui_debug',
        help='Run the web UI in debug mode'
    )
    webui_parser.add_argument(
        '--no-browser',
        action='store_true',
        help='Do not automatically open the browser'
    )
    webui_parser.add_argument(
        '--background',
        action='store_true',
        help='Run the web UI in background mode (non-blocking)'
    )
    webui_parser.add_argument(
        '--host',
        default=None,
        help='Host to bind to (default: from settings)'
    )
    webui_parser.add_argument(
        '--port',
        type=int,
        default=None,
        help='Port to bind to (default: from settings)'
    )

    return parser


def configure_logging(debug: bool = False) -> None:
    """Configure root logging for a CLI run."""
    logging.basicConfig(level=logging.DEBUG if debug else logging.WARNING, format=LOG_FORMAT)


def _read_xml(file_arg) -> str:
    if file_arg is None:
        return paste_from_clipboard()
    if file_arg == '-':
        return sys.stdin.read()
    with open(file_arg, 'r', encoding='utf-8') as f:
        return f.read()


def run_apply(workspace_root: Path, file_arg=None, assume_yes: bool = False) -> int:
    """Compile XML changes and apply them to the workspace."""
    try:
        xml_string = _read_xml(file_arg)
    except (OSError, ClipboardError) as e:
        show_toast(f"Could not read XML input: {e}", level="error")
        return 1

    try:
        outcome = parse_xml_string(xml_string, workspace_root)
    except XMLParserError as e:
        show_toast(f"Error parsing XML: {e}", level="error")
        return 1

    if outcome.warning is not None:
        show_toast(outcome.warning_message, level="warning")
        return 1

    display_changes(outcome.changes)
    if not assume_yes:
        answer = console.input("[cyan]Apply all changes? [y/N] [/cyan]")
        if answer.strip().lower() not in ('y', 'yes'):
            show_toast("Changes discarded.", level="warning")
            return 1

    report = apply_changes(outcome.changes, [change.index for change in outcome.changes], workspace_root)
    display_apply_report(report)
    return 0 if report.success else 1


def run_copy(workspace_root: Path, instructions: str = '', select=None, output=None,
             max_file_size=None) -> int:
    """Emit the workspace XML to the clipboard or a file."""
    settings = load_settings().replace(max_file_size=max_file_size)
    selection = [
        {"path": path, "isDirectory": (workspace_root / path).is_dir()}
        for path in (select or [])
    ]

    if output is None:
        xml_output = copy_workspace_context(workspace_root, instructions, selection, settings)
        return 0 if xml_output is not None else 1

    generator = WorkspaceXMLGenerator(workspace_root, settings)
    xml_output = generator.generate(instructions, selection)
    with open(output, 'w', encoding='utf-8') as f:
        f.write(xml_output)
    show_toast(f"Wrote {len(generator.included_files)} files to {output} "
               f"({len(generator.skipped_files)} skipped)")
    return 0


def run_tree(workspace_root: Path) -> int:
    """Print the workspace tree and the biggest-files index."""
    settings = load_settings()
    workspace_tree = build_file_tree(
        workspace_root,
        ignore_file=settings.ignore_file,
        biggest_files_count=settings.biggest_files_count,
    )
    display_file_tree(workspace_tree)
    display_biggest_files(workspace_tree)
    return 0


def main(argv=None) -> int:
    """Run the CLI application."""
    # Register shutdown function to ensure WebUI is stopped
    atexit.register(stop_webui)

    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.debug)

    workspace_root = Path(args.workspace or Path.cwd()).resolve()
    if not workspace_root.is_dir():
        console.print(f"[bold red]Workspace is not a directory: {workspace_root}[/bold red]")
        return 1

    try:
        if args.command == 'apply':
            return run_apply(workspace_root, args.file, args.yes)
        elif args.command == 'copy':
            return run_copy(workspace_root, args.instructions, args.select, args.output, args.max_file_size)
        elif args.command == 'tree':
            return run_tree(workspace_root)
        elif args.command == 'webui':
            open_browser = not args.no_browser
            block = not args.background
            console.print("[bold green]Starting WebUI...[/bold green]")
            start_webui(debug=args.webui_debug, open_browser=open_browser, block=block,
                        host=args.host, port=args.port, workspace_root=workspace_root)
            if not block:
                console.print(f"[green]WebUI is running at {get_webui_url()}[/green]")
                console.print("[cyan]The WebUI will remain active until you exit this program.[/cyan]")
                display_main_menu(workspace_root)
            return 0
        else:
            # No command specified, show the interactive menu
            display_main_menu(workspace_root)
            return 0
    except KeyboardInterrupt:
        console.print("\n[bold yellow]Process cancelled by user.[/bold yellow]")
        return 1
    except Exception as e:
        console.print(f"[bold red]Error: {str(e)}[/bold red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
