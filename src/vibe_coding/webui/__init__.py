"""WebUI module for vibe coding.

The WebUI is a thin host around :class:`vibe_coding.modules.session.Session`:
command messages arrive on the ``command`` Socket.IO event and session
events are emitted back on the ``event`` event.
"""

import os
import threading
import webbrowser
import subprocess
import logging
from pathlib import Path
from flask import Flask
from flask_socketio import SocketIO
from rich.console import Console

from vibe_coding.config import load_settings, save_settings

logger = logging.getLogger(__name__)
console = Console()
app = Flask(__name__)
app.config['SECRET_KEY'] = os.urandom(24).hex()
app.config['WORKSPACE_ROOT'] = str(Path.cwd())
socketio = SocketIO(app)

# Global variables to track WebUI state
_webui_thread = None
_webui_running = False
_settings = load_settings()
_webui_host = _settings.host
_webui_port = _settings.port


def is_running_in_wsl():
    """Check if we're running in Windows Subsystem for Linux."""
    try:
        with open('/proc/version', 'r') as f:
            return 'microsoft' in f.read().lower()
    except OSError:
        return False


def open_url_in_browser(url):
    """
    Open URL in browser, with special handling for WSL.

    Args:
        url: The URL to open

    Returns:
        bool: True if successful, False otherwise
    """
    try:
        if is_running_in_wsl():
            subprocess.run(["powershell.exe", "-Command", f"Start-Process '{url}'"], check=False)
        else:
            webbrowser.open(url)
        return True
    except Exception as e:
        console.print(f"[yellow]Could not open browser: {e}[/yellow]")
        console.print(f"[cyan]Please manually open {url} in your browser[/cyan]")
        return False


def set_workspace_root(workspace_root) -> None:
    """Set the workspace new sessions operate on."""
    app.config['WORKSPACE_ROOT'] = str(Path(workspace_root).resolve())


def start_webui(debug=False, open_browser=True, block=False, host=None, port=None, workspace_root=None):
    """
    Start the WebUI server in a background thread.

    Args:
        debug: Whether to run the server in debug mode
        open_browser: Whether to open the browser automatically
        block: Whether to block until the server stops
        host: Host to bind to (overrides settings)
        port: Port to bind to (overrides settings)
        workspace_root: Workspace served to sessions (current directory by default)
    """
    global _webui_thread, _webui_running, _webui_host, _webui_port

    if host is not None:
        _webui_host = host
    if port is not None:
        _webui_port = port
    if workspace_root is not None:
        set_workspace_root(workspace_root)

    if _webui_running:
        console.print("[yellow]WebUI is already running![/yellow]")
        return

    def run_server():
        global _webui_running

        console.print(f"[green]Starting WebUI at http://{_webui_host}:{_webui_port}/[/green]")
        console.print(f"[cyan]Workspace: {app.config['WORKSPACE_ROOT']}[/cyan]")
        socketio.run(app, host=_webui_host, port=_webui_port, debug=debug, use_reloader=False,
                     allow_unsafe_werkzeug=True)

        _webui_running = False
        console.print("[yellow]WebUI server has stopped[/yellow]")

    # Daemon thread exits with the main program
    _webui_thread = threading.Thread(target=run_server)
    _webui_thread.daemon = True
    _webui_thread.start()
    _webui_running = True

    if open_browser:
        webui_url = get_webui_url()
        if webui_url and not open_url_in_browser(webui_url):
            console.print(f"[yellow]Failed to open browser. Please manually navigate to {webui_url}[/yellow]")

    if block:
        try:
            while _webui_running and _webui_thread and _webui_thread.is_alive():
                _webui_thread.join(1)
        except KeyboardInterrupt:
            console.print("[yellow]WebUI interrupted. Shutting down...[/yellow]")
            stop_webui()


def stop_webui():
    """Stop the WebUI server."""
    global _webui_running

    if not _webui_running:
        return

    console.print("[yellow]Shutting down WebUI...[/yellow]")
    # The daemon thread exits when the main program exits
    _webui_running = False


def update_port(new_port):
    """Update the server port.

    The port is saved to the settings file and takes effect on the next start.

    Args:
        new_port: The new port number

    Returns:
        tuple: (success, message, restart_required)
    """
    global _webui_port

    try:
        port = int(new_port)
        if port < 1024 or port > 65535:
            return False, "Port must be between 1024 and 65535", False
    except (TypeError, ValueError):
        return False, "Port must be a valid number", False

    if port == _webui_port:
        return True, "Port unchanged", False

    _webui_port = port
    if not save_settings({'port': port}):
        return False, "Could not save settings", False

    restart_needed = is_webui_running()
    return True, f"Port updated to {port}. Changes will take effect after restart.", restart_needed


def is_webui_running():
    """Check if the WebUI is currently running."""
    return _webui_running


def get_webui_url():
    """Get the URL of the running WebUI, or None if not running."""
    if _webui_running:
        return f"http://{_webui_host}:{_webui_port}/"
    return None


def get_webui_port():
    """Get the current WebUI port."""
    return _webui_port


# Import routes after defining app and socketio to avoid circular imports
from vibe_coding.webui import routes  # noqa: E402,F401
