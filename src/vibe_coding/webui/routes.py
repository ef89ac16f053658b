"""Routes and Socket.IO events for the WebUI."""

import logging
import threading
from flask import jsonify, request
from flask_socketio import emit

from vibe_coding import __version__
from vibe_coding.config import load_settings
from vibe_coding.modules.session import Command, Session
from vibe_coding.webui import app, socketio, get_webui_port, update_port

logger = logging.getLogger(__name__)

# One session per connected client, keyed by Socket.IO sid
_sessions = {}
_sessions_lock = threading.Lock()


def get_session(sid):
    """Return the session for a client, creating it if needed."""
    with _sessions_lock:
        session = _sessions.get(sid)
        if session is None:
            session = Session(
                app.config['WORKSPACE_ROOT'],
                post_message=lambda message: emit('event', message),
                settings=load_settings(),
                yield_callback=lambda: socketio.sleep(0),
            )
            _sessions[sid] = session
        return session


def drop_session(sid):
    """Discard a client's session and its pending changes."""
    with _sessions_lock:
        _sessions.pop(sid, None)


# Routes
@app.route('/')
def index():
    """Report the server status."""
    return jsonify({
        "name": "vibe-coding",
        "version": __version__,
        "workspace": app.config['WORKSPACE_ROOT'],
        "commands": [command.value for command in Command],
    })


# API Routes
@app.route('/api/server-settings', methods=['GET', 'POST'])
def server_settings():
    """Get or update server settings."""
    if request.method == 'GET':
        return jsonify({
            "success": True,
            "port": get_webui_port(),
            "settings": load_settings().to_dict(),
        })

    data = request.get_json(silent=True)
    if not data or 'port' not in data:
        return jsonify({
            "success": False,
            "message": "No port provided"
        }), 400

    success, message, restart_required = update_port(data['port'])
    return jsonify({
        "success": success,
        "message": message,
        "restart_required": restart_required
    }), (200 if success else 400)


# Socket.IO Events
@socketio.on('connect')
def handle_connect():
    """Handle client connection."""
    get_session(request.sid)
    emit('status', {'message': 'Connected to server', 'workspace': app.config['WORKSPACE_ROOT']})


@socketio.on('disconnect')
def handle_disconnect(*args):
    """Handle client disconnection."""
    drop_session(request.sid)


@socketio.on('command')
def handle_command(data):
    """Dispatch a host command message to the client's session."""
    get_session(request.sid).handle_message(data)


@app.errorhandler(404)
def page_not_found(e):
    """Handle 404 errors."""
    return jsonify({"error": "Not found"}), 404


@app.errorhandler(500)
def server_error(e):
    """Handle 500 errors."""
    logger.error(f"Server error: {e}")
    return jsonify({"error": "Internal server error"}), 500
