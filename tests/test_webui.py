import pyperclip
import pytest

import vibe_coding.webui as webui
from vibe_coding.webui import app, routes, set_workspace_root, socketio

from conftest import write_files

SCENARIO_XML = (
    '<file path="new.txt" action="create"><change><content>===\nhello\n===</content></change></file>'
)


@pytest.fixture
def client(workspace):
    set_workspace_root(workspace)
    client = socketio.test_client(app)
    yield client
    if client.is_connected():
        client.disconnect()


def _events(client):
    return [item["args"][0] for item in client.get_received() if item["name"] == "event"]


def test_connect_reports_status(client, workspace) -> None:
    received = client.get_received()

    assert received[0]["name"] == "status"
    assert received[0]["args"][0]["workspace"] == str(workspace.resolve())


def test_commands_are_routed_to_the_session(client, workspace) -> None:
    client.get_received()

    client.emit("command", {"command": "applyXml", "payload": {"xml": SCENARIO_XML}})
    client.emit("command", {"command": "confirmApply", "payload": {"selectedIndexes": [0]}})

    events = _events(client)
    assert [event["command"] for event in events] == ["displayChanges", "changesApplied"]
    assert (workspace / "new.txt").read_text(encoding="utf-8") == "hello"


def test_copy_file_tree_output_uses_clipboard(client, workspace, monkeypatch) -> None:
    copied = []
    monkeypatch.setattr(pyperclip, "copy", copied.append)
    write_files(workspace, {"a.txt": "alpha"})
    client.get_received()

    client.emit("command", {"command": "copyFileTreeOutput", "payload": {"instructions": "go"}})

    events = _events(client)
    assert events[0]["command"] == "processingStarted"
    assert events[-1]["command"] == "processingComplete"
    assert 'path="a.txt"' in copied[0]


def test_sessions_are_per_connection(workspace) -> None:
    set_workspace_root(workspace)
    first = socketio.test_client(app)
    second = socketio.test_client(app)
    try:
        first.emit("command", {"command": "applyXml", "payload": SCENARIO_XML})
        second.get_received()
        second.emit("command", {"command": "confirmApply", "payload": {"selectedIndexes": [0]}})

        events = _events(second)
        assert events[-1]["command"] == "error"
        assert not (workspace / "new.txt").exists()
    finally:
        first.disconnect()
        second.disconnect()


def test_disconnect_drops_session(workspace) -> None:
    set_workspace_root(workspace)
    client = socketio.test_client(app)
    sid_count = len(routes._sessions)

    client.disconnect()

    assert len(routes._sessions) == sid_count - 1


def test_index_lists_commands(workspace) -> None:
    set_workspace_root(workspace)

    response = app.test_client().get("/")

    data = response.get_json()
    assert response.status_code == 200
    assert "applyXml" in data["commands"]
    assert data["workspace"] == str(workspace.resolve())


def test_server_settings_get() -> None:
    response = app.test_client().get("/api/server-settings")

    data = response.get_json()
    assert data["success"] is True
    assert "max_file_size" in data["settings"]


def test_server_settings_rejects_bad_port(monkeypatch) -> None:
    monkeypatch.setattr(webui, "_webui_port", 5000)

    response = app.test_client().post("/api/server-settings", json={"port": "abc"})

    assert response.status_code == 400
    assert response.get_json()["success"] is False


def test_server_settings_updates_port(monkeypatch) -> None:
    saved = []
    monkeypatch.setattr(webui, "_webui_port", 5000)
    monkeypatch.setattr(webui, "save_settings", lambda settings: saved.append(settings) or True)

    response = app.test_client().post("/api/server-settings", json={"port": 5055})

    assert response.status_code == 200
    assert response.get_json()["restart_required"] is False
    assert saved == [{"port": 5055}]
    assert webui.get_webui_port() == 5055


def test_unknown_route_is_json_404() -> None:
    response = app.test_client().get("/nope")

    assert response.status_code == 404
    assert response.get_json() == {"error": "Not found"}
