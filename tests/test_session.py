import os
import shutil
from enum import Enum

import pytest

from vibe_coding.config import Settings
from vibe_coding.modules import session as session_module
from vibe_coding.modules.session import Command, Event, Session
from vibe_coding.utils.clipboard import ClipboardError

from conftest import write_files

SCENARIO_XML = (
    '<file path="new.txt" action="create"><change><content>===\nhello\n===</content></change></file>'
    '<file path="old.txt" action="delete"/>'
)


class Host:
    """Collects the events a session posts."""

    def __init__(self):
        self.messages = []
        self.clipboard = []

    def __call__(self, message):
        self.messages.append(message)

    def commands(self):
        return [message["command"] for message in self.messages]

    def last(self, event: Event):
        return [m for m in self.messages if m["command"] == event.value][-1]["payload"]


@pytest.fixture
def host():
    return Host()


@pytest.fixture
def session(workspace, host):
    write_files(workspace, {"old.txt": "bye"})
    return Session(workspace, host, settings=Settings(batch_size=1), clipboard=host.clipboard.append)


def test_every_command_has_a_handler(session) -> None:
    assert set(session._handlers) == set(Command)


def test_command_without_handler_fails_construction(workspace, host, monkeypatch) -> None:
    members = [(command.name, command.value) for command in Command] + [("PING", "ping")]
    monkeypatch.setattr(session_module, "Command", Enum("Command", members, type=str))

    with pytest.raises(RuntimeError, match="PING"):
        Session(workspace, host)


def test_apply_xml_displays_changes(session, host) -> None:
    session.handle_message({"command": "applyXml", "payload": {"xml": SCENARIO_XML}})

    assert host.commands() == ["displayChanges"]
    changes = host.last(Event.DISPLAY_CHANGES)
    assert [(c["filePath"], c["action"], c["before"]) for c in changes] == [
        ("./new.txt", "create", ""),
        ("./old.txt", "delete", "bye"),
    ]
    assert len(session.pending_changes) == 2


def test_apply_xml_accepts_raw_text_payload(session, host) -> None:
    session.handle_message({"command": "applyXml", "payload": SCENARIO_XML})

    assert len(session.pending_changes) == 2


def test_malformed_xml_clears_pending_batch(session, host) -> None:
    session.handle_message({"command": "applyXml", "payload": SCENARIO_XML})
    session.handle_message({"command": "applyXml", "payload": "<file><oops></file>"})

    assert host.commands()[-1] == "error"
    assert session.pending_changes == []


def test_unreadable_payload_clears_pending_batch(session, host) -> None:
    session.handle_message({"command": "applyXml", "payload": SCENARIO_XML})
    session.handle_message({"command": "applyXml", "payload": 123})

    assert host.commands()[-1] == "error"
    assert session.pending_changes == []


def test_empty_result_is_a_warning(session, host) -> None:
    session.handle_message({"command": "applyXml", "payload": "<changes></changes>"})

    assert host.commands() == ["warning", "displayChanges"]
    assert host.last(Event.WARNING)["reason"] == "no_file_elements"
    assert host.last(Event.DISPLAY_CHANGES) == []


def test_empty_input_is_an_error(session, host) -> None:
    session.handle_message({"command": "applyXml", "payload": {"xml": "  "}})

    assert host.commands() == ["error"]


def test_confirm_apply_applies_selection(session, host, workspace) -> None:
    session.handle_message({"command": "applyXml", "payload": SCENARIO_XML})
    session.handle_message({"command": "confirmApply", "payload": {"selectedIndexes": [0]}})

    report = host.last(Event.CHANGES_APPLIED)
    assert report["appliedCount"] == 1
    assert (workspace / "new.txt").read_text(encoding="utf-8") == "hello"
    assert (workspace / "old.txt").exists()
    assert session.pending_changes == []


def test_confirm_apply_with_invalid_selection_keeps_batch(session, host, workspace) -> None:
    session.handle_message({"command": "applyXml", "payload": SCENARIO_XML})
    session.handle_message({"command": "confirmApply", "payload": {"selectedIndexes": [0, 9]}})

    assert host.commands()[-1] == "error"
    assert "9" in host.last(Event.ERROR)["message"]
    assert len(session.pending_changes) == 2
    assert not (workspace / "new.txt").exists()


def test_confirm_apply_reports_failures_as_warning(session, host, workspace) -> None:
    session.handle_message({"command": "applyXml", "payload": SCENARIO_XML})
    os.remove(workspace / "old.txt")
    session.handle_message({"command": "confirmApply", "payload": [0, 1]})

    assert host.commands()[-2:] == ["warning", "changesApplied"]
    assert host.last(Event.CHANGES_APPLIED)["failedCount"] == 1


def test_cancel_changes(session, host) -> None:
    session.handle_message({"command": "applyXml", "payload": SCENARIO_XML})
    session.handle_message({"command": "cancelChanges"})

    assert host.commands()[-1] == "changesCleared"
    assert session.pending_changes == []


def test_view_diff_posts_artifacts(session, host) -> None:
    session.handle_message({"command": "applyXml", "payload": SCENARIO_XML})
    session.handle_message({"command": "viewDiff", "payload": {"index": 1}})

    diff = host.last(Event.OPEN_DIFF)
    try:
        assert diff["index"] == 1
        with open(diff["beforePath"], encoding="utf-8") as f:
            assert f.read() == "bye"
    finally:
        shutil.rmtree(os.path.dirname(diff["beforePath"]), ignore_errors=True)


def test_view_diff_uses_diff_opener(workspace, host) -> None:
    opened = []
    session = Session(workspace, host, diff_opener=opened.append)
    session.handle_message({"command": "applyXml", "payload": SCENARIO_XML})
    session.handle_message({"command": "viewDiff", "payload": 0})

    assert len(opened) == 1
    assert "openDiff" not in host.commands()
    shutil.rmtree(os.path.dirname(opened[0].before_path), ignore_errors=True)


@pytest.mark.parametrize("index", [5, -1, "0", None, True])
def test_view_diff_rejects_bad_index(session, host, index) -> None:
    session.handle_message({"command": "applyXml", "payload": SCENARIO_XML})
    session.handle_message({"command": "viewDiff", "payload": {"index": index}})

    assert host.commands()[-1] == "error"
    assert len(session.pending_changes) == 2


def test_get_file_tree(session, host) -> None:
    session.handle_message({"command": "getFileTree"})

    data = host.last(Event.DISPLAY_FILE_TREE)
    assert [node["path"] for node in data["tree"]] == ["old.txt"]
    assert data["biggestFiles"][0]["size"] == 3


def test_copy_file_tree_output(session, host, workspace) -> None:
    write_files(workspace, {"lib/a.js": "a();", "lib2/b.js": "b();"})

    session.handle_message({
        "command": "copyFileTreeOutput",
        "payload": {"instructions": "do it", "selection": [{"path": "lib", "isDirectory": True}]},
    })

    commands = host.commands()
    assert commands[0] == "processingStarted"
    assert commands[-1] == "processingComplete"
    assert "processingProgress" in commands
    assert host.last(Event.PROCESSING_COMPLETE)["includedCount"] == 1
    assert len(host.clipboard) == 1
    assert 'path="lib/a.js"' in host.clipboard[0]
    assert 'path="lib2/b.js"' not in host.clipboard[0]


def test_copy_file_tree_output_clipboard_failure(workspace, host) -> None:
    def broken_clipboard(text):
        raise ClipboardError("no clipboard")

    session = Session(workspace, host, clipboard=broken_clipboard)
    session.handle_message({"command": "copyFileTreeOutput", "payload": {}})

    assert host.commands()[0] == "processingStarted"
    assert host.commands()[-1] == "error"
    assert "no clipboard" in host.last(Event.ERROR)["message"]


def test_unknown_command_is_reported(session, host) -> None:
    session.handle_message({"command": "formatDisk"})

    assert host.commands() == ["error"]


def test_non_dict_message_is_reported(session, host) -> None:
    session.handle_message("applyXml")

    assert host.commands() == ["error"]


def test_handler_errors_never_escape(session, host, monkeypatch) -> None:
    def explode(*args, **kwargs):
        raise OSError("disk gone")

    monkeypatch.setattr(session_module, "build_file_tree", explode)

    session.handle_message({"command": "getFileTree"})

    assert host.commands() == ["error"]
    assert "disk gone" in host.last(Event.ERROR)["message"]
