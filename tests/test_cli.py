import pytest

from vibe_coding import cli

from conftest import write_files


def test_tree_command(workspace, capsys) -> None:
    write_files(workspace, {"src/app.py": "print('hi')"})

    assert cli.main(["--workspace", str(workspace), "tree"]) == 0
    assert "app.py" in capsys.readouterr().out


def test_apply_command_from_file(workspace, tmp_path) -> None:
    write_files(workspace, {"old.txt": "bye"})
    xml_file = tmp_path / "changes.xml"
    xml_file.write_text(
        '<file path="new.txt" action="create"><change><content>===\nhello\n===</content></change></file>'
        '<file path="old.txt" action="delete"/>',
        encoding="utf-8",
    )

    exit_code = cli.main(["--workspace", str(workspace), "apply", "--file", str(xml_file), "--yes"])

    assert exit_code == 0
    assert (workspace / "new.txt").read_text(encoding="utf-8") == "hello"
    assert not (workspace / "old.txt").exists()


def test_apply_command_with_malformed_xml(workspace, tmp_path) -> None:
    xml_file = tmp_path / "changes.xml"
    xml_file.write_text("<file><broken></file>", encoding="utf-8")

    assert cli.main(["--workspace", str(workspace), "apply", "--file", str(xml_file), "--yes"]) == 1


def test_copy_command_to_file(workspace, tmp_path) -> None:
    write_files(workspace, {"lib/a.js": "a();", "lib2/b.js": "b();"})
    output = tmp_path / "out.xml"

    exit_code = cli.main([
        "--workspace", str(workspace), "copy",
        "--select", "lib", "--instructions", "tidy up", "--output", str(output),
    ])

    xml = output.read_text(encoding="utf-8")
    assert exit_code == 0
    assert 'path="lib/a.js"' in xml
    assert 'path="lib2/b.js"' not in xml
    assert "tidy up" in xml


def test_copy_command_respects_max_file_size(workspace, tmp_path) -> None:
    write_files(workspace, {"big.txt": "x" * 100})
    output = tmp_path / "out.xml"

    cli.main(["--workspace", str(workspace), "copy", "--max-file-size", "10", "--output", str(output)])

    assert "<!-- Skipped big.txt" in output.read_text(encoding="utf-8")


def test_missing_workspace(tmp_path) -> None:
    assert cli.main(["--workspace", str(tmp_path / "nope"), "tree"]) == 1


def test_version_flag(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--version"])

    assert excinfo.value.code == 0
    assert "0.1.0" in capsys.readouterr().out
