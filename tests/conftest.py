"""Shared fixtures for the vibe coding test suite."""

from pathlib import Path

import pytest

from vibe_coding import config


def write_files(root: Path, files: dict) -> None:
    """Create ``files`` (relative path to str or bytes content) under ``root``."""
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            with open(path, 'w', encoding='utf-8', newline='') as f:
                f.write(content)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep every test away from the real ~/.vibe_coding/settings.json."""
    settings_file = tmp_path / "settings" / "settings.json"
    monkeypatch.setattr(config, "SETTINGS_FILE", str(settings_file))
    return settings_file
