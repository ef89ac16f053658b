import os

import pytest

from vibe_coding.modules.file_tree import build_file_tree, format_file_map, walk_workspace

from conftest import write_files


@pytest.fixture
def project(workspace):
    write_files(workspace, {
        ".gitignore": "*.log\nbuild/\n",
        "README.md": "# readme\n",
        "z.txt": "z" * 30,
        "src/b.py": "b" * 200,
        "src/a.py": "a" * 50,
        "src/sub/c.py": "c" * 100,
        "node_modules/pkg/index.js": "x" * 5000,
        ".git/HEAD": "ref: refs/heads/main\n",
        "build/out.js": "o" * 4000,
        "debug.log": "l" * 3000,
    })
    return workspace


def test_tree_sorts_directories_first(project) -> None:
    workspace_tree = build_file_tree(project)

    assert [node.name for node in workspace_tree.tree] == ["src", ".gitignore", "README.md", "z.txt"]
    src = workspace_tree.tree[0]
    assert [node.name for node in src.children] == ["sub", "a.py", "b.py"]
    assert src.children[0].children[0].path == "src/sub/c.py"


def test_excluded_and_ignored_paths_are_dropped(project) -> None:
    workspace_tree = build_file_tree(project)
    paths = {node.path for node in workspace_tree.files}

    assert paths == {".gitignore", "README.md", "z.txt", "src/a.py", "src/b.py", "src/sub/c.py"}


def test_directory_nodes_have_no_size(project) -> None:
    workspace_tree = build_file_tree(project)

    stack = list(workspace_tree.tree)
    while stack:
        node = stack.pop()
        if node.is_directory:
            assert node.size == 0
            stack.extend(node.children)
        else:
            assert node.size == os.path.getsize(project / node.path)


def test_biggest_files_are_global_and_descending(project) -> None:
    workspace_tree = build_file_tree(project, biggest_files_count=3)

    assert [node.path for node in workspace_tree.biggest_files] == ["src/b.py", "src/sub/c.py", "src/a.py"]


def test_biggest_files_ties_keep_traversal_order(workspace) -> None:
    write_files(workspace, {"b.txt": "xx", "a.txt": "yy", "dir/c.txt": "zz"})

    workspace_tree = build_file_tree(workspace)

    assert [node.path for node in workspace_tree.biggest_files] == ["a.txt", "b.txt", "dir/c.txt"]


def test_serialized_shape(project) -> None:
    data = build_file_tree(project, biggest_files_count=1).to_dict()

    assert set(data) == {"tree", "biggestFiles"}
    src = data["tree"][0]
    assert src["isDirectory"] is True
    assert "children" in src and "size" not in src
    assert data["biggestFiles"] == [{
        "path": "src/b.py", "name": "b.py", "isDirectory": False,
        "selected": True, "expanded": False, "size": 200,
    }]


def test_custom_ignore_file(workspace) -> None:
    write_files(workspace, {".vibeignore": "secret/\n", "secret/key.pem": "k", "app.py": "a"})

    workspace_tree = build_file_tree(workspace, ignore_file=".vibeignore")

    assert {node.path for node in workspace_tree.files} == {".vibeignore", "app.py"}


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_directory_symlinks_are_not_followed(workspace, tmp_path) -> None:
    outside = tmp_path / "outside"
    write_files(outside, {"leak.txt": "secret"})
    write_files(workspace, {"app.py": "a"})
    os.symlink(outside, workspace / "linked", target_is_directory=True)

    paths = list(walk_workspace(workspace, lambda _path: False))

    assert paths == ["app.py"]


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_unstattable_file_has_zero_size_and_no_ranking(workspace) -> None:
    write_files(workspace, {"app.py": "a" * 10})
    os.symlink(workspace / "missing.txt", workspace / "dangling.txt")

    workspace_tree = build_file_tree(workspace)

    dangling = [node for node in workspace_tree.files if node.path == "dangling.txt"]
    assert len(dangling) == 1
    assert dangling[0].size == 0
    assert "dangling.txt" in [node.name for node in workspace_tree.tree]
    assert [node.path for node in workspace_tree.biggest_files] == ["app.py"]


def test_empty_workspace(workspace) -> None:
    workspace_tree = build_file_tree(workspace)

    assert workspace_tree.tree == []
    assert workspace_tree.biggest_files == []


def test_file_map_rendering(workspace) -> None:
    write_files(workspace, {"src/a.py": "a", "src/b.py": "b", "z.txt": "z"})

    file_map = format_file_map(build_file_tree(workspace))

    assert file_map.splitlines() == [
        workspace.name,
        "├── src",
        "│   ├── a.py",
        "│   └── b.py",
        "└── z.txt",
    ]
