"""Tests for scratch directory handling."""

import os

import pytest

from filevault.core.errors import WorkspaceError
from filevault.media.workspace import ensure_dir, remove_file, remove_tree, scoped_workspace


class TestEnsureDir:
    def test_creates_nested_directory(self, tmp_path):
        target = tmp_path / "a" / "b"
        result = ensure_dir(str(target))
        assert result == os.path.abspath(str(target))
        assert target.is_dir()

    def test_existing_directory_is_fine(self, tmp_path):
        assert ensure_dir(str(tmp_path)) == str(tmp_path)

    def test_path_that_is_a_file_fails(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        with pytest.raises(WorkspaceError):
            ensure_dir(str(blocker))

    def test_workspace_error_is_an_io_error(self):
        assert issubclass(WorkspaceError, IOError)


class TestRemoval:
    def test_remove_tree_missing_path_is_silent(self, tmp_path):
        remove_tree(str(tmp_path / "missing"))

    def test_remove_tree_removes_contents(self, tmp_path):
        root = tmp_path / "job"
        (root / "720p").mkdir(parents=True)
        (root / "720p" / "index.m3u8").write_text("#EXTM3U")
        remove_tree(str(root))
        assert not root.exists()

    def test_remove_file_reports_whether_it_removed(self, tmp_path):
        f = tmp_path / "buffer.bin"
        f.write_bytes(b"1")
        assert remove_file(str(f)) is True
        assert remove_file(str(f)) is False


class TestScopedWorkspace:
    async def test_removed_after_success(self, tmp_path):
        async with scoped_workspace(str(tmp_path), prefix="hls") as workspace:
            assert os.path.isdir(workspace)
            assert os.path.basename(workspace).startswith("hls-")
            open(os.path.join(workspace, "master.m3u8"), "w").close()
        assert not os.path.exists(workspace)

    async def test_removed_after_error(self, tmp_path):
        with pytest.raises(RuntimeError):
            async with scoped_workspace(str(tmp_path)) as workspace:
                raise RuntimeError("boom")
        assert not os.path.exists(workspace)
        assert os.listdir(tmp_path) == []
