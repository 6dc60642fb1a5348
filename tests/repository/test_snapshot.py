"""Tests for the repository snapshot."""

import asyncio

import pytest
from git import Repo

from gitscribe.errors import RepoFileNotFoundError, RepositoryAccessError
from gitscribe.repository.snapshot import RepositorySnapshot
from gitscribe.types.base import RepositoryRef

from conftest import SERVER_JS


@pytest.mark.asyncio
async def test_snapshot_is_cloned_lazily(repo_ref, checkout_dirs):
    async with RepositorySnapshot(repo_ref) as snapshot:
        assert not snapshot.is_open
        assert checkout_dirs == []

        await snapshot.list_files()
        assert snapshot.is_open
        assert len(checkout_dirs) == 1


@pytest.mark.asyncio
async def test_list_files_skips_dot_entries(repo_ref):
    async with RepositorySnapshot(repo_ref) as snapshot:
        files = await snapshot.list_files()

    assert files == ["README.md", "server.js", "src/util.js"]
    assert not any(part.startswith(".") for f in files for part in f.split("/"))


@pytest.mark.asyncio
async def test_list_files_is_deterministic(repo_ref):
    async with RepositorySnapshot(repo_ref) as snapshot:
        first = await snapshot.list_files()
        second = await snapshot.list_files()

    assert first == second


@pytest.mark.asyncio
async def test_read_file_returns_content(repo_ref):
    async with RepositorySnapshot(repo_ref) as snapshot:
        content = await snapshot.read_file("server.js")

    assert content == SERVER_JS


@pytest.mark.asyncio
async def test_read_missing_file_raises_and_storage_is_removed(repo_ref, checkout_dirs):
    snapshot = RepositorySnapshot(repo_ref)
    try:
        with pytest.raises(RepoFileNotFoundError) as exc_info:
            await snapshot.read_file("does/not/exist.js")
        assert exc_info.value.path == "does/not/exist.js"
        assert checkout_dirs[0].exists()
    finally:
        await snapshot.close()

    assert not checkout_dirs[0].exists()


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/etc/passwd", "../source_repo/server.js", "src", ""])
async def test_read_file_rejects_paths_outside_checkout(repo_ref, path):
    async with RepositorySnapshot(repo_ref) as snapshot:
        with pytest.raises(RepoFileNotFoundError):
            await snapshot.read_file(path)


@pytest.mark.asyncio
async def test_close_is_idempotent(repo_ref, checkout_dirs):
    snapshot = RepositorySnapshot(repo_ref)
    await snapshot.list_files()

    await snapshot.close()
    await snapshot.close()

    assert not checkout_dirs[0].exists()
    assert not snapshot.is_open


@pytest.mark.asyncio
async def test_snapshot_cannot_be_reopened_after_close(repo_ref):
    snapshot = RepositorySnapshot(repo_ref)
    await snapshot.close()

    with pytest.raises(RepositoryAccessError):
        await snapshot.list_files()


@pytest.mark.asyncio
async def test_context_manager_closes_on_error(repo_ref, checkout_dirs):
    with pytest.raises(RuntimeError):
        async with RepositorySnapshot(repo_ref) as snapshot:
            await snapshot.list_files()
            raise RuntimeError("boom")

    assert not checkout_dirs[0].exists()


@pytest.mark.asyncio
async def test_concurrent_access_clones_once(repo_ref, checkout_dirs):
    async with RepositorySnapshot(repo_ref) as snapshot:
        files, content = await asyncio.gather(snapshot.list_files(), snapshot.read_file("src/util.js"))

    assert "src/util.js" in files
    assert "add" in content
    assert len(checkout_dirs) == 1


@pytest.mark.asyncio
async def test_unknown_branch_raises_repository_access_error(source_repo, checkout_dirs):
    ref = RepositoryRef(url=source_repo.as_uri(), branch="no-such-branch")

    async with RepositorySnapshot(ref) as snapshot:
        with pytest.raises(RepositoryAccessError) as exc_info:
            await snapshot.list_files()

    assert "no-such-branch" in str(exc_info.value)
    assert all(not d.exists() for d in checkout_dirs)


@pytest.mark.asyncio
async def test_cleanup_failure_is_logged_not_raised(repo_ref, monkeypatch, checkout_dirs):
    def failing_rmtree(path, *args, **kwargs):
        raise OSError("device busy")

    snapshot = RepositorySnapshot(repo_ref)
    await snapshot.list_files()
    monkeypatch.setattr("gitscribe.repository.snapshot.shutil.rmtree", failing_rmtree)

    await snapshot.close()

    assert not snapshot.is_open


@pytest.mark.asyncio
async def test_failed_clone_is_not_retried(source_repo, checkout_dirs):
    ref = RepositoryRef(url=source_repo.as_uri(), branch="no-such-branch")
    snapshot = RepositorySnapshot(ref)
    attempts = []
    real_clone = snapshot._clone

    def counting_clone():
        attempts.append(1)
        return real_clone()

    snapshot._clone = counting_clone
    try:
        for _ in range(3):
            with pytest.raises(RepositoryAccessError):
                await snapshot.list_files()
        with pytest.raises(RepositoryAccessError):
            await snapshot.read_file("server.js")
    finally:
        await snapshot.close()

    assert len(attempts) == 1
    assert len(checkout_dirs) == 1


@pytest.mark.asyncio
async def test_crlf_content_is_returned_unchanged(tmp_path):
    repo_path = tmp_path / "crlf_repo"
    repo_path.mkdir()
    repo = Repo.init(repo_path)
    (repo_path / "crlf.txt").write_bytes(b"one\r\ntwo\r\n")
    repo.index.add(["crlf.txt"])
    repo.index.commit("Add CRLF file")
    repo.git.branch("-M", "main")

    async with RepositorySnapshot(RepositoryRef(url=repo_path.as_uri(), branch="main")) as snapshot:
        assert await snapshot.read_file("crlf.txt") == "one\r\ntwo\r\n"


@pytest.mark.asyncio
async def test_unreadable_file_raises_repository_access_error(repo_ref, monkeypatch):
    def denied(self):
        raise PermissionError("permission denied")

    async with RepositorySnapshot(repo_ref) as snapshot:
        await snapshot.open()
        monkeypatch.setattr("gitscribe.repository.snapshot.Path.read_bytes", denied)
        with pytest.raises(RepositoryAccessError, match="Failed to read server.js"):
            await snapshot.read_file("server.js")
