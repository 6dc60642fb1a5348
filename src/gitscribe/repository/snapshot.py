"""
GitScribe repository snapshot: an ephemeral, read-only checkout of one branch.

The snapshot is cloned lazily on first use, shared by every tool call of a
session, and removed from disk exactly once when the session ends.
"""

import asyncio
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from git import Git, GitCommandError, Repo
from loguru import logger

from gitscribe.errors import RepoFileNotFoundError, RepositoryAccessError
from gitscribe.types.base import RepositoryRef


class RepositorySnapshot:
    """Scoped shallow checkout of a RepositoryRef.

    Use as an async context manager so the checkout is released on every exit
    path:

        async with RepositorySnapshot(ref) as snapshot:
            files = await snapshot.list_files()
    """

    def __init__(self, ref: RepositoryRef, clone_timeout: float = 60.0):
        self.ref = ref
        self.clone_timeout = clone_timeout
        self._temp_dir: Optional[Path] = None
        self._repo: Optional[Repo] = None
        self._lock = asyncio.Lock()
        self._closed = False
        self._open_error: Optional[RepositoryAccessError] = None

    @property
    def is_open(self) -> bool:
        return self._repo is not None

    @property
    def root(self) -> Path:
        if self._repo is None:
            raise RepositoryAccessError(f"Repository {self.ref.url} is not checked out")
        return Path(self._repo.working_dir)

    async def open(self) -> "RepositorySnapshot":
        """Clone the branch if that has not happened yet. Safe to call concurrently."""
        async with self._lock:
            if self._closed:
                raise RepositoryAccessError("Snapshot has already been closed")
            if self._open_error is not None:
                raise self._open_error
            if self._repo is None:
                try:
                    self._repo = await asyncio.to_thread(self._clone)
                except RepositoryAccessError as e:
                    # later tool calls and patch reads fail fast instead of re-cloning
                    self._open_error = e
                    raise
        return self

    def _clone(self) -> Repo:
        temp_dir = Path(tempfile.mkdtemp(prefix="gitscribe-"))
        repo_path = temp_dir / "repo"
        logger.info(f"Cloning repository {self.ref.url} ({self.ref.branch}) to {temp_dir}")
        try:
            Git().clone(
                self.ref.url,
                str(repo_path),
                depth=1,
                branch=self.ref.branch,
                single_branch=True,
                kill_after_timeout=self.clone_timeout,
                env={"GIT_TERMINAL_PROMPT": "0"},
            )
        except GitCommandError as e:
            shutil.rmtree(temp_dir, ignore_errors=True)
            stderr = (e.stderr or "").strip()
            raise RepositoryAccessError(
                f"Failed to clone {self.ref.url} (branch {self.ref.branch}): {stderr or e}"
            ) from e
        if self._closed:
            # closed (e.g. cancelled) while the clone was still running
            shutil.rmtree(temp_dir, ignore_errors=True)
            raise RepositoryAccessError("Snapshot was closed during clone")
        self._temp_dir = temp_dir
        return Repo(repo_path)

    async def list_files(self) -> List[str]:
        """Return every file path relative to the root, skipping dotfiles and dot-directories."""
        await self.open()
        return await asyncio.to_thread(self._walk)

    def _walk(self) -> List[str]:
        root = self.root
        files = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            for name in filenames:
                if name.startswith("."):
                    continue
                files.append((Path(dirpath) / name).relative_to(root).as_posix())
        return sorted(files)

    async def read_file(self, path: str) -> str:
        """Return the text of a root-relative file, or raise RepoFileNotFoundError."""
        await self.open()
        full_path = self._resolve(path)
        try:
            data = await asyncio.to_thread(full_path.read_bytes)
        except OSError as e:
            raise RepositoryAccessError(f"Failed to read {path}: {e}") from e
        # decoded without newline translation so CRLF files diff against their real bytes
        return data.decode("utf-8", errors="replace")

    def _resolve(self, path: str) -> Path:
        root = self.root.resolve()
        try:
            if not path or Path(path).is_absolute():
                raise RepoFileNotFoundError(path)
            full_path = (root / path).resolve()
            if root not in full_path.parents or not full_path.is_file():
                raise RepoFileNotFoundError(path)
        except (ValueError, OSError) as e:
            # e.g. embedded NUL bytes or over-long names
            raise RepoFileNotFoundError(path) from e
        return full_path

    async def close(self) -> None:
        """Remove the checkout. Idempotent; cleanup failures are logged, never raised."""
        async with self._lock:
            self._closed = True
            temp_dir, self._temp_dir = self._temp_dir, None
            if self._repo is not None:
                self._repo.close()
                self._repo = None
        if temp_dir is None:
            return
        try:
            await asyncio.to_thread(shutil.rmtree, temp_dir)
            logger.debug(f"Removed checkout {temp_dir}")
        except OSError as e:
            logger.warning(f"Failed to remove checkout {temp_dir}: {e}")

    async def __aenter__(self) -> "RepositorySnapshot":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
