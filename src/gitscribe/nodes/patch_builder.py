"""Patch Builder turning proposed file contents into per-file unified diffs."""

import asyncio
import difflib
from typing import List

from loguru import logger

from gitscribe.errors import PatchGenerationError, RepoFileNotFoundError
from gitscribe.repository.snapshot import RepositorySnapshot
from gitscribe.types.generation import FilePatch, GeneratedFile, GenerationResult

NO_NEWLINE_MARKER = "\\ No newline at end of file\n"


def unified_diff(filename: str, before: str, after: str) -> str:
    """Unified diff between two versions of a file; empty when they are identical."""
    try:
        lines = difflib.unified_diff(
            before.splitlines(keepends=True),
            after.splitlines(keepends=True),
            fromfile=f"Original {filename}",
            tofile=f"Modified {filename}",
        )
        chunks = []
        for line in lines:
            if line.endswith("\n"):
                chunks.append(line)
            else:
                chunks.append(line + "\n" + NO_NEWLINE_MARKER)
        return "".join(chunks)
    except Exception as e:
        raise PatchGenerationError(f"Failed to diff {filename}: {e}") from e


async def _original_content(snapshot: RepositorySnapshot, filename: str) -> str:
    try:
        return await snapshot.read_file(filename)
    except RepoFileNotFoundError:
        logger.debug(f"{filename} does not exist yet, diffing against empty content")
        return ""


async def build_file_patch(snapshot: RepositorySnapshot, file: GeneratedFile) -> FilePatch:
    """Build the patch for a single file; failures are embedded in the patch text."""
    try:
        before = await _original_content(snapshot, file.filename)
        patch = await asyncio.to_thread(unified_diff, file.filename, before, file.new_content)
        return FilePatch(filename=file.filename, patch=patch)
    except Exception as e:
        logger.warning(f"Patch generation failed for {file.filename}: {e}")
        patch = f"Error generating patch: {e}\n\nProposed content:\n{file.new_content}"
        return FilePatch(filename=file.filename, patch=patch, failed=True)


async def build_patches(snapshot: RepositorySnapshot, result: GenerationResult) -> List[FilePatch]:
    """Build one patch per file, in the order the model listed them."""
    patches = await asyncio.gather(*(build_file_patch(snapshot, file) for file in result.files))
    logger.info(f"Built {len(patches)} patch(es), {sum(p.failed for p in patches)} failed")
    return list(patches)
