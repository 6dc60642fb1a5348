"""GitScribe entry points: turn a conversation transcript into reviewable patches."""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, List, Optional, Sequence

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from gitscribe.config import Settings, create_llm, load_settings
from gitscribe.errors import ConfigurationError, GitScribeError
from gitscribe.nodes.agent_session import AgentSession
from gitscribe.nodes.patch_builder import build_patches
from gitscribe.repository.snapshot import RepositorySnapshot
from gitscribe.types.base import ConversationEntry, RepositoryRef
from gitscribe.types.generation import FilePatch, PatchSet

NO_CONVERSATIONS_SUMMARY = "No conversations found. Please have some conversations first."


async def generate(
    ref: RepositoryRef,
    transcript: Sequence[ConversationEntry],
    llm: Any = None,
    settings: Optional[Settings] = None,
) -> PatchSet:
    """Run one generation: agent loop, answer validation, then per-file patches.

    The repository snapshot is shared by every tool call and by the patch
    builder, and is removed when this coroutine exits, including on error or
    cancellation. When an llm is injected without settings, default Settings
    are used and no credential is needed.

    Raises:
        ConfigurationError: no llm and no settings were given and GROQ_API_KEY is missing.
        AgentExceededIterationsError: the model never produced a final answer.
    """
    if settings is None:
        settings = Settings() if llm is not None else load_settings()
    if llm is None:
        llm = create_llm(settings)

    async with RepositorySnapshot(ref, clone_timeout=settings.clone_timeout) as snapshot:
        session = AgentSession(
            llm,
            snapshot,
            max_iterations=settings.max_iterations,
            force_json_output=settings.force_json_output,
            summary_fallback_chars=settings.summary_fallback_chars,
        )
        session_result = await session.run(ref, transcript)
        result = session_result.outcome.result
        patches = await build_patches(snapshot, result)

    return PatchSet(
        summary=result.summary,
        files=patches,
        degraded=session_result.outcome.is_degraded,
        iterations=session_result.iterations,
    )


async def run_generation(
    ref: RepositoryRef,
    transcript: Sequence[ConversationEntry],
    llm: Any = None,
    settings: Optional[Settings] = None,
) -> PatchSet:
    """Caller-level wrapper that always returns a PatchSet.

    An empty transcript short-circuits without contacting the model. Any error,
    including provider failures, is reported through the summary instead of
    being raised.
    """
    if not transcript:
        logger.info("No conversations to generate code from")
        return PatchSet(summary=NO_CONVERSATIONS_SUMMARY, files=[])

    try:
        return await generate(ref, transcript, llm=llm, settings=settings)
    except GitScribeError as e:
        logger.error(f"Error during code generation: {e}")
        return PatchSet(summary=f"Error during code generation: {e}", files=[], degraded=True)
    except Exception as e:
        # provider failures (auth, rate limits, timeouts) surface the same way
        logger.exception(f"Unexpected error during code generation: {e}")
        return PatchSet(summary=f"Error during code generation: {e}", files=[], degraded=True)


def load_transcript(path: Path) -> List[ConversationEntry]:
    """Read a JSON array of {timestamp, username, text|transcription} objects."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return TypeAdapter(List[ConversationEntry]).validate_python(data)


def _safe_patch_name(filename: str) -> str:
    return f"{filename.replace('/', '_')}.patch"


def save_patches(patch_set: PatchSet, output_dir: Path) -> List[str]:
    """Write each non-empty patch to output_dir and return the names written."""
    saved: List[str] = []
    writable: List[FilePatch] = [p for p in patch_set.files if p.filename and p.patch]
    if not writable:
        return saved

    os.makedirs(output_dir, exist_ok=True)
    for file_patch in writable:
        name = _safe_patch_name(file_patch.filename)
        (Path(output_dir) / name).write_text(file_patch.patch, encoding="utf-8")
        saved.append(name)
    return saved


def main():
    parser = argparse.ArgumentParser(description="Generate code patches from a conversation transcript")
    parser.add_argument("--repo-url", type=str, required=True, help="Clone URL of the target repository")
    parser.add_argument("--branch", type=str, default="main", help="Branch to generate changes against")
    parser.add_argument("--transcript", type=str, required=True, help="Path to a JSON transcript file")
    parser.add_argument("--output-dir", type=str, help="Output directory for patch files", default="patches")
    parser.add_argument("--model", type=str, help="Groq model to use (overrides GITSCRIBE_MODEL)")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    args = parser.parse_args()

    if not args.verbose:
        logger.remove()
        logger.add(sys.stderr, level="INFO")

    try:
        settings = load_settings(model=args.model)
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)

    try:
        transcript = load_transcript(Path(args.transcript))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Failed to read transcript {args.transcript}: {e}")
        sys.exit(1)

    ref = RepositoryRef(url=args.repo_url, branch=args.branch)
    logger.info(f"Generating changes for {ref.url} ({ref.branch}) from {len(transcript)} message(s)")
    patch_set = asyncio.run(run_generation(ref, transcript, settings=settings))

    print(patch_set.summary)
    saved = save_patches(patch_set, Path(args.output_dir))
    for name in saved:
        logger.info(f"Saved patch: {os.path.join(args.output_dir, name)}")

    if patch_set.degraded:
        sys.exit(2)


if __name__ == "__main__":
    main()
