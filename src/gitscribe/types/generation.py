"""Types for the model's final answer and the patches built from it."""

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictStr, field_validator


class GeneratedFile(BaseModel):
    """A file the model wants to create or replace, with its full new content."""

    model_config = ConfigDict(populate_by_name=True)

    filename: StrictStr
    new_content: StrictStr = Field(..., validation_alias=AliasChoices("new_content", "newContent"))

    @field_validator("filename")
    @classmethod
    def _relative_to_root(cls, value: str) -> str:
        path = PurePosixPath(value)
        if not value or "\x00" in value or path.is_absolute() or ".." in path.parts:
            raise ValueError(f"filename must be relative to the repository root: {value!r}")
        return value


class GenerationResult(BaseModel):
    """The contract the model must return: a summary and the changed files."""

    summary: StrictStr
    files: List[GeneratedFile]


@dataclass
class ValidResponse:
    """The final answer parsed and validated cleanly."""

    result: GenerationResult

    @property
    def is_degraded(self) -> bool:
        return False


@dataclass
class DegradedResponse:
    """The final answer could not be validated; a best-effort result is kept."""

    raw_text: str
    reason: str
    summary_chars: int = 200

    @property
    def is_degraded(self) -> bool:
        return True

    @property
    def result(self) -> GenerationResult:
        summary = self.raw_text[: self.summary_chars] if self.raw_text else "Code generation completed"
        return GenerationResult(summary=summary, files=[])


class FilePatch(BaseModel):
    """Unified diff for one file, or an embedded error plus the raw proposed content."""

    filename: str
    patch: str
    failed: bool = False


class PatchSet(BaseModel):
    """What a generation run hands back to its caller."""

    summary: str
    files: List[FilePatch] = Field(default_factory=list)
    degraded: bool = False
    iterations: int = 0
