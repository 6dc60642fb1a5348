"""Base types used across the GitScribe system."""

import json
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ConversationEntry(BaseModel):
    """One line of the recorded conversation, in chronological order."""

    timestamp: datetime = Field(..., description="When the line was spoken")
    username: str = Field(..., description="Who said it")
    text: str = Field(
        ...,
        validation_alias=AliasChoices("text", "transcription"),
        description="The transcribed text",
    )

    def format(self) -> str:
        return f"[{self.timestamp.isoformat()}] {self.username}: {self.text}"


class RepositoryRef(BaseModel):
    """Identifies a remote repository and branch. Not a live resource."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="Clone URL of the repository")
    branch: str = Field("main", description="Branch to check out")


class ToolCall(BaseModel):
    """A structured request from the model to invoke a catalog tool."""

    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_langchain(cls, call: Dict[str, Any]) -> "ToolCall":
        """Create a ToolCall from a LangChain tool call or invalid tool call.

        Invalid tool calls carry their arguments as the raw JSON string the
        model produced; anything that does not decode to an object becomes {}.
        """
        args = call.get("args")
        if isinstance(args, str):
            try:
                args = json.loads(args or "{}")
            except json.JSONDecodeError:
                args = {}
        if not isinstance(args, dict):
            args = {}
        return cls(id=call.get("id") or "", name=call.get("name") or "", arguments=args)


class ToolResult(BaseModel):
    """Outcome of one tool call, keyed by the id of the call it answers."""

    call_id: str
    content: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_message_content(self) -> str:
        """Serialise the result the way it is shown to the model."""
        if self.error is not None:
            return json.dumps({"error": self.error})
        return json.dumps(self.content or {})
