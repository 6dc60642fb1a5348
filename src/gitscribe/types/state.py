"""State management types for the GitScribe agent loop."""

from typing import List, Optional, TypedDict

from langchain_core.messages import BaseMessage


class SessionState(TypedDict):
    """
    State threaded through the agent graph.
    The message log only ever grows; nodes return a longer copy of it.
    """

    messages: List[BaseMessage]  # system, user, assistant and tool messages in order
    iteration: int  # completed tool rounds
    final_content: Optional[str]  # content of the last non-tool-call answer
