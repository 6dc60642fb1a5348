"""Agent session: the bounded model/tool loop, orchestrated with LangGraph.

States map onto graph nodes:

    awaiting_model --(tool calls)--> executing_tools --> awaiting_model
    awaiting_model --(final answer)--> END

The iteration bound is enforced on entry to awaiting_model.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.prompts import PromptTemplate
from langgraph.graph import END, StateGraph
from loguru import logger

from gitscribe.errors import AgentExceededIterationsError
from gitscribe.nodes.response_validator import ValidationOutcome, validate_response
from gitscribe.repository.snapshot import RepositorySnapshot
from gitscribe.tools.catalog import TOOL_DEFINITIONS, ToolDispatcher
from gitscribe.types.base import ConversationEntry, RepositoryRef, ToolCall
from gitscribe.types.state import SessionState

AWAITING_MODEL = "awaiting_model"
EXECUTING_TOOLS = "executing_tools"

# LLM prompt templates
SYSTEM_PROMPT_TEMPLATE = """
You are an AI code generation agent. Based on the conversation transcript provided, analyze the requirements and generate code changes.

Your task:
1. Analyze the conversation to understand what code changes are needed
2. Use the available tools to explore the repository structure and relevant files:
   - First, call list_repo_files to see all files in the repository
   - Then, call get_file_content for each file you need to read or modify
3. After exploring the codebase, generate code changes

When you are done, respond with a strict JSON object with exactly this structure:
{{
    "summary": "A brief summary of the changes made",
    "files": [
        {{
            "filename": "path/to/file.js",
            "new_content": "complete file content with changes"
        }}
    ]
}}

Important:
1. Only include files that need to be changed or created
2. Provide the complete content for each file, not a diff
3. Make sure the code is syntactically correct
4. Filenames must be relative to the repository root, as returned by list_repo_files
5. The repository URL is: {repo_url}
6. The branch is: {branch}
7. Respond with ONLY the JSON object, no text before or after it
"""

USER_PROMPT_TEMPLATE = """Based on the following conversation, generate the necessary code changes:

{conversation}"""

EMPTY_CONVERSATION = "(no conversation was recorded)"


def format_transcript(transcript: Sequence[ConversationEntry]) -> str:
    """Render the transcript one line per entry, keeping its order."""
    if not transcript:
        return EMPTY_CONVERSATION
    return "\n".join(entry.format() for entry in transcript)


def build_initial_messages(ref: RepositoryRef, transcript: Sequence[ConversationEntry]) -> List[BaseMessage]:
    system_prompt = PromptTemplate.from_template(SYSTEM_PROMPT_TEMPLATE).format(repo_url=ref.url, branch=ref.branch)
    user_prompt = PromptTemplate.from_template(USER_PROMPT_TEMPLATE).format(conversation=format_transcript(transcript))
    return [SystemMessage(content=system_prompt.strip()), HumanMessage(content=user_prompt)]


def pending_tool_calls(message: BaseMessage) -> List[ToolCall]:
    """Tool calls requested by an assistant message, in the order the model issued them.

    Calls whose arguments LangChain could not parse are still answered, with
    empty arguments, so every call id gets a tool message. LangChain splits
    parsed and unparsed calls into two lists; the provider's raw tool_calls
    list restores the order they were issued in.
    """
    if not isinstance(message, AIMessage):
        return []
    calls = list(message.tool_calls) + list(getattr(message, "invalid_tool_calls", None) or [])
    raw_calls = message.additional_kwargs.get("tool_calls") or []
    if raw_calls:
        position = {raw.get("id"): i for i, raw in enumerate(raw_calls) if isinstance(raw, dict)}
        calls.sort(key=lambda call: position.get(call.get("id"), len(position)))
    return [ToolCall.from_langchain(call) for call in calls]


def message_text(message: BaseMessage) -> str:
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


@dataclass
class SessionResult:
    """Outcome of one session run."""

    outcome: ValidationOutcome
    messages: List[BaseMessage]
    iterations: int


class AgentSession:
    """Runs one invocation of the model/tool loop against a single snapshot."""

    def __init__(
        self,
        llm: Any,
        snapshot: RepositorySnapshot,
        max_iterations: int = 10,
        force_json_output: bool = False,
        summary_fallback_chars: int = 200,
    ):
        self.snapshot = snapshot
        self.dispatcher = ToolDispatcher(snapshot)
        self.max_iterations = max_iterations
        self.summary_fallback_chars = summary_fallback_chars

        bind_kwargs = {"response_format": {"type": "json_object"}} if force_json_output else {}
        self.model = llm.bind_tools(TOOL_DEFINITIONS, **bind_kwargs)
        self.graph = self._create_graph()

    def _create_graph(self):
        workflow = StateGraph(SessionState)

        workflow.add_node(AWAITING_MODEL, self.awaiting_model)
        workflow.add_node(EXECUTING_TOOLS, self.executing_tools)

        workflow.set_entry_point(AWAITING_MODEL)

        workflow.add_conditional_edges(
            AWAITING_MODEL,
            self._route_after_model,
            {EXECUTING_TOOLS: EXECUTING_TOOLS, END: END},
        )
        workflow.add_edge(EXECUTING_TOOLS, AWAITING_MODEL)

        return workflow.compile()

    @staticmethod
    def _route_after_model(state: SessionState) -> str:
        return EXECUTING_TOOLS if pending_tool_calls(state["messages"][-1]) else END

    async def awaiting_model(self, state: SessionState) -> dict:
        """Send the full message log to the model and append its reply."""
        if state["iteration"] >= self.max_iterations:
            raise AgentExceededIterationsError(self.max_iterations)

        logger.debug(f"Requesting model response (round {state['iteration'] + 1}/{self.max_iterations})")
        response = await self.model.ainvoke(state["messages"])
        messages = state["messages"] + [response]

        if pending_tool_calls(response):
            return {"messages": messages, "final_content": None}
        return {"messages": messages, "final_content": message_text(response)}

    async def executing_tools(self, state: SessionState) -> dict:
        """Run the pending tool calls and append one tool message per call, in issue order."""
        calls = pending_tool_calls(state["messages"][-1])
        logger.info(f"Executing {len(calls)} tool call(s): {', '.join(c.name for c in calls)}")

        # gather keeps results aligned with calls regardless of completion order
        results = await asyncio.gather(*(self.dispatcher.dispatch(call) for call in calls))
        tool_messages = [
            ToolMessage(content=result.to_message_content(), tool_call_id=call.id, name=call.name)
            for call, result in zip(calls, results)
        ]

        return {"messages": state["messages"] + tool_messages, "iteration": state["iteration"] + 1}

    async def run(self, ref: RepositoryRef, transcript: Sequence[ConversationEntry]) -> SessionResult:
        """Drive the loop to a final answer and validate it.

        Raises AgentExceededIterationsError when the model keeps calling tools
        past the bound. Provider errors propagate unchanged.
        """
        initial_state: SessionState = {
            "messages": build_initial_messages(ref, transcript),
            "iteration": 0,
            "final_content": None,
        }
        logger.info(f"Starting agent session for {ref.url} ({ref.branch}) with {len(transcript)} message(s)")

        final_state = await self.graph.ainvoke(
            initial_state,
            config={"recursion_limit": 2 * self.max_iterations + 3},
        )

        final_content: Optional[str] = final_state["final_content"]
        outcome = validate_response(final_content, summary_chars=self.summary_fallback_chars)
        if outcome.is_degraded:
            logger.warning(f"Agent session finished with a degraded answer: {outcome.reason}")
        else:
            logger.info(f"Agent session finished after {final_state['iteration']} tool round(s)")

        return SessionResult(
            outcome=outcome,
            messages=final_state["messages"],
            iterations=final_state["iteration"],
        )
