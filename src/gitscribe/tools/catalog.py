"""Tool catalog: the repository operations the model is allowed to call."""

from typing import Any, Dict, List

from loguru import logger

from gitscribe.errors import InvalidToolArgumentsError, UnknownToolError
from gitscribe.repository.snapshot import RepositorySnapshot
from gitscribe.types.base import ToolCall, ToolResult

LIST_REPO_FILES = "list_repo_files"
GET_FILE_CONTENT = "get_file_content"

# OpenAI-style function schemas, passed straight to ChatGroq.bind_tools
TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": LIST_REPO_FILES,
            "description": (
                "Lists all files in the git repository on the branch under discussion. "
                "Takes no parameters. Returns an array of file paths relative to the "
                "repository root. Call this first to understand the repository structure."
            ),
            "parameters": {"type": "object", "properties": {}, "required": []},
        },
    },
    {
        "type": "function",
        "function": {
            "name": GET_FILE_CONTENT,
            "description": (
                "Retrieves the complete content of one file from the repository. "
                "Use it to read files that need to be modified or to understand existing code. "
                "Always pass a path exactly as returned by list_repo_files, relative to the "
                "repository root, never an absolute path."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "filePath": {
                        "type": "string",
                        "description": (
                            "Path relative to the repository root, matching one of the paths "
                            'returned by list_repo_files, e.g. "src/index.js" or "package.json".'
                        ),
                    }
                },
                "required": ["filePath"],
            },
        },
    },
]


class ToolDispatcher:
    """Binds catalog tool names to operations on a session's snapshot.

    Dispatch never raises for tool-level problems: unknown tools, missing files,
    bad arguments and repository failures all come back as ToolResult.error so
    the model can read the error and try again.
    """

    def __init__(self, snapshot: RepositorySnapshot):
        self.snapshot = snapshot

    async def dispatch(self, call: ToolCall) -> ToolResult:
        logger.debug(f"Dispatching tool {call.name} ({call.id}) with {call.arguments}")
        try:
            content = await self._invoke(call)
        except Exception as e:
            logger.debug(f"Tool {call.name} ({call.id}) failed: {e}")
            return ToolResult(call_id=call.id, error=str(e))
        return ToolResult(call_id=call.id, content=content)

    async def _invoke(self, call: ToolCall) -> Dict[str, Any]:
        if call.name == LIST_REPO_FILES:
            return {"files": await self.snapshot.list_files()}
        if call.name == GET_FILE_CONTENT:
            file_path = call.arguments.get("filePath")
            if not isinstance(file_path, str) or not file_path:
                raise InvalidToolArgumentsError("get_file_content requires a string 'filePath' argument")
            return {"content": await self.snapshot.read_file(file_path)}
        raise UnknownToolError(call.name)
