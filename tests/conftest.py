"""Shared fixtures: a throwaway Git repository and a scripted chat model."""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Union

import pytest
from git import Repo
from langchain_core.messages import AIMessage, BaseMessage

from gitscribe.config import Settings
from gitscribe.types.base import RepositoryRef

SERVER_JS = """const express = require('express');
const app = express();

app.get('/', (req, res) => {
  res.send('hello');
});

app.listen(3000);
"""

UTIL_JS = """export function add(a, b) {
  return a + b;
}
"""

Response = Union[AIMessage, Callable[[List[BaseMessage]], AIMessage]]


class ScriptedChatModel:
    """Stand-in for a tool-calling chat model that replays canned replies."""

    def __init__(self, responses: List[Response]):
        self.responses = list(responses)
        self.requests: List[List[BaseMessage]] = []
        self.bound_tools: List[Dict[str, Any]] = []
        self.bind_kwargs: Dict[str, Any] = {}

    def bind_tools(self, tools, **kwargs):
        self.bound_tools = tools
        self.bind_kwargs = kwargs
        return self

    async def ainvoke(self, messages, config=None, **kwargs):
        self.requests.append(list(messages))
        if not self.responses:
            raise AssertionError("ScriptedChatModel ran out of responses")
        response = self.responses.pop(0)
        return response(messages) if callable(response) else response


def tool_calls(*calls: tuple) -> AIMessage:
    """AIMessage requesting the given (id, name, args) tool calls."""
    return AIMessage(
        content="",
        tool_calls=[{"id": call_id, "name": name, "args": args} for call_id, name, args in calls],
    )


def final_answer(summary: str, files: List[Dict[str, str]]) -> AIMessage:
    return AIMessage(content=json.dumps({"summary": summary, "files": files}))


def commit_file(repo: Repo, relative_path: str, content: str) -> None:
    file_path = Path(repo.working_dir) / relative_path
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(content)
    repo.index.add([relative_path])


@pytest.fixture
def source_repo(tmp_path):
    """A small repository on branch 'main' with a few regular files and dot entries."""
    repo_path = tmp_path / "source_repo"
    repo_path.mkdir()
    repo = Repo.init(repo_path)

    commit_file(repo, "server.js", SERVER_JS)
    commit_file(repo, "src/util.js", UTIL_JS)
    commit_file(repo, "README.md", "# demo\n")
    commit_file(repo, ".gitignore", "node_modules/\n")
    commit_file(repo, ".github/workflows/ci.yml", "on: push\n")
    repo.index.commit("Initial commit")
    repo.git.branch("-M", "main")

    return repo_path


@pytest.fixture
def repo_ref(source_repo):
    return RepositoryRef(url=source_repo.as_uri(), branch="main")


@pytest.fixture
def settings():
    return Settings(groq_api_key="test-key", temperature=0, max_iterations=10, clone_timeout=30)


@pytest.fixture
def checkout_dirs(tmp_path, monkeypatch):
    """Route snapshot checkouts into tmp_path and record every directory created."""
    import tempfile

    created: List[Path] = []
    checkout_root = tmp_path / "checkouts"
    checkout_root.mkdir()
    real_mkdtemp = tempfile.mkdtemp

    def mkdtemp(prefix=None, **kwargs):
        path = Path(real_mkdtemp(prefix=prefix, dir=checkout_root))
        created.append(path)
        return str(path)

    monkeypatch.setattr("gitscribe.repository.snapshot.tempfile.mkdtemp", mkdtemp)
    return created
