"""Error taxonomy for GitScribe.

Infrastructure failures (configuration, repository access, iteration budget)
are raised to the caller. Failures caused by the model's own behaviour are
turned into tool errors or degraded output and never escape the session.
"""


class GitScribeError(Exception):
    """Base class for all GitScribe errors."""


class ConfigurationError(GitScribeError):
    """A required setting (e.g. the provider credential) is missing or malformed."""


class RepositoryAccessError(GitScribeError):
    """The repository could not be cloned (timeout, auth failure, unknown branch)."""


class RepoFileNotFoundError(GitScribeError):
    """A requested path does not exist inside the checkout."""

    def __init__(self, path: str):
        super().__init__(f"File not found: {path}")
        self.path = path


class UnknownToolError(GitScribeError):
    """The model asked for a tool the catalog does not declare."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class InvalidToolArgumentsError(GitScribeError):
    """The model called a tool without the arguments its schema requires."""


class InvalidResponseFormatError(GitScribeError):
    """The final answer is not a JSON object with a summary and a files array."""


class AgentExceededIterationsError(GitScribeError):
    """The model kept calling tools past the configured round limit."""

    def __init__(self, max_iterations: int):
        super().__init__(f"Agent exceeded maximum iterations ({max_iterations})")
        self.max_iterations = max_iterations


class PatchGenerationError(GitScribeError):
    """A unified diff could not be produced for a single file."""
