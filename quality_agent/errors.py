"""Exception hierarchy for the quality agent."""


class QualityAgentError(Exception):
    """Base class for all quality agent errors."""


class ConfigurationError(QualityAgentError):
    """Invalid configuration or usage (unknown analyzer, bad provider)."""


class PluginValidationError(QualityAgentError):
    """Analyzer plugin manifest or contract is invalid."""


class BackendError(QualityAgentError):
    """Reasoning backend call failed, timed out, or returned garbage."""


class ToolError(QualityAgentError):
    """A tool invocation failed. The message is fed back to the model."""


class IssueNotFoundError(QualityAgentError):
    """Issue id is unknown to the tracker and its backing store."""

    def __init__(self, issue_id: str):
        super().__init__(f"Issue not found: {issue_id}")
        self.issue_id = issue_id


class ToolUnavailableError(ToolError):
    """The executable behind a command tool is not installed."""
