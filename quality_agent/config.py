"""Configuration for the quality agent."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import os


def _env_bool(name: str, default: bool) -> bool:
    return os.environ.get(name, str(default)).lower() == "true"


@dataclass
class LLMConfig:
    """Reasoning backend selection and transport settings."""

    provider: Optional[str] = None   # claude, openai, ollama, ... (inferred when None)
    api_key: Optional[str] = None    # Explicit key wins over environment
    model: Optional[str] = None      # Provider default when None
    base_url: Optional[str] = None   # Provider default when None
    max_tokens: int = 8192
    temperature: float = 0.0
    request_timeout: float = 120.0   # Seconds per backend round trip

    @classmethod
    def from_env(cls) -> "LLMConfig":
        """Create config from QUALITY_AGENT_* environment variables."""
        return cls(
            provider=os.environ.get("QUALITY_AGENT_PROVIDER") or None,
            api_key=os.environ.get("QUALITY_AGENT_API_KEY") or None,
            model=os.environ.get("QUALITY_AGENT_MODEL") or None,
            base_url=os.environ.get("QUALITY_AGENT_BASE_URL") or None,
            request_timeout=float(os.environ.get("QUALITY_AGENT_REQUEST_TIMEOUT", "120")),
        )


@dataclass
class AgentLoopConfig:
    """Configuration for the agentic analysis loop."""

    max_iterations: int = 10
    batch_size: int = 5          # Files per group-analysis prompt
    max_groups: int = 3          # Group-analysis passes after the main loop
    file_listing_limit: int = 50

    # Static tools gathered up front as context
    run_lint: bool = True
    run_type_check: bool = True
    run_tests: bool = False
    run_build: bool = False

    tool_timeout: float = 60.0
    focus_areas: List[str] = field(default_factory=list)
    system_prompt: Optional[str] = None  # Overrides the built-in prompt


@dataclass
class OrchestratorConfig:
    """Configuration for one orchestrator run."""

    analyzers: Optional[List[str]] = None  # Fallback roster subset (default: all)
    concurrency: int = 4                   # Analyzers per fallback batch
    deduplicate: bool = True
    sort_by_severity: bool = True
    max_issues: int = 0                    # 0 = unlimited
    use_llm: bool = True                   # False forces the fallback path
    agent_timeout: Optional[float] = None  # Wall clock for the whole agentic run
    analyzer_configs: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    llm: LLMConfig = field(default_factory=LLMConfig)
    agent: AgentLoopConfig = field(default_factory=AgentLoopConfig)

    @classmethod
    def from_env(cls) -> "OrchestratorConfig":
        """Create config from environment variables."""
        max_iterations = int(os.environ.get("QUALITY_AGENT_MAX_ITERATIONS", "10"))
        return cls(
            concurrency=int(os.environ.get("QUALITY_AGENT_CONCURRENCY", "4")),
            max_issues=int(os.environ.get("QUALITY_AGENT_MAX_ISSUES", "0")),
            use_llm=_env_bool("QUALITY_AGENT_USE_LLM", True),
            llm=LLMConfig.from_env(),
            agent=AgentLoopConfig(max_iterations=max_iterations),
        )


@dataclass
class ReAnalysisConfig:
    """Configuration for fix verification."""

    run_lint: bool = True
    run_type_check: bool = True
    run_tests: bool = True
    run_build: bool = False
    max_iterations: int = 3
    tool_timeout: float = 60.0


@dataclass
class TrackerConfig:
    """Configuration for the issue tracker."""

    max_retries: int = 3


@dataclass
class ToolCommands:
    """Executables behind the command tools. Override per project."""

    lint: List[str] = field(default_factory=lambda: ["ruff", "check", "--output-format", "json"])
    type_check: List[str] = field(default_factory=lambda: ["mypy", "--no-error-summary", "--show-column-numbers"])
    tests: List[str] = field(default_factory=lambda: ["pytest", "-q", "--no-header"])
    build: List[str] = field(default_factory=lambda: ["python", "-m", "compileall", "-q", "."])


# Default configurations
DEFAULT_CONFIG = OrchestratorConfig()
DEFAULT_REANALYSIS_CONFIG = ReAnalysisConfig()
