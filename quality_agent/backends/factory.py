"""Provider table, credential discovery and backend construction."""

import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..config import LLMConfig
from ..errors import ConfigurationError
from .base import ReasoningBackend


@dataclass(frozen=True)
class ProviderInfo:
    """Static facts about one reasoning-backend vendor."""
    name: str
    base_url: str
    default_model: str
    env_vars: Tuple[str, ...] = ()
    requires_key: bool = True


PROVIDERS: Dict[str, ProviderInfo] = {
    "claude": ProviderInfo(
        "claude", "https://api.anthropic.com", "claude-sonnet-4-20250514",
        ("ANTHROPIC_API_KEY",),
    ),
    "openai": ProviderInfo(
        "openai", "https://api.openai.com/v1", "gpt-4o", ("OPENAI_API_KEY",),
    ),
    "ollama": ProviderInfo(
        "ollama", "http://localhost:11434/v1", "llama3", (), requires_key=False,
    ),
    "gemini": ProviderInfo(
        "gemini", "https://generativelanguage.googleapis.com/v1beta/openai",
        "gemini-2.0-flash", ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    ),
    "openrouter": ProviderInfo(
        "openrouter", "https://openrouter.ai/api/v1", "anthropic/claude-3.5-sonnet",
        ("OPENROUTER_API_KEY",),
    ),
    "deepseek": ProviderInfo(
        "deepseek", "https://api.deepseek.com/v1", "deepseek-chat", ("DEEPSEEK_API_KEY",),
    ),
    "mistral": ProviderInfo(
        "mistral", "https://api.mistral.ai/v1", "mistral-large-latest", ("MISTRAL_API_KEY",),
    ),
    "groq": ProviderInfo(
        "groq", "https://api.groq.com/openai/v1", "llama-3.3-70b-versatile", ("GROQ_API_KEY",),
    ),
    "together": ProviderInfo(
        "together", "https://api.together.xyz/v1", "meta-llama/Llama-3-70b-chat-hf",
        ("TOGETHER_API_KEY",),
    ),
    "cohere": ProviderInfo(
        "cohere", "https://api.cohere.ai/v1", "command-r-plus",
        ("COHERE_API_KEY", "CO_API_KEY"),
    ),
}

# Checked in order when neither an explicit key nor a provider is configured
CREDENTIAL_ENV_VARS: List[str] = [
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "GOOGLE_API_KEY",
    "GEMINI_API_KEY",
    "OPENROUTER_API_KEY",
    "DEEPSEEK_API_KEY",
    "MISTRAL_API_KEY",
    "GROQ_API_KEY",
    "TOGETHER_API_KEY",
    "COHERE_API_KEY",
    "CO_API_KEY",
]

_PROVIDER_BY_ENV = {
    env: info.name for info in PROVIDERS.values() for env in info.env_vars
}


@dataclass(frozen=True)
class Credential:
    """Outcome of credential discovery."""
    provider: str
    api_key: Optional[str]
    source: str  # "config", "env:<NAME>" or "local"


def discover_credential(config: LLMConfig) -> Optional[Credential]:
    """
    Find a usable reasoning-backend credential.

    Order: explicit config key, the configured provider's own env vars,
    the global env var list (inferring the provider from the first hit),
    and finally a no-credential local provider.

    Returns:
        Credential, or None when no backend can be used
    """
    if config.provider is not None and config.provider not in PROVIDERS:
        raise ConfigurationError(f"Unknown provider: {config.provider}")

    if config.api_key:
        return Credential(config.provider or "claude", config.api_key, "config")

    if config.provider is not None:
        for env in PROVIDERS[config.provider].env_vars:
            value = os.environ.get(env)
            if value:
                return Credential(config.provider, value, f"env:{env}")

    for env in CREDENTIAL_ENV_VARS:
        value = os.environ.get(env)
        if value:
            provider = config.provider or _PROVIDER_BY_ENV.get(env, "openai")
            return Credential(provider, value, f"env:{env}")

    if config.provider is not None and not PROVIDERS[config.provider].requires_key:
        return Credential(config.provider, None, "local")

    return None


def has_credential(config: LLMConfig) -> bool:
    """True when the primary (agentic) path can run."""
    return discover_credential(config) is not None


def create_backend(config: LLMConfig) -> ReasoningBackend:
    """
    Build the adapter for the discovered provider.

    Raises:
        ConfigurationError: No credential, or unknown provider
    """
    credential = discover_credential(config)
    if credential is None:
        raise ConfigurationError(
            "No reasoning backend credential configured. Set ANTHROPIC_API_KEY, "
            "OPENAI_API_KEY, or the key for your provider."
        )

    info = PROVIDERS[credential.provider]
    model = config.model or info.default_model

    if info.name == "claude":
        from .claude import ClaudeAgentBackend
        return ClaudeAgentBackend(
            api_key=credential.api_key,
            model=model,
            request_timeout=config.request_timeout,
        )

    from .openai_compat import OpenAICompatibleBackend
    return OpenAICompatibleBackend(
        provider=info.name,
        base_url=config.base_url or info.base_url,
        model=model,
        api_key=credential.api_key,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
        request_timeout=config.request_timeout,
    )
