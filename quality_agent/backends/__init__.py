"""Reasoning backends."""

from .base import ReasoningBackend
from .factory import (
    PROVIDERS,
    CREDENTIAL_ENV_VARS,
    ProviderInfo,
    Credential,
    discover_credential,
    has_credential,
    create_backend,
)

__all__ = [
    "ReasoningBackend",
    "PROVIDERS",
    "CREDENTIAL_ENV_VARS",
    "ProviderInfo",
    "Credential",
    "discover_credential",
    "has_credential",
    "create_backend",
]
