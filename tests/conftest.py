"""Shared fixtures. Every test runs with no reasoning-backend credentials."""

import os

import pytest

from quality_agent.backends import CREDENTIAL_ENV_VARS


@pytest.fixture(autouse=True)
def no_credentials(monkeypatch):
    for name in CREDENTIAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    for name in list(os.environ):
        if name.startswith("QUALITY_AGENT_"):
            monkeypatch.delenv(name, raising=False)
