"""Shared fixtures."""

from collections.abc import Callable
from typing import Any

import pytest

from fakes import ScriptedChatModel


@pytest.fixture
def scripted_model() -> Callable[..., ScriptedChatModel]:
    def factory(*responses: Any) -> ScriptedChatModel:
        return ScriptedChatModel(responses=list(responses))

    return factory
