"""
Shared pytest fixtures for data-tagger tests.

Provides scripted providers and a control token whose sleeps return
immediately, so engine tests never touch the network or the clock.
"""

from typing import Callable, List, Optional, Union

import pytest

from data_tagger.config import RunSettings
from data_tagger.errors import ProviderError
from data_tagger.pipeline.control import RunControl
from data_tagger.taxonomy import Tag, clean_tags, normalize_tags


Reply = Union[str, Exception]


class ScriptedProvider:
    """
    Provider that replays a script of replies.

    Each entry is either the completion text or an exception to raise.
    When the script runs out, `default` is returned.
    """

    name = "scripted"
    model = "scripted-model"

    def __init__(self, script: Optional[List[Reply]] = None, default: str = "None",
                 on_call: Optional[Callable[[int, str], None]] = None):
        self.script = list(script or [])
        self.default = default
        self.on_call = on_call
        self.prompts: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def classify(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.on_call is not None:
            self.on_call(len(self.prompts), prompt)
        reply = self.script.pop(0) if self.script else self.default
        if isinstance(reply, Exception):
            raise reply
        return reply


class RecordingControl(RunControl):
    """RunControl whose sleeps return immediately and are recorded."""

    def __init__(self):
        super().__init__(poll_interval=0.001)
        self.sleeps: List[float] = []
        self.backoffs: List[float] = []

    def sleep(self, seconds: float, interrupt_on_pause: bool = True) -> bool:
        if interrupt_on_pause:
            self.sleeps.append(seconds)
        else:
            self.backoffs.append(seconds)
        return not self.stop_requested

    def wait_while_paused(self) -> bool:
        # Nobody is around to resume; treat a pause as already lifted
        self.request_resume()
        return not self.stop_requested


def rate_limit_error(message: str = "Resource has been exhausted") -> ProviderError:
    return ProviderError("google", 429, message)


@pytest.fixture
def sample_tags() -> List[Tag]:
    """Two top-level tags, one with a nested child."""
    return clean_tags(normalize_tags([
        {
            "name": "Service",
            "description": "Comments about staff and support",
            "examples": ["The agent was helpful"],
            "children": [
                {"name": "Speed", "description": "How fast we responded", "children": []},
            ],
        },
        {
            "name": "Shipping",
            "description": "Delivery and packaging",
            "examples": [],
            "children": [],
        },
    ]))


@pytest.fixture
def sample_rows():
    return [
        {"id": "1", "comment": "Support answered in minutes"},
        {"id": "2", "comment": ""},
        {"id": "3", "comment": "Box arrived crushed"},
    ]


@pytest.fixture
def fast_settings() -> RunSettings:
    return RunSettings(inter_row_delay=0.5, max_retries=3, backoff_base=1.0, poll_interval=0.001)


@pytest.fixture
def control() -> RecordingControl:
    return RecordingControl()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    """Keep real keys and the user's error log out of tests."""
    for name in (
        "DATA_TAGGER_PROVIDER", "DATA_TAGGER_MODEL", "DATA_TAGGER_API_KEY",
        "GEMINI_API_KEY", "GOOGLE_API_KEY", "OPENAI_API_KEY", "OPENROUTER_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DATA_TAGGER_HOME", str(tmp_path / "home"))
