import os

import pytest

from jademark import configuration
from jademark.errors import ProviderError
from jademark.providers import TextTransformer


class ScriptedTransformer(TextTransformer):
    """Records every call and answers through ``responder``.

    The default responder upper-cases each delimiter-separated part, which
    leaves the batch marker intact.
    """

    name = "scripted"

    def __init__(self, responder=None, chunks=None):
        self.calls = []
        self.instructions = []
        self._responder = responder or (lambda text: text.upper())
        self._chunks = chunks

    async def transform(self, system_instruction, input_text, on_delta=None):
        self.calls.append(input_text)
        self.instructions.append(system_instruction)
        result = self._responder(input_text)
        if on_delta is not None:
            for chunk in self._chunks(result) if self._chunks else [result]:
                on_delta(chunk)
        return result


class FailingTransformer(TextTransformer):
    name = "failing"

    def __init__(self):
        self.calls = 0

    async def transform(self, system_instruction, input_text, on_delta=None):
        self.calls += 1
        raise ProviderError("Service unavailable")


@pytest.fixture
def scripted():
    return ScriptedTransformer()


@pytest.fixture
def failing():
    return FailingTransformer()


@pytest.fixture
def make_scripted():
    return ScriptedTransformer


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Run configuration loading against an empty home and working directory."""

    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    for name in list(os.environ):
        if name.startswith("JADEMARK_"):
            monkeypatch.delenv(name, raising=False)
    configuration._load_settings.cache_clear()
    yield work
    configuration._load_settings.cache_clear()
