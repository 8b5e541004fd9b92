import pytest

from paleocore.gateway import PaleoStore, SqliteTableClient
from paleocore.models import Core, Location, Section


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModels:
    """Stands in for ``genai.Client().models``."""

    def __init__(self, replies=(), stream=(), error=None):
        self.replies = list(replies)
        self.stream = list(stream)
        self.error = error
        self.calls = []

    def generate_content(self, *, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return FakeResponse(self.replies.pop(0))

    def generate_content_stream(self, *, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return iter([FakeResponse(t) for t in self.stream])


class FakeClient:
    def __init__(self, **kw):
        self.models = FakeModels(**kw)


@pytest.fixture(autouse=True)
def _no_ai_env(monkeypatch):
    for var in ("GEMINI_API_KEY", "PALEOCORE_GEMINI_API_KEY", "PALEOCORE_DB",
                "PALEOCORE_MODEL", "PALEOCORE_USER", "PALEOCORE_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def store():
    client = SqliteTableClient(":memory:")
    yield PaleoStore(client)
    client.close()


def make_core(core_id="C1", lat=10.0, lon=-30.0, folder_id=None):
    return Core(core_id, f"Core {core_id}", Location(lat, lon), 3000.0, "Test project", folder_id=folder_id)


def make_section(core_id="C1", name="Hole A", points=None, **kw):
    return Section(id=kw.pop("id", None), core_id=core_id, name=name, data_points=list(points or []), **kw)
