import pytest

from lavaroute.config import NodeOptions
from lavaroute.errors import NodeError
from lavaroute.rest import NodeRest, TrackQuery, build_identifier


class DummyResponse:
    def __init__(self, payload):
        self.payload = payload
        self.checked = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def raise_for_status(self):
        self.checked = True

    async def json(self, content_type=None):
        return self.payload


class DummySession:
    def __init__(self, payload):
        self.closed = False
        self.requests = []
        self.response = DummyResponse(payload)

    def get(self, url, *, params, headers):
        self.requests.append((url, params, headers))
        return self.response


class DummyNode:
    def __init__(self, session):
        self.session = session
        self.options = NodeOptions(host="ll", port=2333, password="secret", secure=True)
        self.identifier = "main"


def test_build_identifier_variants():
    assert build_identifier("https://youtu.be/abc") == "https://youtu.be/abc"
    assert build_identifier("ytsearch:already") == "ytsearch:already"
    assert build_identifier(TrackQuery("lofi")) == "ytsearch:lofi"
    assert build_identifier(TrackQuery("lofi", source="sc")) == "scsearch:lofi"
    assert build_identifier({"query": "lofi", "source": None}) == "ytsearch:lofi"


@pytest.mark.asyncio
async def test_load_tracks_queries_loadtracks_endpoint():
    session = DummySession({"loadType": "SEARCH_RESULT", "tracks": []})
    rest = NodeRest(DummyNode(session))

    data = await rest.load_tracks(TrackQuery("song", source="sc"))

    assert data["loadType"] == "SEARCH_RESULT"
    assert session.requests == [
        (
            "https://ll:2333/loadtracks",
            {"identifier": "scsearch:song"},
            {"Authorization": "secret"},
        )
    ]
    assert session.response.checked


@pytest.mark.asyncio
async def test_load_tracks_without_session_raises():
    rest = NodeRest(DummyNode(None))
    with pytest.raises(NodeError):
        await rest.load_tracks("anything")
