import pytest

from lavaroute.config import PlayerOptions
from lavaroute.player import LavalinkPlayer
from lavaroute.orchestrator import VoiceOrchestrator


class DummyNode:
    identifier = "main"

    def __init__(self, connected=True):
        self.connected = connected
        self.sent = []

    async def send(self, payload):
        self.sent.append(payload)


class DummyOrchestrator:
    create_voice_channel_payload = staticmethod(VoiceOrchestrator.create_voice_channel_payload)

    def __init__(self):
        self.sent = []

    async def send(self, guild_id, payload):
        self.sent.append((guild_id, payload))


@pytest.mark.asyncio
async def test_connect_sends_join_payload():
    orchestrator = DummyOrchestrator()
    player = LavalinkPlayer({"guild_id": 7, "voice_id": "c1", "self_deaf": True}, orchestrator, DummyNode())

    assert await player.connect() is player
    assert player.guild_id == "7"
    assert orchestrator.sent == [
        ("7", {"op": 4, "d": {"guild_id": "7", "channel_id": "c1", "self_deaf": True, "self_mute": False}})
    ]


@pytest.mark.asyncio
async def test_disconnect_leaves_and_destroys():
    orchestrator = DummyOrchestrator()
    node = DummyNode()
    player = LavalinkPlayer(PlayerOptions(guild_id="g1", voice_id="c1"), orchestrator, node)
    player.connected = True

    await player.disconnect()

    assert orchestrator.sent[0][1]["d"]["channel_id"] is None
    assert node.sent == [{"op": "destroy", "guildId": "g1"}]
    assert player.connected is False


@pytest.mark.asyncio
async def test_disconnect_skips_destroy_on_offline_node():
    node = DummyNode(connected=False)
    player = LavalinkPlayer(PlayerOptions(guild_id="g1"), DummyOrchestrator(), node)
    await player.disconnect()
    assert node.sent == []


def test_node_payloads_update_state():
    player = LavalinkPlayer(PlayerOptions(guild_id="g1"), DummyOrchestrator(), DummyNode())

    player.handle_node_payload({"op": "playerUpdate", "state": {"position": 1500, "connected": True}})
    assert player.position == 1500
    assert player.connected is True

    closed = {"op": "event", "type": "WebSocketClosedEvent", "code": 4006}
    player.handle_node_payload(closed)
    assert player.last_event == closed
    assert player.connected is False
