"""Unit tests for the relay facade and its background loop."""

import threading

import pytest

from simrelay.config.config import ConnectionConfig, IntrospectionConfig, RelayConfig
from simrelay.core.delivery import DeliveryOutcome
from simrelay.core.relay import EventRelay, RelayLoop
from simrelay.core.session import ConnectionState
from simrelay.schemas.events import UNKNOWN_SUBJECT, Event, EventType


def relay_config(handling: bool = False, **connection) -> RelayConfig:
    options = {
        "collector_url": "http://collector.test/webhook",
        "enable_connection_handling": handling,
        "retry_delay_seconds": 0.01,
        "disable_delay_minutes": 5,
        "request_timeout_seconds": 2,
    }
    options.update(connection)
    return RelayConfig(
        connection=ConnectionConfig(**options),
        introspection=IntrospectionConfig(enabled=False),
    )


class RecordingClient:
    """Delegating client that records which threads read the local player."""

    def __init__(self, client):
        self._client = client
        self.readers: list[str] = []

    @property
    def local_player(self):
        self.readers.append(threading.current_thread().name)
        return self._client.local_player

    def __getattr__(self, name):
        return getattr(self._client, name)


@pytest.fixture
def make_relay(collector):
    relays: list[EventRelay] = []

    def build(config: RelayConfig | None = None, **kwargs) -> EventRelay:
        relay = EventRelay(
            config or relay_config(), transport=collector.transport, **kwargs
        )
        relays.append(relay)
        return relay

    yield build

    for relay in relays:
        relay.stop()


class TestRelayLoop:
    """Test the background event loop."""

    def test_call_runs_on_loop_thread(self):
        loop = RelayLoop()
        loop.start()
        try:
            ident = loop.call(threading.get_ident, timeout=1.0)
            assert ident != threading.get_ident()
            assert loop.running
        finally:
            loop.stop()
        assert not loop.running

    def test_loop_unavailable_after_stop(self):
        loop = RelayLoop()
        loop.start()
        loop.stop()
        with pytest.raises(RuntimeError):
            loop.loop


class TestEmit:
    """Test ingestion through the relay."""

    def test_session_started_delivered_on_start(self, make_relay, collector, wait_until):
        relay = make_relay()
        relay.start()

        assert wait_until(lambda: collector.event_types() == ["SESSION_STARTED"])
        assert collector.posts[0]["subjectName"] == UNKNOWN_SUBJECT

    def test_emit_caches_and_delivers(self, make_relay, collector, wait_until):
        relay = make_relay()
        relay.start()

        event = relay.emit(EventType.GAME_STATE_CHANGED, {"gameState": "LOGGED_IN"})

        assert isinstance(event, Event)
        assert wait_until(lambda: "GAME_STATE_CHANGED" in collector.event_types())
        assert [e.event_type for e in relay.session.cache] == [
            EventType.SESSION_STARTED,
            EventType.GAME_STATE_CHANGED,
        ]

    def test_emit_accepts_event_type_name(self, make_relay):
        relay = make_relay()
        relay.start()

        event = relay.emit("NPC_DESPAWNED", {"npcId": 1, "npcName": "Guard"})

        assert event is not None
        assert event.event_type is EventType.NPC_DESPAWNED

    def test_unknown_event_type_dropped(self, make_relay):
        relay = make_relay()
        relay.start()

        assert relay.emit("NOT_A_TYPE", {}) is None
        assert relay.cache_size == 1

    def test_subject_name_from_simulation(self, make_relay, collector, world, wait_until):
        relay = make_relay(simulation=world)
        relay.start()
        relay.simulation_thread.bind()

        relay.emit(EventType.CHAT_MESSAGE, {"type": "PUBLIC", "name": "a", "message": "hi"})

        assert wait_until(lambda: len(collector.posts) == 2)
        subjects = {p["eventType"]: p["subjectName"] for p in collector.posts}
        assert subjects["CHAT_MESSAGE"] == "tester"
        # Session boundary events never carry a subject
        assert subjects["SESSION_STARTED"] == UNKNOWN_SUBJECT

    def test_emit_off_simulation_thread_does_not_read_simulation(
        self, make_relay, collector, world, wait_until
    ):
        """Emitting from a worker thread never touches simulation state."""
        client = RecordingClient(world)
        relay = make_relay(simulation=client)
        relay.start()
        binder = threading.Thread(target=relay.simulation_thread.bind, name="simulation")
        binder.start()
        binder.join()

        recorded = []
        payload = {"type": "PUBLIC", "name": "a", "message": "hi"}
        emitter = threading.Thread(
            target=lambda: recorded.append(relay.emit(EventType.CHAT_MESSAGE, payload)),
            name="emitter",
        )
        emitter.start()
        emitter.join()

        assert recorded[0].subject_name == UNKNOWN_SUBJECT
        assert client.readers == []
        assert wait_until(lambda: "CHAT_MESSAGE" in collector.event_types())

    def test_emit_before_start_is_ignored(self, make_relay, collector):
        relay = make_relay()

        assert relay.emit(EventType.GAME_STATE_CHANGED, {"gameState": "LOADING"}) is None
        assert relay.cache_size == 0

    def test_rejected_delivery_keeps_connected(self, make_relay, collector, wait_until):
        collector.mode = "reject"
        relay = make_relay(relay_config(handling=True))
        relay.start()

        assert wait_until(lambda: relay.state is ConnectionState.CONNECTED)
        relay.emit(EventType.GAME_STATE_CHANGED, {"gameState": "LOGGED_IN"})

        assert not wait_until(lambda: relay.state is not ConnectionState.CONNECTED, timeout=0.2)


class TestConnectionHandling:
    """Test suspension, flush and disablement through the relay."""

    def test_events_cached_while_probing_and_flushed_in_order(
        self, make_relay, collector, wait_until
    ):
        collector.mode = "down"
        relay = make_relay(relay_config(handling=True))
        relay.start()
        assert relay.state is ConnectionState.PROBING

        for i in range(3):
            relay.emit(
                EventType.STAT_CHANGED,
                {"skill": "Attack", "xp": i, "level": 1, "boostedLevel": 1},
            )
        assert collector.posts == []
        assert relay.cache_size == 4

        collector.mode = "up"
        assert wait_until(lambda: len(collector.posts) == 4)
        assert collector.event_types() == ["SESSION_STARTED"] + ["STAT_CHANGED"] * 3
        assert [p["eventData"]["xp"] for p in collector.posts[1:]] == [0, 1, 2]
        assert relay.state is ConnectionState.CONNECTED

    def test_delivery_failure_switches_to_probing(self, make_relay, collector, wait_until):
        relay = make_relay()
        relay.config.connection.enable_connection_handling = True
        relay.start()
        assert wait_until(lambda: relay.state is ConnectionState.CONNECTED)

        collector.mode = "down"
        relay.emit(EventType.GAME_STATE_CHANGED, {"gameState": "HOPPING"})

        assert wait_until(lambda: relay.state is ConnectionState.PROBING)
        assert relay.run_on_loop(lambda: relay.monitor.probing)

    def test_disabled_session_drops_events_and_notifies(self, make_relay, collector, wait_until):
        notices: list[str] = []
        collector.mode = "down"
        relay = make_relay(
            relay_config(handling=True, disable_delay_minutes=0.001), notifier=notices.append
        )
        relay.start()

        assert wait_until(lambda: relay.state is ConnectionState.DISABLED)
        size = relay.cache_size

        assert relay.emit(EventType.GAME_STATE_CHANGED, {"gameState": "LOGGED_IN"}) is None
        assert relay.cache_size == size
        assert len(notices) == 1


class TestSessionBoundary:
    """Test start, stop and restart."""

    def test_stop_sends_session_closed_synchronously(self, make_relay, collector, wait_until):
        relay = make_relay()
        relay.start()
        assert wait_until(lambda: len(collector.posts) == 1)

        relay.stop()

        # Already delivered when stop returns
        assert collector.event_types()[-1] == "SESSION_CLOSED"
        assert relay.cache_size == 0

    def test_stop_while_probing_skips_session_closed(self, make_relay, collector):
        collector.mode = "down"
        relay = make_relay(relay_config(handling=True))
        relay.start()

        relay.stop()
        collector.mode = "up"

        assert "SESSION_CLOSED" not in collector.event_types()
        assert relay.cache_size == 0

    def test_emit_after_stop_is_ignored(self, make_relay, collector):
        relay = make_relay()
        relay.start()
        relay.stop()
        posted = len(collector.posts)

        assert relay.emit(EventType.GAME_STATE_CHANGED, {"gameState": "LOGIN_SCREEN"}) is None
        assert relay.cache_size == 0
        assert len(collector.posts) == posted

    def test_restart_resets_disabled_session(self, make_relay, collector, wait_until):
        collector.mode = "down"
        relay = make_relay(relay_config(handling=True, disable_delay_minutes=0.001))
        relay.start()
        assert wait_until(lambda: relay.state is ConnectionState.DISABLED)
        relay.stop()

        collector.mode = "up"
        relay.start()

        assert wait_until(lambda: relay.state is ConnectionState.CONNECTED)
        assert relay.emit(EventType.GAME_STATE_CHANGED, {"gameState": "LOGGED_IN"}) is not None

    def test_deliver_sync_when_not_started(self, make_relay):
        relay = make_relay()
        outcome = relay.deliver_sync(Event.create(EventType.SESSION_CLOSED))
        assert outcome is DeliveryOutcome.SKIPPED

    def test_start_is_idempotent(self, make_relay, collector, wait_until):
        relay = make_relay()
        relay.start()
        relay.start()

        assert wait_until(lambda: len(collector.posts) >= 1)
        assert not wait_until(lambda: len(collector.posts) > 1, timeout=0.1)
