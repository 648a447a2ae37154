"""Tests for the SessionRegistry (connection <-> user maps)."""
import random
import threading

from pairchat.chat.registry import SessionRegistry


class TestRegisterDeregister:
    """First/last session decisions."""

    def test_first_session_reports_true(self):
        registry = SessionRegistry()
        assert registry.register("c1", "u1", object()) is True
        assert registry.is_online("u1")
        assert registry.connections_for("u1") == {"c1"}

    def test_second_session_reports_false(self):
        registry = SessionRegistry()
        registry.register("c1", "u1", object())
        assert registry.register("c2", "u1", object()) is False
        assert registry.connections_for("u1") == {"c1", "c2"}

    def test_deregister_non_last_session(self):
        registry = SessionRegistry()
        registry.register("c1", "u1", object())
        registry.register("c2", "u1", object())

        assert registry.deregister("c1") == ("u1", False)
        assert registry.is_online("u1")
        assert registry.connections_for("u1") == {"c2"}

    def test_deregister_last_session(self):
        registry = SessionRegistry()
        registry.register("c1", "u1", object())

        assert registry.deregister("c1") == ("u1", True)
        assert not registry.is_online("u1")
        assert registry.connections_for("u1") == frozenset()
        assert registry.online_users() == []

    def test_deregister_unknown_is_noop(self):
        registry = SessionRegistry()
        assert registry.deregister("nope") == (None, False)

    def test_double_deregister_is_noop(self):
        registry = SessionRegistry()
        registry.register("c1", "u1", object())
        registry.deregister("c1")
        assert registry.deregister("c1") == (None, False)
        assert len(registry) == 0

    def test_reused_connection_id_replaces_entry(self):
        """A re-registered id moves to the new user instead of duplicating."""
        registry = SessionRegistry()
        registry.register("c1", "u1", object())
        assert registry.register("c1", "u2", object()) is True

        assert len(registry) == 1
        assert registry.user_for("c1") == "u2"
        assert not registry.is_online("u1")
        assert registry.connections_for("u2") == {"c1"}

    def test_reused_connection_id_same_user(self):
        registry = SessionRegistry()
        registry.register("c1", "u1", object())
        # Replacing the only session counts as a fresh first session.
        assert registry.register("c1", "u1", object()) is True
        assert registry.connections_for("u1") == {"c1"}


class TestSnapshots:
    """Read-side queries used by fan-out."""

    def test_user_for(self):
        registry = SessionRegistry()
        registry.register("c1", "u1", object())
        assert registry.user_for("c1") == "u1"
        assert registry.user_for("c2") is None

    def test_sessions_for_dedupes_across_users(self):
        registry = SessionRegistry()
        registry.register("c1", "u1", object())
        registry.register("c2", "u2", object())
        registry.register("c3", "u2", object())

        ids = sorted(s.connection_id for s in registry.sessions_for("u2", "u1", "u2"))
        assert ids == ["c1", "c2", "c3"]

    def test_sessions_for_offline_user(self):
        registry = SessionRegistry()
        assert registry.sessions_for("ghost") == []

    def test_snapshot_is_detached_from_later_mutation(self):
        registry = SessionRegistry()
        registry.register("c1", "u1", object())
        snapshot = registry.connections_for("u1")
        registry.register("c2", "u1", object())
        assert snapshot == {"c1"}

    def test_first_and_last_session_predicates(self):
        registry = SessionRegistry()
        registry.register("c1", "u1", object())
        assert registry.is_first_session("u1")
        assert registry.is_last_session("u1")

        registry.register("c2", "u1", object())
        assert not registry.is_first_session("u1")
        assert not registry.is_last_session("u1")

    def test_all_sessions(self):
        registry = SessionRegistry()
        registry.register("c1", "u1", object())
        registry.register("c2", "u2", object())
        assert {s.user_id for s in registry.all_sessions()} == {"u1", "u2"}


class TestPresenceTransitions:
    """One online per zero->nonzero and one offline per nonzero->zero."""

    def test_random_sequence_counts_transitions(self):
        rng = random.Random(7)
        registry = SessionRegistry()
        live = set()
        online_events = offline_events = 0
        expected_online = expected_offline = 0

        for step in range(500):
            if live and rng.random() < 0.5:
                connection_id = rng.choice(sorted(live))
                live.discard(connection_id)
                _, was_last = registry.deregister(connection_id)
                offline_events += was_last
                expected_offline += not live
            else:
                connection_id = f"c{step}"
                expected_online += not live
                live.add(connection_id)
                online_events += registry.register(connection_id, "u1", object())

        assert online_events == expected_online
        assert offline_events == expected_offline

    def test_concurrent_register_deregister(self):
        """Under thread contention, transitions still alternate online/offline."""
        registry = SessionRegistry()
        transitions = []
        transitions_lock = threading.Lock()

        def worker(n):
            for i in range(200):
                connection_id = f"t{n}-{i}"
                if registry.register(connection_id, "shared", object()):
                    with transitions_lock:
                        transitions.append("online")
                _, was_last = registry.deregister(connection_id)
                if was_last:
                    with transitions_lock:
                        transitions.append("offline")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not registry.is_online("shared")
        assert len(registry) == 0
        assert transitions.count("online") == transitions.count("offline")
        assert transitions.count("online") >= 1
