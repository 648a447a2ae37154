"""Tests for the UserDirectory."""
import pytest

from pairchat.users.service import DuplicateUsername


class TestUserRecords:

    def test_create_and_get(self, directory):
        user = directory.create_user("alice", "Alice A.")
        assert user.username == "alice"
        assert user.displayName == "Alice A."
        assert user.isOnline is False
        assert directory.get_user(user.userId) == user

    def test_display_name_defaults_to_username(self, directory):
        assert directory.create_user("bob").displayName == "bob"

    def test_duplicate_username_rejected(self, directory):
        directory.create_user("alice")
        with pytest.raises(DuplicateUsername):
            directory.create_user("alice")

    def test_get_unknown(self, directory):
        assert directory.get_user("missing") is None

    def test_set_online_round_trip(self, directory):
        user = directory.create_user("alice")
        directory.set_online(user.userId, True)
        assert directory.get_user(user.userId).isOnline is True
        directory.set_online(user.userId, False)
        assert directory.get_user(user.userId).isOnline is False

    def test_set_online_unknown_is_noop(self, directory):
        directory.set_online("missing", True)
        assert directory.get_user("missing") is None


class TestListOthers:

    def test_excludes_caller_and_counts_unread(self, directory, store):
        alice = directory.create_user("alice")
        bob = directory.create_user("bob")
        carol = directory.create_user("carol")
        directory.set_online(carol.userId, True)

        store.create_message(bob.userId, alice.userId, "1")
        store.create_message(bob.userId, alice.userId, "2")
        store.create_message(alice.userId, bob.userId, "not for alice's count")

        roster = directory.list_others(alice.userId)

        assert [e.username for e in roster] == ["bob", "carol"]
        by_name = {e.username: e for e in roster}
        assert by_name["bob"].unreadCount == 2
        assert by_name["carol"].unreadCount == 0
        assert by_name["carol"].isOnline is True
        assert by_name["bob"].isOnline is False

    def test_counts_drop_after_mark_read(self, directory, store):
        alice = directory.create_user("alice")
        bob = directory.create_user("bob")
        store.create_message(bob.userId, alice.userId, "1")
        store.mark_all_read(bob.userId, alice.userId)

        assert directory.list_others(alice.userId)[0].unreadCount == 0
