"""Tests for the in-process change notifier."""

from datetime import datetime, timezone

import pytest

from assemblinator.notify.notifier import ChangeEvent, ChangeKind, ChangeNotifier


class TestChangeEvent:
    """Tests for ChangeEvent."""

    def test_channel_name(self):
        event = ChangeEvent(kind=ChangeKind.BALLOT_CAST, assembly_id="a-1", agenda_item_id="i-1")
        assert event.channel == "assembly:a-1"

    def test_dict_round_trip(self):
        """Events survive serialization for the realtime channel."""
        event = ChangeEvent(
            kind=ChangeKind.ITEM_STATUS_CHANGED,
            assembly_id="a-1",
            agenda_item_id="i-1",
            occurred_at=datetime(2026, 10, 19, 14, 30, tzinfo=timezone.utc),
        )
        data = event.to_dict()
        assert data["kind"] == "item_status_changed"
        assert ChangeEvent.from_dict(data) == event

    def test_from_dict_unknown_kind(self):
        with pytest.raises(ValueError):
            ChangeEvent.from_dict({"kind": "vote_deleted", "assembly_id": "a-1"})


class TestChangeNotifier:
    """Tests for ChangeNotifier fan-out."""

    @pytest.fixture
    def event(self):
        return ChangeEvent(kind=ChangeKind.BALLOT_CAST, assembly_id="a-1", agenda_item_id="i-1")

    def test_delivers_to_assembly_subscribers(self, notifier, event):
        """Subscribers of the assembly receive its events."""
        received = []
        notifier.subscribe("a-1", received.append)
        assert notifier.publish(event) == 1
        assert received == [event]

    def test_other_assembly_not_notified(self, notifier, event):
        """Subscriptions are keyed by assembly."""
        received = []
        notifier.subscribe("a-2", received.append)
        assert notifier.publish(event) == 0
        assert received == []

    def test_subscribe_all(self, notifier, event):
        """Global subscribers see every assembly."""
        received = []
        notifier.subscribe_all(received.append)
        notifier.publish(event)
        notifier.publish(ChangeEvent(kind=ChangeKind.ASSEMBLY_UPDATED, assembly_id="a-9"))
        assert [e.assembly_id for e in received] == ["a-1", "a-9"]

    def test_failing_handler_isolated(self, notifier, event):
        """A raising handler does not stop the others."""
        received = []

        def broken(_):
            raise RuntimeError("socket closed")

        notifier.subscribe("a-1", broken)
        notifier.subscribe("a-1", received.append)
        assert notifier.publish(event) == 1
        assert received == [event]

    def test_unsubscribe(self, notifier, event):
        """Unsubscribed handlers receive nothing."""
        received = []
        handler = notifier.subscribe("a-1", received.append)
        notifier.unsubscribe(handler, "a-1")
        notifier.publish(event)
        assert received == []
        assert notifier.subscriber_count("a-1") == 0

    def test_unsubscribe_everywhere(self, notifier, event):
        """Without an assembly id, the handler is removed from every key."""
        received = []
        notifier.subscribe("a-1", received.append)
        notifier.subscribe_all(received.append)
        notifier.unsubscribe(received.append)
        notifier.publish(event)
        assert received == []

    def test_subscriber_count(self, notifier):
        notifier.subscribe("a-1", lambda e: None)
        notifier.subscribe_all(lambda e: None)
        assert notifier.subscriber_count("a-1") == 2
        assert notifier.subscriber_count() == 1


class TestServiceNotifications:
    """Events are published after the change is committed."""

    def test_handler_sees_committed_ballot(self, app, open_item, resident, notifier):
        """A subscriber re-reading on notification sees the new ballot."""
        seen = []

        def refresh(event):
            if event.kind == ChangeKind.BALLOT_CAST:
                seen.append(app.results.compute_tally(event.agenda_item_id).total)

        notifier.subscribe(open_item.assembly_id, refresh)
        app.ledger.cast_ballot(resident, open_item.id, "Sim")
        assert seen == [1]

    def test_failing_subscriber_does_not_fail_vote(self, app, open_item, resident, notifier):
        """Notification failures never undo the ballot."""
        def broken(_):
            raise RuntimeError("boom")

        notifier.subscribe(open_item.assembly_id, broken)
        app.ledger.cast_ballot(resident, open_item.id, "Sim")
        assert app.ledger.count_ballots(open_item.id) == 1
