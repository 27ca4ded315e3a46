"""
Tests for the channel state store.
"""
import pytest

from korg_volume.model.channel_state import (
    APPLICATION, SINK, ChannelStateStore, TargetSnapshot, clamp_volume,
)


@pytest.fixture
def single() -> ChannelStateStore:
    store = ChannelStateStore()
    store.add_target("master_sink", SINK, 0, volume=79)
    return store


class TestClampVolume:
    """Tests for the 0-100 clamp."""

    @pytest.mark.parametrize("level,expected", [(-5, 0), (0, 0), (55, 55), (100, 100), (250, 100)])
    def test_clamps_to_range(self, level: int, expected: int) -> None:
        assert clamp_volume(level) == expected


class TestSetVolume:
    """Tests for set_volume."""

    def test_sets_and_clamps(self, single: ChannelStateStore) -> None:
        assert single.set_volume("master_sink", 30).volume == 30
        assert single.set_volume("master_sink", 140).volume == 100
        assert single.set_volume("master_sink", -1).volume == 0

    def test_muted_move_keeps_saved_volume(self, single: ChannelStateStore) -> None:
        """Moving a muted fader does not change what unmute restores."""
        single.set_muted("master_sink", True)
        snapshot = single.set_volume("master_sink", 39)

        assert snapshot.muted is True
        assert snapshot.volume == 39
        assert snapshot.audible_volume == 0
        assert single.saved_volume("master_sink") == 79

    def test_unknown_target_raises(self, single: ChannelStateStore) -> None:
        with pytest.raises(KeyError):
            single.set_volume("missing", 10)


class TestSetMuted:
    """Tests for set_muted transitions."""

    def test_mute_saves_and_zeroes(self, single: ChannelStateStore) -> None:
        snapshot = single.set_muted("master_sink", True)

        assert snapshot.muted is True
        assert snapshot.volume == 0
        assert single.saved_volume("master_sink") == 79

    def test_mute_twice_is_noop(self, single: ChannelStateStore) -> None:
        """Second mute must not overwrite saved_volume with 0."""
        first = single.set_muted("master_sink", True)
        second = single.set_muted("master_sink", True)

        assert first == second
        assert single.saved_volume("master_sink") == 79

    def test_unmute_when_unmuted_is_noop(self, single: ChannelStateStore) -> None:
        snapshot = single.set_muted("master_sink", False)
        assert snapshot == TargetSnapshot("master_sink", SINK, 0, 79, False)

    @pytest.mark.parametrize("volume", range(0, 101))
    def test_mute_unmute_round_trip(self, volume: int) -> None:
        store = ChannelStateStore()
        store.add_target("t", SINK, 0, volume=volume)

        store.set_muted("t", True)
        restored = store.set_muted("t", False)

        assert restored.volume == volume
        assert restored.muted is False


class TestSnapshots:
    """Tests for read-only snapshots."""

    def test_snapshot_is_frozen(self, single: ChannelStateStore) -> None:
        snapshot = single.snapshot("master_sink")
        with pytest.raises(AttributeError):
            snapshot.volume = 1  # type: ignore[misc]

    def test_snapshot_is_a_copy(self, single: ChannelStateStore) -> None:
        before = single.snapshot("master_sink")
        single.set_volume("master_sink", 5)
        assert before.volume == 79

    def test_snapshots_cover_all_targets(self) -> None:
        store = ChannelStateStore([("a", SINK, 0), ("b", APPLICATION, 16)])
        assert {s.name for s in store.snapshots()} == {"a", "b"}
        assert len(store) == 2
        assert "a" in store
        assert "c" not in store

    def test_targets_are_independent(self) -> None:
        store = ChannelStateStore([("a", SINK, 0), ("b", SINK, 1)])
        store.set_volume("b", 66)
        store.set_muted("a", True)

        b = store.snapshot("b")
        assert b.volume == 66
        assert b.muted is False
