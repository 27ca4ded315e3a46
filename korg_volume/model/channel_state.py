"""
Channel state store: per-target volume, mute flag and saved pre-mute volume.

Single writer (the reconciler worker), many readers (GUI tick, logging).
Readers only ever see frozen snapshots copied under the lock.
"""
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from korg_volume.config.settings import VOLUME_RANGE, DEFAULT_START_VOLUME

SINK = "sink"
APPLICATION = "application"


def clamp_volume(level: int) -> int:
    """Constrain a level to the 0-100 range."""
    low, high = VOLUME_RANGE
    return max(low, min(high, int(level)))


@dataclass(frozen=True)
class TargetSnapshot:
    """Read-only copy of one target's state."""

    name: str
    kind: str
    cc: int
    volume: int
    muted: bool

    @property
    def audible_volume(self) -> int:
        """Level the audio backend should be at right now."""
        return 0 if self.muted else self.volume


class _TargetState:
    __slots__ = ("name", "kind", "cc", "volume", "muted", "saved_volume")

    def __init__(self, name: str, kind: str, cc: int, volume: int):
        self.name = name
        self.kind = kind
        self.cc = cc
        self.volume = volume
        self.muted = False
        self.saved_volume = volume

    def to_snapshot(self) -> TargetSnapshot:
        return TargetSnapshot(self.name, self.kind, self.cc, self.volume, self.muted)


class ChannelStateStore:
    """
    Mapping from target name to {volume, muted, saved_volume}.

    Unknown target names raise KeyError; the reconciler filters them
    out before they reach the store.
    """

    def __init__(self, targets: Iterable[Tuple[str, str, int]] = ()):
        self._lock = threading.Lock()
        self._targets: Dict[str, _TargetState] = {}
        for name, kind, cc in targets:
            self.add_target(name, kind, cc)

    def add_target(self, name: str, kind: str = SINK, cc: int = -1,
                   volume: int = DEFAULT_START_VOLUME) -> None:
        with self._lock:
            self._targets[name] = _TargetState(name, kind, cc, clamp_volume(volume))

    def __contains__(self, name: object) -> bool:
        return name in self._targets

    def __len__(self) -> int:
        return len(self._targets)

    def set_volume(self, name: str, level: int) -> TargetSnapshot:
        """
        Set the visible level. While muted, saved_volume is left alone so
        moving a muted fader does not change what unmute restores.
        """
        with self._lock:
            state = self._targets[name]
            state.volume = clamp_volume(level)
            return state.to_snapshot()

    def set_muted(self, name: str, muted: bool) -> TargetSnapshot:
        """Flip the mute flag, saving or restoring the volume. Idempotent."""
        with self._lock:
            state = self._targets[name]
            if state.muted == muted:
                return state.to_snapshot()
            if muted:
                state.saved_volume = state.volume
                state.volume = 0
            else:
                state.volume = state.saved_volume
            state.muted = muted
            return state.to_snapshot()

    def is_muted(self, name: str) -> bool:
        with self._lock:
            return self._targets[name].muted

    def saved_volume(self, name: str) -> int:
        with self._lock:
            return self._targets[name].saved_volume

    def snapshot(self, name: str) -> TargetSnapshot:
        with self._lock:
            return self._targets[name].to_snapshot()

    def snapshots(self) -> List[TargetSnapshot]:
        with self._lock:
            return [state.to_snapshot() for state in self._targets.values()]
