"""
Fader control service: turns fader positions into volume levels.
"""
from typing import List

from korg_volume.config.settings import MIDI_VALUE_MAX
from korg_volume.model.actions import Action, SetAudioVolume
from korg_volume.model.base_service import BaseMidiService
from korg_volume.model.events import RawEvent
from korg_volume.model.mapping import FaderTarget
from korg_volume.utils.logger import get_logger


def cc_to_percent(value: int) -> int:
    """Map a 0-127 CC value onto 0-100: 0 -> 0, 64 -> 50, 127 -> 100."""
    value = max(0, min(MIDI_VALUE_MAX, int(value)))
    return round(value * 100 / MIDI_VALUE_MAX)


class FaderService(BaseMidiService):
    """
    Every fader tick issues a backend call; there is no debounce here.
    Coalescing of rapid calls is the dispatcher's job.
    """

    def __init__(self, store, mapping, log_fader_events: bool = True):
        super().__init__(store, mapping)
        self.logger = get_logger(__name__)
        self.log_fader_events = log_fader_events

    def handle(self, event: RawEvent, target: FaderTarget) -> List[Action]:
        level = cc_to_percent(event.value)
        self._log_fader(f"CC{event.cc} -> {event.value} ({target.name}: {level}%)")
        return self.apply_level(target, level)

    def apply_level(self, target: FaderTarget, level: int) -> List[Action]:
        """Store the new level and emit the backend call plus a publish."""
        snapshot = self.store.set_volume(target.name, level)
        # Mute keeps the output silenced until unmute
        return [
            SetAudioVolume(target.name, snapshot.audible_volume),
            self._publish(snapshot),
        ]

    def _log_fader(self, message: str) -> None:
        if self.log_fader_events:
            self.logger.info(message)
        else:
            self.logger.debug(message)
