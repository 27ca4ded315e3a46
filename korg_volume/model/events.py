"""
Inbound event types: raw Control-Change triples from the device and
volume commands forwarded by the GUI.
"""
from dataclasses import dataclass
from typing import Optional

import mido

from korg_volume.config.settings import CONTROL_CHANGE_TYPE


@dataclass(frozen=True)
class RawEvent:
    """One MIDI Control-Change message (channel is 0-based, 0-15)."""

    channel: int
    cc: int
    value: int

    @classmethod
    def from_message(cls, message: mido.Message) -> Optional["RawEvent"]:
        """Convert a mido message; anything but control_change yields None."""
        if message.type != CONTROL_CHANGE_TYPE:
            return None
        return cls(channel=message.channel, cc=message.control, value=message.value)


@dataclass(frozen=True)
class UiVolumeCommand:
    """Slider drag from the GUI: absolute level 0-100 for a named target."""

    target: str
    level: int
