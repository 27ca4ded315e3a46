"""
Actions emitted by the reconciler. The controller executes them:
backend calls go to the dispatcher, snapshots to the presenter,
LED updates to the MIDI transport.
"""
from dataclasses import dataclass
from typing import Union

from korg_volume.model.channel_state import TargetSnapshot


@dataclass(frozen=True)
class SetAudioVolume:
    target: str
    level: int


@dataclass(frozen=True)
class Publish:
    snapshot: TargetSnapshot


@dataclass(frozen=True)
class LedUpdate:
    button_cc: int
    lit: bool


Action = Union[SetAudioVolume, Publish, LedUpdate]
