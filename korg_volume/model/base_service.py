"""
Base abstract class for the services the reconciler delegates to.
"""
from abc import ABC, abstractmethod
from typing import List

from korg_volume.model.actions import Action, Publish
from korg_volume.model.channel_state import ChannelStateStore, TargetSnapshot
from korg_volume.model.events import RawEvent
from korg_volume.model.mapping import ControlMapping, FaderTarget


class BaseMidiService(ABC):
    """
    Abstract base class for MIDI services.
    Services run on the reconciler worker only, so they may mutate the
    store without further coordination.
    """

    def __init__(self, store: ChannelStateStore, mapping: ControlMapping):
        self.store = store
        self.mapping = mapping

    @abstractmethod
    def handle(self, event: RawEvent, target: FaderTarget) -> List[Action]:
        """Handle one event already resolved to its fader target."""

    @staticmethod
    def _publish(snapshot: TargetSnapshot) -> Publish:
        return Publish(snapshot)
