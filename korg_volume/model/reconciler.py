"""
Event reconciler: resolves each incoming CC against the mapping table,
delegates to the fader or mute service and returns the resulting actions.
"""
from typing import List

from korg_volume.model.actions import Action
from korg_volume.model.channel_state import ChannelStateStore
from korg_volume.model.events import RawEvent, UiVolumeCommand
from korg_volume.model.fader_service import FaderService
from korg_volume.model.mapping import ControlMapping
from korg_volume.model.mute_service import MuteService
from korg_volume.utils.logger import get_logger


class EventReconciler:
    """
    Single writer of the channel state store. Not thread-safe by itself:
    the controller calls it from one worker thread only.

    channel is 1-based as shown on the device (1-16); 0 accepts every channel.
    """

    def __init__(self, store: ChannelStateStore, mapping: ControlMapping,
                 channel: int = 1, log_fader_events: bool = True):
        self.logger = get_logger(__name__)
        self.store = store
        self.mapping = mapping
        self.channel = channel
        self.fader_service = FaderService(store, mapping, log_fader_events)
        self.mute_service = MuteService(store, mapping)

        for target in mapping.targets():
            if target.name not in store:
                store.add_target(target.name, target.kind, target.cc)

    def accepts_channel(self, channel: int) -> bool:
        return self.channel == 0 or channel == self.channel - 1

    def handle(self, event: RawEvent) -> List[Action]:
        """Reconcile one raw CC event. An empty list means nothing to do."""
        if not self.accepts_channel(event.channel):
            self.logger.debug(f"다른 채널 이벤트 무시: ch={event.channel + 1} CC{event.cc}")
            return []

        target = self.mapping.mute_target(event.cc)
        if target is not None:
            return self.mute_service.handle(event, target)

        target = self.mapping.fader(event.cc)
        if target is not None:
            return self.fader_service.handle(event, target)

        self.logger.debug(f"매핑되지 않은 CC 무시: CC{event.cc} value={event.value}")
        return []

    def handle_ui_volume(self, command: UiVolumeCommand) -> List[Action]:
        """Apply a slider drag from the GUI through the fader path."""
        target = self.mapping.target_by_name(command.target)
        if target is None:
            self.logger.warning(f"알 수 없는 타겟: {command.target}")
            return []
        self.logger.debug(f"UI 슬라이더 {target.name}: {command.level}%")
        return self.fader_service.apply_level(target, command.level)

    def dispatch(self, item) -> List[Action]:
        """Entry point for items taken off the controller queue."""
        if isinstance(item, RawEvent):
            return self.handle(item)
        if isinstance(item, UiVolumeCommand):
            return self.handle_ui_volume(item)
        self.logger.warning(f"처리할 수 없는 큐 항목: {item!r}")
        return []
