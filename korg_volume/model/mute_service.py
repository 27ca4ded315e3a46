"""
Mute toggle service with press-edge detection for nanoKONTROL2 buttons.
"""
from typing import List

from korg_volume.model.actions import Action, LedUpdate, SetAudioVolume
from korg_volume.model.base_service import BaseMidiService
from korg_volume.model.events import RawEvent
from korg_volume.model.mapping import FaderTarget
from korg_volume.utils.logger import get_logger


class MuteService(BaseMidiService):
    """
    Handles mute toggling for fader targets.

    The controller sends 127 on press and 0 on release. Only the press
    toggles; acting on both would flip the state twice per physical press.
    """

    def __init__(self, store, mapping):
        super().__init__(store, mapping)
        self.logger = get_logger(__name__)

    def handle(self, event: RawEvent, target: FaderTarget) -> List[Action]:
        """Handle a mute button event based on its press edge."""
        if event.value <= 0:
            self.logger.debug(f"뮤트 버튼 릴리즈 무시: CC{event.cc}")
            return []
        return self.toggle(target)

    def toggle(self, target: FaderTarget) -> List[Action]:
        if self.store.is_muted(target.name):
            return self._unmute(target)
        return self._mute(target)

    def _mute(self, target: FaderTarget) -> List[Action]:
        snapshot = self.store.set_muted(target.name, True)
        self.logger.info(
            f"🔇 CC{target.cc} muted ({target.name}, 저장된 볼륨 {self.store.saved_volume(target.name)}%)")
        return [SetAudioVolume(target.name, 0), self._publish(snapshot)] + self._leds(target, True)

    def _unmute(self, target: FaderTarget) -> List[Action]:
        snapshot = self.store.set_muted(target.name, False)
        self.logger.info(f"🔊 CC{target.cc} unmuted ({target.name}, {snapshot.volume}%)")
        return [SetAudioVolume(target.name, snapshot.volume), self._publish(snapshot)] + \
            self._leds(target, False)

    def _leds(self, target: FaderTarget, lit: bool) -> List[Action]:
        # Every button bound to the target mirrors its mute state
        return [LedUpdate(button_cc, lit) for button_cc in self.mapping.buttons_for(target)]
