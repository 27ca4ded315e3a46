"""
Presenter interface between the controller and whatever renders state.
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from korg_volume.model.channel_state import TargetSnapshot

VolumeCallback = Callable[[str, int], None]
SaveCallback = Callable[[Dict[str, Any]], None]


class Presenter(ABC):
    """
    All methods may be called from any thread; implementations hand the
    data over to their own render loop.
    """

    @abstractmethod
    def set_targets(self, snapshots: List[TargetSnapshot]) -> None:
        """Lay out one strip per target (called once before run())."""

    @abstractmethod
    def publish(self, snapshot: TargetSnapshot) -> None:
        """Latest state of one target."""

    @abstractmethod
    def set_device_state(self, connected: bool, port_name: Optional[str] = None) -> None:
        """MIDI device presence."""

    @abstractmethod
    def set_available(self, name: str, available: bool) -> None:
        """Whether a target currently exists on the sound server."""

    @abstractmethod
    def append_log(self, message: str) -> None:
        """Line for the console panel."""

    @abstractmethod
    def set_volume_callback(self, callback: VolumeCallback) -> None:
        """Called with (target name, level 0-100) when the user drags a slider."""

    @abstractmethod
    def set_save_callback(self, callback: SaveCallback) -> None:
        """Called with the current [ui] values when the user asks to save settings."""

    @abstractmethod
    def run(self) -> None:
        """Block in the render loop until the window closes."""

    @abstractmethod
    def quit(self) -> None:
        """Stop the render loop."""
