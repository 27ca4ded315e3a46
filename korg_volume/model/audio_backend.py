"""
Audio backends: apply 0-100 volume levels to PulseAudio / PipeWire sinks
and application streams.

CommandAudioBackend shells out to wpctl / pactl / amixer; PulseAudioBackend
(pulse_backend) talks to the server through pulsectl.
"""
import re
import subprocess
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence

from korg_volume.config.settings import (
    COMMAND_TIMEOUT_SEC, DEFAULT_SINK_ALIAS,
    VOLUME_MODE_COMMANDS, VOLUME_MODE_PULSE_API,
)
from korg_volume.model.channel_state import APPLICATION, SINK, clamp_volume
from korg_volume.model.errors import BackendError, ConfigError
from korg_volume.utils.logger import get_logger

APP_MATCH_PROPERTIES = ("application.name", "application.process.binary", "media.name")

_PERCENT_PATTERN = re.compile(r"(\d+)%")
_SINK_INPUT_PATTERN = re.compile(r"^Sink Input #(\d+)")


class AudioBackend(ABC):
    """Interface the controller and dispatcher depend on."""

    @abstractmethod
    def set_volume(self, name: str, level: int, kind: str = SINK) -> None:
        """Apply level (0-100). Raises BackendError on failure."""

    @abstractmethod
    def get_volume(self, name: str, kind: str = SINK) -> Optional[int]:
        """Current level, or None if it cannot be read."""

    @abstractmethod
    def is_available(self, name: str, kind: str = SINK) -> bool:
        """Whether the target currently exists on the sound server."""

    def close(self) -> None:
        """Release server connections."""


def matches_app(proplist: dict, app_name: str) -> bool:
    needle = app_name.lower()
    return any(needle in str(proplist.get(prop, "")).lower() for prop in APP_MATCH_PROPERTIES)


def parse_sink_inputs(text: str, app_name: str) -> List[int]:
    """
    Indexes of sink inputs in `pactl list sink-inputs` output whose
    application.name / process binary / media.name contains app_name.
    """
    needle = app_name.lower()
    matches: List[int] = []
    current: Optional[int] = None
    for line in text.splitlines():
        header = _SINK_INPUT_PATTERN.match(line.strip())
        if header:
            current = int(header.group(1))
            continue
        if current is None or current in matches:
            continue
        stripped = line.strip()
        for prop in APP_MATCH_PROPERTIES:
            if stripped.startswith(prop) and needle in stripped.lower():
                matches.append(current)
                break
    return matches


def parse_percent(text: str) -> Optional[int]:
    """First 'NN%' in a pactl/amixer volume line."""
    match = _PERCENT_PATTERN.search(text)
    return int(match.group(1)) if match else None


class CommandAudioBackend(AudioBackend):
    """Backend driving wpctl / pactl / amixer through subprocess."""

    def __init__(self, runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
                 timeout: float = COMMAND_TIMEOUT_SEC):
        self.logger = get_logger(__name__)
        self._run_command = runner
        self._timeout = timeout

    def _run(self, args: Sequence[str]) -> Optional[subprocess.CompletedProcess]:
        try:
            result = self._run_command(list(args), capture_output=True, text=True,
                                       timeout=self._timeout, check=False)
        except (OSError, subprocess.SubprocessError) as e:
            self.logger.debug(f"명령 실행 실패: {' '.join(args)} ({e})")
            return None
        if result.returncode != 0:
            self.logger.debug(f"명령 실패 ({result.returncode}): {' '.join(args)}")
            return None
        return result

    def _sink_commands(self, name: str, percent: str) -> List[List[str]]:
        if name == DEFAULT_SINK_ALIAS:
            return [
                ["wpctl", "set-volume", "@DEFAULT_AUDIO_SINK@", percent],
                ["pactl", "set-sink-volume", DEFAULT_SINK_ALIAS, percent],
                ["amixer", "set", "Master", percent],
            ]
        return [["pactl", "set-sink-volume", name, percent]]

    def _app_indexes(self, app_name: str) -> List[int]:
        result = self._run(["pactl", "list", "sink-inputs"])
        if result is None:
            return []
        return parse_sink_inputs(result.stdout, app_name)

    def set_volume(self, name: str, level: int, kind: str = SINK) -> None:
        percent = f"{clamp_volume(level)}%"
        if kind == APPLICATION:
            indexes = self._app_indexes(name)
            if not indexes:
                raise BackendError(name, "no matching application stream")
            failed = [index for index in indexes
                      if self._run(["pactl", "set-sink-input-volume", str(index), percent]) is None]
            if failed:
                raise BackendError(name, f"pactl failed for sink inputs {failed}")
            return

        for command in self._sink_commands(name, percent):
            if self._run(command) is not None:
                return
        raise BackendError(name, "no volume command succeeded")

    def get_volume(self, name: str, kind: str = SINK) -> Optional[int]:
        if kind == APPLICATION:
            result = self._run(["pactl", "list", "sink-inputs"])
            if result is None:
                return None
            indexes = parse_sink_inputs(result.stdout, name)
            if not indexes:
                return None
            return self._volume_of_sink_input(result.stdout, indexes[0])

        result = self._run(["pactl", "get-sink-volume", name])
        if result is None:
            return None
        percent = parse_percent(result.stdout)
        return clamp_volume(percent) if percent is not None else None

    @staticmethod
    def _volume_of_sink_input(text: str, index: int) -> Optional[int]:
        in_block = False
        for line in text.splitlines():
            header = _SINK_INPUT_PATTERN.match(line.strip())
            if header:
                in_block = int(header.group(1)) == index
            elif in_block and line.strip().startswith("Volume:"):
                percent = parse_percent(line)
                return clamp_volume(percent) if percent is not None else None
        return None

    def is_available(self, name: str, kind: str = SINK) -> bool:
        if kind == APPLICATION:
            return bool(self._app_indexes(name))
        if name == DEFAULT_SINK_ALIAS:
            return True
        result = self._run(["pactl", "list", "short", "sinks"])
        if result is None:
            return False
        return any(name in line.split() for line in result.stdout.splitlines())


def create_audio_backend(mode: str) -> AudioBackend:
    """Backend for the [audio] volume_control_mode setting."""
    if mode == VOLUME_MODE_PULSE_API:
        # libpulse is loaded only when this mode is selected
        from korg_volume.model.pulse_backend import PulseAudioBackend
        return PulseAudioBackend()
    if mode == VOLUME_MODE_COMMANDS:
        return CommandAudioBackend()
    raise ConfigError(f"Unsupported volume_control_mode: {mode}")
