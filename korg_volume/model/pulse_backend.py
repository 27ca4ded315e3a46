"""
PulseAudio backend built on pulsectl (works on PipeWire via pipewire-pulse).
"""
import threading
from typing import Callable, List, Optional

import pulsectl

from korg_volume.config.settings import DEFAULT_SINK_ALIAS, PULSE_CLIENT_NAME
from korg_volume.model.audio_backend import AudioBackend, matches_app
from korg_volume.model.channel_state import APPLICATION, SINK, clamp_volume
from korg_volume.model.errors import BackendError
from korg_volume.utils.logger import get_logger


class PulseAudioBackend(AudioBackend):
    """
    pulsectl-based backend. One connection is shared by all dispatcher
    workers, so every call holds the lock; a failed call drops the
    connection and the next call reconnects.
    """

    def __init__(self, client_name: str = PULSE_CLIENT_NAME,
                 pulse_factory: Callable[[str], pulsectl.Pulse] = pulsectl.Pulse):
        self.logger = get_logger(__name__)
        self._client_name = client_name
        self._pulse_factory = pulse_factory
        self._pulse: Optional[pulsectl.Pulse] = None
        self._lock = threading.RLock()

    def _connection(self) -> pulsectl.Pulse:
        if self._pulse is None:
            self._pulse = self._pulse_factory(self._client_name)
            self.logger.info("PulseAudio 서버 연결")
        return self._pulse

    def _drop_connection(self) -> None:
        if self._pulse is not None:
            try:
                self._pulse.close()
            except pulsectl.PulseError as e:
                self.logger.debug(f"PulseAudio 연결 종료 오류: {e}")
            self._pulse = None

    def _find_sink(self, pulse: pulsectl.Pulse, name: str):
        if name == DEFAULT_SINK_ALIAS:
            name = pulse.server_info().default_sink_name
        return pulse.get_sink_by_name(name)

    def _find_app_streams(self, pulse: pulsectl.Pulse, app_name: str) -> List:
        return [stream for stream in pulse.sink_input_list() if matches_app(stream.proplist, app_name)]

    def set_volume(self, name: str, level: int, kind: str = SINK) -> None:
        value = clamp_volume(level) / 100.0
        with self._lock:
            try:
                pulse = self._connection()
                if kind == APPLICATION:
                    streams = self._find_app_streams(pulse, name)
                    if not streams:
                        raise BackendError(name, "no matching application stream")
                    for stream in streams:
                        pulse.volume_set_all_chans(stream, value)
                else:
                    pulse.volume_set_all_chans(self._find_sink(pulse, name), value)
            except pulsectl.PulseIndexError as e:
                raise BackendError(name, f"sink not found ({e})") from e
            except pulsectl.PulseError as e:
                self._drop_connection()
                raise BackendError(name, f"PulseAudio error ({e})") from e

    def get_volume(self, name: str, kind: str = SINK) -> Optional[int]:
        with self._lock:
            try:
                pulse = self._connection()
                if kind == APPLICATION:
                    streams = self._find_app_streams(pulse, name)
                    if not streams:
                        return None
                    obj = streams[0]
                else:
                    obj = self._find_sink(pulse, name)
                return clamp_volume(round(obj.volume.value_flat * 100))
            except pulsectl.PulseIndexError:
                return None
            except pulsectl.PulseError as e:
                self.logger.warning(f"볼륨 조회 실패: {name} ({e})")
                self._drop_connection()
                return None

    def is_available(self, name: str, kind: str = SINK) -> bool:
        with self._lock:
            try:
                pulse = self._connection()
                if kind == APPLICATION:
                    return bool(self._find_app_streams(pulse, name))
                self._find_sink(pulse, name)
                return True
            except pulsectl.PulseIndexError:
                return False
            except pulsectl.PulseError as e:
                self.logger.debug(f"가용성 확인 실패: {name} ({e})")
                self._drop_connection()
                return False

    def close(self) -> None:
        with self._lock:
            self._drop_connection()
