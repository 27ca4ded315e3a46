"""
MIDI transport for the nanoKONTROL2: device discovery, input callback,
LED output. Built on mido with the python-rtmidi backend.
"""
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence

import mido

from korg_volume.config.settings import DEFAULT_DEVICE_KEYWORDS
from korg_volume.model.errors import TransportError
from korg_volume.model.events import RawEvent
from korg_volume.utils.logger import get_logger

MIDO_BACKEND = "mido.backends.rtmidi"

EventHandler = Callable[[RawEvent], None]


def find_port(names: Sequence[str], keywords: Sequence[str]) -> Optional[str]:
    """First port whose lower-cased name contains any keyword."""
    lowered = [keyword.lower() for keyword in keywords]
    for name in names:
        if any(keyword in name.lower() for keyword in lowered):
            return name
    return None


class BaseMidiTransport(ABC):
    """Interface the controller depends on for MIDI I/O."""

    @abstractmethod
    def find_device(self) -> Optional[str]:
        """Name of the matching input port if the device is present."""

    @abstractmethod
    def open(self, handler: EventHandler) -> str:
        """Open the device; handler runs on the transport's own thread."""

    @abstractmethod
    def close(self) -> None:
        """Close any open ports."""

    @abstractmethod
    def is_open(self) -> bool:
        """Whether ports are currently open."""

    @abstractmethod
    def send_control_change(self, control: int, value: int, channel: int) -> bool:
        """Send a CC (used for button LEDs). Returns False on failure."""


class MidiBackend(BaseMidiTransport):
    """
    Thread-safe MIDI backend. rtmidi delivers input on its own callback
    thread; the callback only converts and forwards, it never blocks.
    """

    def __init__(self, keywords: Sequence[str] = DEFAULT_DEVICE_KEYWORDS,
                 log_device_info: bool = True, mido_backend=None):
        self.logger = get_logger(__name__)
        self.keywords = tuple(keywords)
        self.log_device_info = log_device_info
        self._mido = mido_backend if mido_backend is not None else mido.Backend(MIDO_BACKEND)
        self._input_port = None
        self._output_port = None
        self._port_name: Optional[str] = None
        self._handler: Optional[EventHandler] = None
        self._thread_lock = threading.RLock()

    @property
    def port_name(self) -> Optional[str]:
        return self._port_name

    def get_input_ports(self) -> List[str]:
        try:
            return list(self._mido.get_input_names())
        except Exception as e:
            self.logger.error(f"입력 포트 가져오기 오류: {e}")
            return []

    def get_output_ports(self) -> List[str]:
        try:
            return list(self._mido.get_output_names())
        except Exception as e:
            self.logger.error(f"출력 포트 가져오기 오류: {e}")
            return []

    def find_device(self) -> Optional[str]:
        return find_port(self.get_input_ports(), self.keywords)

    def open(self, handler: EventHandler) -> str:
        with self._thread_lock:
            self.close()
            input_names = self.get_input_ports()
            if self.log_device_info:
                self.logger.info(f"감지된 MIDI 입력 포트: {input_names}")

            input_name = find_port(input_names, self.keywords)
            if input_name is None:
                raise TransportError(f"No MIDI input matching {list(self.keywords)}")

            self._handler = handler
            try:
                self._input_port = self._mido.open_input(input_name, callback=self._on_message)
            except Exception as e:
                self._handler = None
                raise TransportError(f"Failed to open MIDI input '{input_name}': {e}") from e
            self._port_name = input_name
            self.logger.info(f"MIDI 입력 연결: '{input_name}'")

            output_name = find_port(self.get_output_ports(), self.keywords)
            if output_name is None:
                self.logger.warning("LED 피드백용 MIDI 출력 포트를 찾을 수 없습니다")
            else:
                try:
                    self._output_port = self._mido.open_output(output_name)
                    self.logger.info(f"MIDI 출력 연결: '{output_name}'")
                except Exception as e:
                    self.logger.warning(f"MIDI 출력 포트 열기 실패: {output_name} ({e})")
            return input_name

    def _on_message(self, message: mido.Message) -> None:
        """rtmidi callback thread: convert and hand off, nothing else."""
        try:
            event = RawEvent.from_message(message)
            handler = self._handler
            if event is not None and handler is not None:
                handler(event)
        except Exception as e:
            # Callback exceptions must not kill the rtmidi thread
            self.logger.error(f"MIDI 콜백 오류: {e}")

    def is_open(self) -> bool:
        return self._input_port is not None

    def send_control_change(self, control: int, value: int, channel: int) -> bool:
        port = self._output_port
        if port is None:
            self.logger.debug(f"출력 포트 없음, CC 전송 생략: ctl={control} val={value}")
            return False
        try:
            port.send(mido.Message('control_change', channel=channel, control=control, value=value))
            self.logger.debug(f"CC 전송: ch={channel} ctl={control} val={value}")
            return True
        except (OSError, ValueError) as e:
            self.logger.error(f"CC 전송 오류: {e}")
            return False

    def close(self) -> None:
        with self._thread_lock:
            for port in (self._input_port, self._output_port):
                if port is None:
                    continue
                try:
                    port.close()
                except OSError as e:
                    self.logger.debug(f"MIDI 포트 정리 오류: {e}")
            if self._input_port is not None:
                self.logger.info("MIDI 포트 닫힘")
            self._input_port = None
            self._output_port = None
            self._port_name = None
            self._handler = None
