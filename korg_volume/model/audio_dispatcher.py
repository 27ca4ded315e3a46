"""
Asynchronous volume dispatcher.

Each target gets one worker thread with a single latest-value slot:
a newer level replaces one that has not been sent yet, and calls for one
target are applied strictly in submission order. A slow sound server
therefore never blocks MIDI ingestion, and never applies an older level
after a newer one.
"""
import threading
from typing import Callable, Dict, Optional

from korg_volume.config.settings import MIDI_THREAD_DAEMON, MIDI_THREAD_TIMEOUT
from korg_volume.model.audio_backend import AudioBackend
from korg_volume.model.channel_state import SINK
from korg_volume.model.errors import BackendError
from korg_volume.utils.logger import get_logger


class _TargetWorker:
    def __init__(self, name: str, kind: str, backend: AudioBackend,
                 on_error: Optional[Callable[[BackendError], None]]):
        self.logger = get_logger(__name__)
        self.name = name
        self.kind = kind
        self._backend = backend
        self._on_error = on_error
        self._condition = threading.Condition()
        self._pending: Optional[int] = None
        self._busy = False
        self._stopped = False
        self._thread = threading.Thread(
            target=self._run, daemon=MIDI_THREAD_DAEMON, name=f"Volume-{name}")
        self._thread.start()

    def submit(self, level: int) -> None:
        with self._condition:
            self._pending = level
            self._condition.notify()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        with self._condition:
            return self._condition.wait_for(
                lambda: self._pending is None and not self._busy, timeout)

    def stop(self) -> None:
        with self._condition:
            self._stopped = True
            self._condition.notify_all()
        self._thread.join(timeout=MIDI_THREAD_TIMEOUT)

    def _run(self) -> None:
        while True:
            with self._condition:
                self._condition.wait_for(lambda: self._pending is not None or self._stopped)
                if self._pending is None:
                    return
                level, self._pending = self._pending, None
                self._busy = True
            try:
                self._backend.set_volume(self.name, level, self.kind)
                self.logger.debug(f"볼륨 적용: {self.name} -> {level}%")
            except BackendError as e:
                # State is not rolled back; the next movement retries naturally
                self.logger.error(f"볼륨 설정 실패: {e}")
                if self._on_error:
                    self._on_error(e)
            except Exception as e:
                self.logger.error(f"볼륨 설정 중 예기치 않은 오류: {self.name} ({e})")
            finally:
                with self._condition:
                    self._busy = False
                    self._condition.notify_all()


class VolumeDispatcher:
    """Fire-and-forget front end to an AudioBackend."""

    def __init__(self, backend: AudioBackend,
                 on_error: Optional[Callable[[BackendError], None]] = None):
        self.logger = get_logger(__name__)
        self._backend = backend
        self._on_error = on_error
        self._kinds: Dict[str, str] = {}
        self._workers: Dict[str, _TargetWorker] = {}
        self._lock = threading.Lock()
        self._closed = False

    def register(self, name: str, kind: str) -> None:
        """Remember whether a target is a sink or an application."""
        with self._lock:
            self._kinds[name] = kind

    def submit(self, name: str, level: int) -> None:
        with self._lock:
            if self._closed:
                self.logger.debug(f"종료된 디스패처로의 요청 무시: {name}")
                return
            worker = self._workers.get(name)
            if worker is None:
                worker = _TargetWorker(name, self._kinds.get(name, SINK), self._backend, self._on_error)
                self._workers[name] = worker
        worker.submit(level)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted level has been applied (tests, shutdown)."""
        with self._lock:
            workers = list(self._workers.values())
        return all(worker.wait_idle(timeout) for worker in workers)

    def shutdown(self) -> None:
        with self._lock:
            self._closed = True
            workers = list(self._workers.values())
            self._workers.clear()
        for worker in workers:
            worker.stop()
        self.logger.info("볼륨 디스패처 종료")
