"""
Main controller for the MIDI volume application.
Coordinates between view, reconciler, audio dispatcher and MIDI backend.
Implements MVC pattern with thread-safe communication.
"""
import copy
import queue
import threading
import time
from typing import Any, Dict, List, Optional, Union

from korg_volume.config.app_config import build_control_mapping, save_config
from korg_volume.config.settings import (
    DEFAULT_START_VOLUME, LED_OFF_VALUE, LED_ON_VALUE, MIDI_THREAD_DAEMON,
    MIDI_THREAD_TIMEOUT, PORT_WATCH_INTERVAL_SEC, USER_CONFIG_PATH,
)
from korg_volume.model.actions import Action, LedUpdate, Publish, SetAudioVolume
from korg_volume.model.audio_backend import AudioBackend, create_audio_backend
from korg_volume.model.audio_dispatcher import VolumeDispatcher
from korg_volume.model.channel_state import ChannelStateStore
from korg_volume.model.errors import BackendError, TransportError
from korg_volume.model.events import RawEvent, UiVolumeCommand
from korg_volume.model.midi_backend import BaseMidiTransport, MidiBackend
from korg_volume.model.reconciler import EventReconciler
from korg_volume.utils.logger import get_logger, set_gui_callback
from korg_volume.view.presenter import Presenter

QueueItem = Union[RawEvent, UiVolumeCommand]

# Wakes the reconciler worker on shutdown
_STOP = object()


class MidiController:
    """
    Main controller implementing MVC pattern.
    The reconciler worker is the only thread that mutates target state;
    the MIDI callback and the GUI only enqueue.
    """

    def __init__(self, config: Dict[str, Any], view: Optional[Presenter] = None,
                 transport: Optional[BaseMidiTransport] = None,
                 audio_backend: Optional[AudioBackend] = None):
        self.logger = get_logger(__name__)
        self.config = config

        midi_config = config["midi"]
        logging_config = config["logging"]
        self.channel: int = midi_config["channel"]
        self.availability_interval: float = config["audio"]["applications_sink_search"]

        self.mapping = build_control_mapping(config)
        self.view = view if view is not None else self._create_view(config)
        self.transport = transport if transport is not None else MidiBackend(
            midi_config["device_keywords"], logging_config["log_device_info"])
        self.audio_backend = audio_backend if audio_backend is not None else create_audio_backend(
            config["audio"]["volume_control_mode"])

        self.store = ChannelStateStore()
        for target in self.mapping.targets():
            self.store.add_target(target.name, target.kind, target.cc, self._initial_volume(target))
        self.reconciler = EventReconciler(
            self.store, self.mapping, self.channel, logging_config["log_fader_events"])
        self.dispatcher = VolumeDispatcher(self.audio_backend, on_error=self._on_backend_error)
        for target in self.mapping.targets():
            self.dispatcher.register(target.name, target.kind)

        self._events: "queue.Queue[Any]" = queue.Queue(maxsize=midi_config["queue_size"])
        self._dropped_events = 0
        self._dropped_lock = threading.Lock()

        # Connection state
        self.device_connected = False
        self._initialized = False
        self._available: Dict[str, bool] = {}
        self._last_availability_check = 0.0

        # Background threads
        self._worker_thread: Optional[threading.Thread] = None
        self._watcher_thread: Optional[threading.Thread] = None
        self._watcher_stop = threading.Event()
        self._controller_lock = threading.RLock()

        self.view.set_volume_callback(self.on_ui_volume)
        self.view.set_save_callback(self.save_settings)
        self.view.set_targets(self.store.snapshots())

        self.logger.info(f"MidiController 초기화 완료 (타겟 {len(self.mapping)}개)")

    @staticmethod
    def _create_view(config: Dict[str, Any]) -> Presenter:
        # Tk is only imported when a real window is wanted
        from korg_volume.view.midi_view import MidiVolumeView

        ui = config["ui"]
        return MidiVolumeView(
            window_size=(ui["window_width"], ui["window_height"]),
            show_console=ui["show_console"],
            max_console_lines=ui["max_console_lines"],
        )

    def _initial_volume(self, target) -> int:
        """Seed from the sound server so the first fader move does not jump."""
        try:
            level = self.audio_backend.get_volume(target.name, target.kind)
        except BackendError as e:
            self.logger.warning(f"초기 볼륨 조회 실패: {e}")
            level = None
        if level is None:
            self.logger.info(f"{target.name}: 초기 볼륨 기본값 {DEFAULT_START_VOLUME}% 사용")
            return DEFAULT_START_VOLUME
        self.logger.info(f"{target.name}: 초기 볼륨 {level}%")
        return level

    # ----- producers (any thread) -----

    def _enqueue(self, item: QueueItem) -> None:
        try:
            self._events.put_nowait(item)
        except queue.Full:
            with self._dropped_lock:
                self._dropped_events += 1
                dropped = self._dropped_events
            self.logger.warning(f"이벤트 큐가 가득 참, 이벤트 버림: {item} (누적 {dropped}개)")

    def _handle_midi_event(self, event: RawEvent) -> None:
        """Called on the rtmidi callback thread."""
        self._enqueue(event)

    def on_ui_volume(self, name: str, level: int) -> None:
        """Slider drag from the view (Tk main thread)."""
        self._enqueue(UiVolumeCommand(name, level))

    # ----- settings -----

    def save_settings(self, ui_state: Optional[Dict[str, Any]] = None) -> bool:
        """
        Write the running config back to the file it came from, or to the
        user config when running on defaults. ui_state overrides [ui] keys.
        The running config only changes if the write succeeds.
        """
        candidate = copy.deepcopy(self.config)
        if ui_state:
            candidate["ui"].update(ui_state)
        path = candidate.get("_path") or USER_CONFIG_PATH
        if not save_config(candidate, path):
            self.logger.warning(f"설정을 저장하지 못했습니다: {path}")
            return False
        candidate["_path"] = path
        self.config.clear()
        self.config.update(candidate)
        return True

    # ----- reconciler worker -----

    def _run_worker(self) -> None:
        while True:
            item = self._events.get()
            try:
                if item is _STOP:
                    return
                self.execute(self.reconciler.dispatch(item))
            except Exception as e:
                self.logger.error(f"이벤트 처리 오류: {e}")
            finally:
                self._events.task_done()

    def process_pending(self) -> int:
        """Drain the queue on the calling thread. Returns the number of items handled."""
        handled = 0
        while True:
            try:
                item = self._events.get_nowait()
            except queue.Empty:
                return handled
            try:
                if item is not _STOP:
                    self.execute(self.reconciler.dispatch(item))
                    handled += 1
            finally:
                self._events.task_done()

    def execute(self, actions: List[Action]) -> None:
        """Carry out reconciler actions against the dispatcher, view and LEDs."""
        for action in actions:
            if isinstance(action, SetAudioVolume):
                self.dispatcher.submit(action.target, action.level)
            elif isinstance(action, Publish):
                self.view.publish(action.snapshot)
            elif isinstance(action, LedUpdate):
                self._send_led(action)
            else:
                self.logger.warning(f"알 수 없는 액션: {action!r}")

    def _send_led(self, action: LedUpdate) -> None:
        if not self.transport.is_open():
            return
        # LEDs answer on the configured channel, the first one when listening to all
        channel = self.channel - 1 if self.channel > 0 else 0
        value = LED_ON_VALUE if action.lit else LED_OFF_VALUE
        self.transport.send_control_change(action.button_cc, value, channel)

    def _on_backend_error(self, error: BackendError) -> None:
        if error.target:
            # Forget the cached state so the next availability check reports again
            self._available.pop(error.target, None)
            self.view.set_available(error.target, False)

    # ----- device watcher -----

    def _connect_device(self) -> bool:
        try:
            port_name = self.transport.open(self._handle_midi_event)
        except TransportError as e:
            self.logger.warning(f"MIDI 장치 연결 실패: {e}")
            return False
        self.device_connected = True
        self.view.set_device_state(True, port_name)
        self.logger.info(f"🎛️ MIDI 장치 연결됨: {port_name}")
        self._restore_leds()
        return True

    def _disconnect_device(self) -> None:
        self.transport.close()
        if self.device_connected:
            self.logger.warning("⚠️ MIDI 장치 연결 끊김 (마지막 상태 유지)")
        self.device_connected = False
        self.view.set_device_state(False)

    def _restore_leds(self) -> None:
        """Re-light mute LEDs after a (re)connection; the device forgets them."""
        for button_cc, _ in self.mapping.mute_buttons():
            target = self.mapping.mute_target(button_cc)
            self._send_led(LedUpdate(button_cc, self.store.is_muted(target.name)))

    def check_device(self) -> None:
        present = self.transport.find_device() is not None
        if present and not self.device_connected:
            self._connect_device()
        elif not present and self.device_connected:
            self._disconnect_device()

    def check_availability(self) -> None:
        """Ask the backend whether each target currently exists."""
        for target in self.mapping.targets():
            try:
                available = self.audio_backend.is_available(target.name, target.kind)
            except BackendError as e:
                self.logger.debug(f"가용성 확인 실패: {e}")
                available = False
            if self._available.get(target.name) != available:
                self._available[target.name] = available
                self.view.set_available(target.name, available)
                state = "사용 가능" if available else "찾을 수 없음"
                self.logger.info(f"{target.name}: {state}")

    def _watch(self) -> None:
        while not self._watcher_stop.is_set():
            try:
                self.check_device()
                elapsed = time.monotonic() - self._last_availability_check
                if elapsed >= self.availability_interval:
                    self._last_availability_check = time.monotonic()
                    self.check_availability()
            except Exception as e:
                self.logger.error(f"장치 감시 오류: {e}")
            self._watcher_stop.wait(PORT_WATCH_INTERVAL_SEC)

    # ----- lifecycle -----

    def initialize(self) -> None:
        """Start worker threads (without starting GUI main loop)."""
        with self._controller_lock:
            if self._initialized:
                self.logger.info("컨트롤러가 이미 초기화되었습니다")
                return

            self.logger.info("컨트롤러 초기화 시작")
            set_gui_callback(self.view.append_log)

            self._worker_thread = threading.Thread(
                target=self._run_worker, daemon=MIDI_THREAD_DAEMON, name="Reconciler")
            self._worker_thread.start()

            self._connect_device()
            self.check_availability()
            self._last_availability_check = time.monotonic()

            self._watcher_stop.clear()
            self._watcher_thread = threading.Thread(
                target=self._watch, daemon=MIDI_THREAD_DAEMON, name="DeviceWatcher")
            self._watcher_thread.start()

            self._initialized = True
            self.logger.info("컨트롤러 초기화 완료")

    def shutdown(self) -> None:
        """Stop threads, close ports and the sound server connection."""
        with self._controller_lock:
            if not self._initialized:
                return
            self._initialized = False

            try:
                self._watcher_stop.set()
                if self._watcher_thread and self._watcher_thread.is_alive():
                    self._watcher_thread.join(timeout=MIDI_THREAD_TIMEOUT)

                self.transport.close()
                # Let in-flight events settle before the worker stops
                try:
                    self._events.put(_STOP, timeout=MIDI_THREAD_TIMEOUT)
                except queue.Full:
                    self.logger.warning("이벤트 큐가 가득 차 작업 스레드에 종료 신호를 보내지 못했습니다")
                if self._worker_thread and self._worker_thread.is_alive():
                    self._worker_thread.join(timeout=MIDI_THREAD_TIMEOUT)

                self.dispatcher.shutdown()
                self.audio_backend.close()
                set_gui_callback(None)
                self.view.quit()
                self.logger.info("애플리케이션 종료")
            except Exception as e:
                self.logger.error(f"종료 중 오류: {e}")
