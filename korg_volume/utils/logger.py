"""
Logging utilities with thread-safe considerations.
"""
import logging
import threading
import os
from typing import Optional, Callable

from korg_volume.config.settings import LOG_LEVEL, LOG_FORMAT, LOG_FORMAT_NO_TIME

ROOT_LOGGER_NAME = "korg_volume"

_config_lock = threading.RLock()
_gui_callback: Optional[Callable[[str], None]] = None
_enabled = True


def configure_logging(level: str = LOG_LEVEL, timestamps: bool = True,
                      log_file: Optional[str] = None, enabled: bool = True) -> None:
    """
    Configure the package logger once from the [logging] config table.
    Safe to call again; existing handlers are replaced.
    """
    global _enabled
    with _config_lock:
        _enabled = enabled
        root = logging.getLogger(ROOT_LOGGER_NAME)
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

        # Disabled logging still lets errors through
        effective = level.upper() if enabled else "ERROR"
        root.setLevel(getattr(logging, effective, logging.INFO))
        root.propagate = False

        formatter = logging.Formatter(LOG_FORMAT if timestamps else LOG_FORMAT_NO_TIME)
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

        if log_file:
            path = os.path.expanduser(log_file)
            try:
                os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
                file_handler = logging.FileHandler(path, mode='a', encoding='utf-8')
                file_handler.setFormatter(formatter)
                root.addHandler(file_handler)
            except OSError as e:
                root.warning(f"로그 파일 생성 실패: {path} ({e})")


def set_gui_callback(callback: Optional[Callable[[str], None]]) -> None:
    """Mirror log messages into the GUI console (None to detach)."""
    global _gui_callback
    with _config_lock:
        _gui_callback = callback


class ThreadSafeLogger:
    """
    Thread-safe logger wrapper shared by the MIDI callback thread,
    the reconciler worker, the dispatcher workers and the Tk main loop.
    """

    def __init__(self, name: str):
        if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
            name = f"{ROOT_LOGGER_NAME}.{name}"
        self._logger = logging.getLogger(name)
        self._lock = threading.RLock()

    @property
    def name(self) -> str:
        return self._logger.name

    def info(self, message: str) -> None:
        self._log(logging.INFO, message)

    def error(self, message: str) -> None:
        self._log(logging.ERROR, message)

    def warning(self, message: str) -> None:
        self._log(logging.WARNING, message)

    def debug(self, message: str) -> None:
        self._log(logging.DEBUG, message)

    def critical(self, message: str) -> None:
        self._log(logging.CRITICAL, message)

    def exception(self, message: str) -> None:
        with self._lock:
            self._logger.exception(message)
            self._send_to_gui(message)

    def _log(self, level: int, message: str) -> None:
        if not self._logger.isEnabledFor(level):
            return
        with self._lock:
            self._logger.log(level, message)
            self._send_to_gui(message)

    def _send_to_gui(self, message: str) -> None:
        """Send message to GUI if callback is set."""
        callback = _gui_callback
        if callback and _enabled:
            try:
                callback(message)
            except Exception as e:
                # GUI가 이미 종료된 경우 콘솔에만 남김
                self._logger.debug(f"GUI 로그 전달 실패: {e}")


def get_logger(name: str) -> ThreadSafeLogger:
    """Get a thread-safe logger instance."""
    return ThreadSafeLogger(name)
