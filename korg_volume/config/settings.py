"""
Application configuration settings.
"""
import os
from typing import Tuple

# MIDI Settings
DEFAULT_MIDI_CHANNEL: int = 1
MIDI_CHANNEL_RANGE: Tuple[int, int] = (0, 16)  # 0 = any channel
MIDI_VALUE_MAX: int = 127
MIDI_CC_RANGE: Tuple[int, int] = (0, 127)
DEFAULT_DEVICE_KEYWORDS: Tuple[str, ...] = ("nanokontrol", "korg")
LED_ON_VALUE: int = 127
LED_OFF_VALUE: int = 0

# Volume Settings
VOLUME_RANGE: Tuple[int, int] = (0, 100)
DEFAULT_START_VOLUME: int = 50

# GUI Settings
WINDOW_TITLE: str = "nanoKONTROL2 Volume Controller"
WINDOW_SIZE: Tuple[int, int] = (1000, 600)
WINDOW_RESIZABLE: Tuple[bool, bool] = (True, True)
GUI_UPDATE_INTERVAL_MS: int = 16  # ~60 FPS
DEFAULT_MAX_CONSOLE_LINES: int = 1000

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT_NO_TIME: str = "%(name)s - %(levelname)s - %(message)s"

# Threading
MIDI_THREAD_DAEMON: bool = True
MIDI_THREAD_TIMEOUT: float = 1.0
MIDI_QUEUE_MAXSIZE: int = int(os.getenv("MIDI_QUEUE_MAXSIZE", "1024"))
PORT_WATCH_INTERVAL_SEC: float = float(os.getenv("PORT_WATCH_INTERVAL_SEC", "1.0"))
DEFAULT_AVAILABILITY_INTERVAL_SEC: int = 10

# MIDI Message Types
CONTROL_CHANGE_TYPE: str = "control_change"

# Audio Backend Settings
VOLUME_MODE_PULSE_API: str = "pulse-api"
VOLUME_MODE_COMMANDS: str = "commands"
VALID_VOLUME_MODES: Tuple[str, ...] = (VOLUME_MODE_PULSE_API, VOLUME_MODE_COMMANDS)
DEFAULT_SINK_ALIAS: str = "@DEFAULT_SINK@"
PULSE_CLIENT_NAME: str = "korg-volume"
COMMAND_TIMEOUT_SEC: float = 2.0

# Config file locations
CONFIG_ENV_VAR: str = "KORG_VOLUME_CONFIG"
CONFIG_FILENAME: str = "config.toml"
USER_CONFIG_PATH: str = os.path.expanduser("~/.config/korg-midi-volume/config.toml")

# Validation Settings
VALID_LOG_LEVELS: Tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

