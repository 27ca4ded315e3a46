"""
User configuration: TOML loading, validation and saving.

The file maps CC numbers to audio targets and mute buttons to faders, and
carries the [midi], [audio], [ui] and [logging] tables. A missing file
falls back to the defaults below; a file that exists but cannot be parsed
or validated refuses to start the application.
"""
import copy
import os
import threading
import tomllib
from typing import Any, Dict, List, Optional

from korg_volume.config.settings import (
    CONFIG_ENV_VAR, CONFIG_FILENAME, DEFAULT_AVAILABILITY_INTERVAL_SEC,
    DEFAULT_DEVICE_KEYWORDS, DEFAULT_MAX_CONSOLE_LINES, DEFAULT_MIDI_CHANNEL,
    MIDI_CHANNEL_RANGE, MIDI_QUEUE_MAXSIZE, USER_CONFIG_PATH,
    VALID_LOG_LEVELS, VALID_VOLUME_MODES, VOLUME_MODE_PULSE_API, WINDOW_SIZE,
)
from korg_volume.model.errors import ConfigError
from korg_volume.model.mapping import ControlMapping, parse_cc_key
from korg_volume.utils.logger import get_logger

logger = get_logger(__name__)

# Thread-safe file operations
_file_lock = threading.RLock()

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "midi_controls": {
        "sinks": {
            "cc_0": "master_sink",
            "cc_1": "comms_sink",
        },
        "applications": {},
        "mute_buttons": {},
    },
    "midi": {
        "device_keywords": list(DEFAULT_DEVICE_KEYWORDS),
        "channel": DEFAULT_MIDI_CHANNEL,
        "queue_size": MIDI_QUEUE_MAXSIZE,
    },
    "audio": {
        "volume_control_mode": VOLUME_MODE_PULSE_API,
        "applications_sink_search": DEFAULT_AVAILABILITY_INTERVAL_SEC,
    },
    "ui": {
        "window_width": WINDOW_SIZE[0],
        "window_height": WINDOW_SIZE[1],
        "show_console": True,
        "max_console_lines": DEFAULT_MAX_CONSOLE_LINES,
    },
    "logging": {
        "enabled": True,
        "log_level": "info",
        "timestamps": True,
        "log_fader_events": True,
        "log_device_info": True,
        "log_file": "",
    },
}


def default_config() -> Dict[str, Dict[str, Any]]:
    """Deep copy of the built-in configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


def candidate_paths(explicit: Optional[str] = None) -> List[str]:
    """Search order: explicit path, $KORG_VOLUME_CONFIG, ./config.toml, user config."""
    paths = []
    if explicit:
        paths.append(explicit)
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        paths.append(env_path)
    paths.append(CONFIG_FILENAME)
    paths.append(USER_CONFIG_PATH)
    return [os.path.expanduser(path) for path in paths]


def _merge(defaults: Dict[str, Any], loaded: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(defaults)
    for section, values in loaded.items():
        if section == "midi_controls" and isinstance(values, dict):
            # Mapping tables replace the defaults wholesale
            for table in ("sinks", "applications", "mute_buttons"):
                merged[section][table] = dict(values.get(table, {}))
        elif isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section].update(values)
        else:
            merged[section] = values
    return merged


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the first existing file from candidate_paths(path), merged over the
    defaults and validated. Raises ConfigError (or MappingError) if invalid.
    """
    with _file_lock:
        for candidate in candidate_paths(path):
            if not os.path.isfile(candidate):
                continue
            try:
                with open(candidate, "rb") as f:
                    loaded = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as e:
                raise ConfigError(f"Failed to read config from {candidate}: {e}") from e
            config = _merge(DEFAULT_CONFIG, loaded)
            config["_path"] = candidate
            validate_config(config)
            logger.info(f"설정 파일 로드: {candidate}")
            return config

        if path:
            logger.warning(f"설정 파일을 찾을 수 없음: {path}")
        logger.warning("기본 설정을 사용합니다")
        config = default_config()
        validate_config(config)
        return config


def _require_int(section: str, key: str, value: Any, low: int, high: Optional[int] = None) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"[{section}] {key} must be an integer, got {value!r}")
    if value < low or (high is not None and value > high):
        bound = f"{low}-{high}" if high is not None else f">= {low}"
        raise ConfigError(f"[{section}] {key} must be {bound}, got {value}")


def validate_config(config: Dict[str, Any]) -> ControlMapping:
    """Validate every table; returns the control mapping on success."""
    midi = config["midi"]
    _require_int("midi", "channel", midi.get("channel"), *MIDI_CHANNEL_RANGE)
    _require_int("midi", "queue_size", midi.get("queue_size"), 1)
    keywords = midi.get("device_keywords")
    if not isinstance(keywords, list) or not keywords or not all(isinstance(k, str) and k for k in keywords):
        raise ConfigError("[midi] device_keywords must be a non-empty list of strings")

    audio = config["audio"]
    if audio.get("volume_control_mode") not in VALID_VOLUME_MODES:
        raise ConfigError(
            f"[audio] volume_control_mode must be one of {VALID_VOLUME_MODES}, "
            f"got {audio.get('volume_control_mode')!r}")
    _require_int("audio", "applications_sink_search", audio.get("applications_sink_search"), 1)

    ui = config["ui"]
    _require_int("ui", "window_width", ui.get("window_width"), 200)
    _require_int("ui", "window_height", ui.get("window_height"), 150)
    _require_int("ui", "max_console_lines", ui.get("max_console_lines"), 1)

    logging_section = config["logging"]
    level = str(logging_section.get("log_level", "")).upper()
    if level not in VALID_LOG_LEVELS:
        raise ConfigError(f"[logging] log_level must be one of {VALID_LOG_LEVELS}, got {level!r}")

    return build_control_mapping(config)


def build_control_mapping(config: Dict[str, Any]) -> ControlMapping:
    controls = config.get("midi_controls", {})
    for table in ("sinks", "applications", "mute_buttons"):
        if not isinstance(controls.get(table, {}), dict):
            raise ConfigError(f"[midi_controls.{table}] must be a table")
    return ControlMapping.build(
        controls.get("sinks", {}),
        controls.get("applications", {}),
        controls.get("mute_buttons", {}),
    )


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_toml_value(item) for item in value) + "]"
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _sorted_cc_items(table: Dict[str, Any]) -> List:
    def key(item):
        try:
            return parse_cc_key(item[0])
        except ConfigError:
            return 255
    return sorted(table.items(), key=key)


_SECTION_COMMENTS = {
    "midi_controls.sinks": "# Map MIDI CC numbers to audio sinks (faders)",
    "midi_controls.applications": "# Map MIDI CC numbers to application names",
    "midi_controls.mute_buttons": "# cc_BUTTON = FADER_CC, e.g. cc_64 = 0 means CC64 mutes the CC0 fader",
    "midi": "# MIDI device matching; channel 1-16, 0 = any channel",
    "audio": '# volume_control_mode: "pulse-api" (pulsectl) or "commands" (wpctl/pactl/amixer)',
    "ui": "# Window and console settings",
    "logging": "# log_level: debug, info, warning, error, critical",
}


def to_toml_string(config: Dict[str, Any]) -> str:
    """Serialize a config dict to commented TOML text."""
    lines = [
        "# nanoKONTROL2 MIDI Volume Controller Configuration",
        "# Maps MIDI CC numbers to audio targets",
        "",
    ]
    controls = config.get("midi_controls", {})
    for table in ("sinks", "applications", "mute_buttons"):
        name = f"midi_controls.{table}"
        lines.append(f"[{name}]")
        lines.append(_SECTION_COMMENTS[name])
        for key, value in _sorted_cc_items(controls.get(table, {})):
            lines.append(f"{key} = {_toml_value(value)}")
        lines.append("")

    for section in ("midi", "audio", "ui", "logging"):
        lines.append(f"[{section}]")
        lines.append(_SECTION_COMMENTS[section])
        for key, value in config.get(section, {}).items():
            lines.append(f"{key} = {_toml_value(value)}")
        lines.append("")

    return "\n".join(lines)


def save_config(config: Dict[str, Any], path: str) -> bool:
    """Write config to path. The previous file is kept as .backup until the write succeeds."""
    with _file_lock:
        path = os.path.expanduser(path)
        backup_path = path + ".backup"
        try:
            validate_config(config)
            text = to_toml_string({k: v for k, v in config.items() if not k.startswith("_")})
        except ConfigError as e:
            logger.error(f"설정 저장 거부: {e}")
            return False

        try:
            directory = os.path.dirname(path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            if os.path.exists(path):
                os.replace(path, backup_path)
            with open(path, "w", encoding="utf-8") as f:
                f.write(text)
            if os.path.exists(backup_path):
                os.remove(backup_path)
            logger.info(f"설정 저장 완료: {path}")
            return True
        except OSError as e:
            logger.error(f"설정 저장 실패: {path} ({e})")
            if os.path.exists(backup_path):
                try:
                    os.replace(backup_path, path)
                except OSError as restore_error:
                    logger.error(f"백업 복원 실패: {restore_error}")
            return False
