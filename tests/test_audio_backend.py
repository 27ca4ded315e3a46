"""
Tests for the command-line and pulsectl audio backends.
"""
import subprocess
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest

from korg_volume.config.settings import VOLUME_MODE_COMMANDS
from korg_volume.model.audio_backend import (
    CommandAudioBackend, create_audio_backend, matches_app, parse_percent, parse_sink_inputs,
)
from korg_volume.model.channel_state import APPLICATION, SINK
from korg_volume.model.errors import BackendError, ConfigError

SINK_INPUTS = """\
Sink Input #41
	Driver: protocol-native.c
	Sink: 0
	Volume: front-left: 32768 /  50% / -18.06 dB,   front-right: 32768 /  50% / -18.06 dB
	Properties:
		media.name = "Playback"
		application.name = "Firefox"
		application.process.binary = "firefox"
Sink Input #57
	Driver: protocol-native.c
	Volume: front-left: 52429 /  80% / -5.81 dB,   front-right: 52429 /  80% / -5.81 dB
	Properties:
		media.name = "Spotify"
		application.name = "spotify"
Sink Input #58
	Volume: front-left: 19661 /  30% / -31.37 dB
	Properties:
		application.name = "Firefox"
"""


class ScriptedRunner:
    """Stands in for subprocess.run; answers by command prefix."""

    def __init__(self, responses: Optional[Dict[str, tuple]] = None):
        self.responses = responses or {}
        self.commands: List[List[str]] = []

    def __call__(self, args, **kwargs):
        self.commands.append(args)
        for prefix, (returncode, stdout) in self.responses.items():
            if " ".join(args).startswith(prefix):
                return subprocess.CompletedProcess(args, returncode, stdout=stdout, stderr="")
        raise FileNotFoundError(args[0])


class TestParsing:
    """Tests for pactl output parsing."""

    def test_finds_all_matching_sink_inputs(self) -> None:
        assert parse_sink_inputs(SINK_INPUTS, "firefox") == [41, 58]

    def test_matches_media_name(self) -> None:
        assert parse_sink_inputs(SINK_INPUTS, "Spotify") == [57]

    def test_no_match(self) -> None:
        assert parse_sink_inputs(SINK_INPUTS, "vlc") == []
        assert parse_sink_inputs("", "firefox") == []

    def test_parse_percent(self) -> None:
        assert parse_percent("Volume: front-left: 65536 / 100% / 0.00 dB") == 100
        assert parse_percent("no volume here") is None

    def test_matches_app_is_case_insensitive(self) -> None:
        assert matches_app({"application.process.binary": "chrome"}, "Chrome")
        assert not matches_app({"application.name": "Firefox"}, "chrome")


class TestCommandAudioBackend:
    """Tests for the wpctl / pactl / amixer backend."""

    def test_default_sink_prefers_wpctl(self) -> None:
        runner = ScriptedRunner({"wpctl": (0, "")})
        CommandAudioBackend(runner=runner).set_volume("@DEFAULT_SINK@", 40)
        assert runner.commands == [["wpctl", "set-volume", "@DEFAULT_AUDIO_SINK@", "40%"]]

    def test_default_sink_falls_back_to_amixer(self) -> None:
        runner = ScriptedRunner({"wpctl": (1, ""), "amixer": (0, "")})
        CommandAudioBackend(runner=runner).set_volume("@DEFAULT_SINK@", 40)
        assert [c[0] for c in runner.commands] == ["wpctl", "pactl", "amixer"]

    def test_named_sink_uses_pactl(self) -> None:
        runner = ScriptedRunner({"pactl set-sink-volume": (0, "")})
        CommandAudioBackend(runner=runner).set_volume("alsa_output.usb", 120)
        assert runner.commands == [["pactl", "set-sink-volume", "alsa_output.usb", "100%"]]

    def test_sink_failure_raises(self) -> None:
        backend = CommandAudioBackend(runner=ScriptedRunner())
        with pytest.raises(BackendError) as excinfo:
            backend.set_volume("alsa_output.usb", 10)
        assert excinfo.value.target == "alsa_output.usb"

    def test_application_sets_every_stream(self) -> None:
        runner = ScriptedRunner({
            "pactl list sink-inputs": (0, SINK_INPUTS),
            "pactl set-sink-input-volume": (0, ""),
        })
        CommandAudioBackend(runner=runner).set_volume("Firefox", 25, APPLICATION)
        assert runner.commands[1:] == [
            ["pactl", "set-sink-input-volume", "41", "25%"],
            ["pactl", "set-sink-input-volume", "58", "25%"],
        ]

    def test_missing_application_raises(self) -> None:
        runner = ScriptedRunner({"pactl list sink-inputs": (0, SINK_INPUTS)})
        with pytest.raises(BackendError, match="no matching"):
            CommandAudioBackend(runner=runner).set_volume("vlc", 25, APPLICATION)

    def test_get_volume(self) -> None:
        runner = ScriptedRunner({
            "pactl get-sink-volume": (0, "Volume: front-left: 45875 /  70% / -9.29 dB"),
            "pactl list sink-inputs": (0, SINK_INPUTS),
        })
        backend = CommandAudioBackend(runner=runner)
        assert backend.get_volume("alsa_output.usb") == 70
        assert backend.get_volume("spotify", APPLICATION) == 80
        assert backend.get_volume("vlc", APPLICATION) is None

    def test_get_volume_unreadable(self) -> None:
        assert CommandAudioBackend(runner=ScriptedRunner()).get_volume("x") is None

    def test_is_available(self) -> None:
        runner = ScriptedRunner({
            "pactl list short sinks": (0, "0\talsa_output.usb\tPipeWire\ts32le 2ch 48000Hz\tRUNNING\n"),
            "pactl list sink-inputs": (0, SINK_INPUTS),
        })
        backend = CommandAudioBackend(runner=runner)
        assert backend.is_available("alsa_output.usb")
        assert not backend.is_available("hdmi_output")
        assert backend.is_available("@DEFAULT_SINK@")
        assert backend.is_available("Firefox", APPLICATION)
        assert not backend.is_available("vlc", APPLICATION)

    def test_timeout_counts_as_failure(self) -> None:
        def runner(args, **kwargs):
            raise subprocess.TimeoutExpired(args, kwargs.get("timeout"))

        with pytest.raises(BackendError):
            CommandAudioBackend(runner=runner).set_volume("alsa_output.usb", 10)


class TestCreateAudioBackend:
    """Tests for backend selection."""

    def test_commands_mode(self) -> None:
        assert isinstance(create_audio_backend(VOLUME_MODE_COMMANDS), CommandAudioBackend)

    def test_unknown_mode(self) -> None:
        with pytest.raises(ConfigError):
            create_audio_backend("alsa-direct")


@pytest.fixture
def pulsectl_module():
    """pulsectl loads libpulse on import; skip where the library is missing."""
    try:
        import pulsectl
    except (ImportError, OSError) as e:
        pytest.skip(f"pulsectl unavailable: {e}")
    return pulsectl


class FakePulse:
    """Minimal stand-in for a pulsectl.Pulse connection."""

    def __init__(self, pulsectl, sinks: Dict[str, float], streams: List[SimpleNamespace]):
        self._pulsectl = pulsectl
        self.sinks = {name: SimpleNamespace(name=name, volume=SimpleNamespace(value_flat=v))
                      for name, v in sinks.items()}
        self.streams = streams
        self.set_calls = []
        self.closed = False
        self.fail_next = False
        self.connections = 0

    def server_info(self):
        return SimpleNamespace(default_sink_name="alsa_output.usb")

    def get_sink_by_name(self, name):
        if self.fail_next:
            self.fail_next = False
            raise self._pulsectl.PulseError("connection lost")
        if name not in self.sinks:
            raise self._pulsectl.PulseIndexError(name)
        return self.sinks[name]

    def sink_input_list(self):
        return self.streams

    def volume_set_all_chans(self, obj, value):
        self.set_calls.append((obj.name, value))

    def close(self):
        self.closed = True


class TestPulseAudioBackend:
    """Tests for the pulsectl backend against a fake connection."""

    @pytest.fixture
    def pulse(self, pulsectl_module) -> FakePulse:
        streams = [
            SimpleNamespace(name="firefox-1", proplist={"application.name": "Firefox"},
                            volume=SimpleNamespace(value_flat=0.3)),
            SimpleNamespace(name="spotify-1", proplist={"application.process.binary": "spotify"},
                            volume=SimpleNamespace(value_flat=0.8)),
        ]
        return FakePulse(pulsectl_module, {"alsa_output.usb": 0.55}, streams)

    @pytest.fixture
    def backend(self, pulse: FakePulse):
        from korg_volume.model.pulse_backend import PulseAudioBackend
        def factory(client_name):
            pulse.connections += 1
            return pulse

        return PulseAudioBackend(pulse_factory=factory)

    def test_default_sink_alias(self, backend, pulse: FakePulse) -> None:
        backend.set_volume("@DEFAULT_SINK@", 50)
        assert pulse.set_calls == [("alsa_output.usb", 0.5)]

    def test_application_streams(self, backend, pulse: FakePulse) -> None:
        backend.set_volume("firefox", 20, APPLICATION)
        assert pulse.set_calls == [("firefox-1", 0.2)]

    def test_missing_targets_raise(self, backend) -> None:
        with pytest.raises(BackendError, match="sink not found"):
            backend.set_volume("hdmi", 20, SINK)
        with pytest.raises(BackendError, match="no matching"):
            backend.set_volume("vlc", 20, APPLICATION)

    def test_get_volume_and_availability(self, backend) -> None:
        assert backend.get_volume("alsa_output.usb") == 55
        assert backend.get_volume("spotify", APPLICATION) == 80
        assert backend.get_volume("hdmi") is None
        assert backend.is_available("alsa_output.usb")
        assert not backend.is_available("hdmi")
        assert not backend.is_available("vlc", APPLICATION)

    def test_reconnects_after_server_error(self, backend, pulse: FakePulse) -> None:
        pulse.fail_next = True
        with pytest.raises(BackendError, match="PulseAudio error"):
            backend.set_volume("alsa_output.usb", 10)
        assert pulse.closed

        backend.set_volume("alsa_output.usb", 10)
        assert pulse.connections == 2
