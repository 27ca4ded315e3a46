"""
Tests for the per-target volume dispatcher.
"""
import threading
import time

import pytest

from korg_volume.model.audio_dispatcher import VolumeDispatcher
from korg_volume.model.channel_state import APPLICATION, SINK
from korg_volume.model.errors import BackendError

from .mocks import MockAudioBackend


class GatedBackend(MockAudioBackend):
    """Backend whose calls block until the test opens the gate."""

    def __init__(self):
        super().__init__()
        self.gate = threading.Event()
        self.entered = threading.Event()

    def set_volume(self, name: str, level: int, kind: str = SINK) -> None:
        self.entered.set()
        self.gate.wait(timeout=5)
        super().set_volume(name, level, kind)


@pytest.fixture
def gated() -> GatedBackend:
    return GatedBackend()


class TestVolumeDispatcher:
    """Tests for ordering, coalescing and error isolation."""

    def test_applies_level(self, mock_backend: MockAudioBackend) -> None:
        dispatcher = VolumeDispatcher(mock_backend)
        dispatcher.register("Firefox", APPLICATION)
        dispatcher.submit("Firefox", 30)

        assert dispatcher.wait_idle(timeout=5)
        assert mock_backend.calls == [("Firefox", 30, APPLICATION)]
        dispatcher.shutdown()

    def test_unregistered_target_defaults_to_sink(self, mock_backend: MockAudioBackend) -> None:
        dispatcher = VolumeDispatcher(mock_backend)
        dispatcher.submit("master_sink", 10)

        assert dispatcher.wait_idle(timeout=5)
        assert mock_backend.calls == [("master_sink", 10, SINK)]
        dispatcher.shutdown()

    def test_coalesces_while_busy(self, gated: GatedBackend) -> None:
        """Levels submitted during a slow call collapse to the newest one."""
        dispatcher = VolumeDispatcher(gated)
        dispatcher.submit("master_sink", 1)
        assert gated.entered.wait(timeout=5)

        for level in range(2, 50):
            dispatcher.submit("master_sink", level)
        gated.gate.set()

        assert dispatcher.wait_idle(timeout=5)
        assert gated.levels_for("master_sink") == [1, 49]
        dispatcher.shutdown()

    def test_never_applies_older_after_newer(self, mock_backend: MockAudioBackend) -> None:
        dispatcher = VolumeDispatcher(mock_backend)
        for level in range(0, 101):
            dispatcher.submit("master_sink", level)

        assert dispatcher.wait_idle(timeout=5)
        levels = mock_backend.levels_for("master_sink")
        assert levels == sorted(levels)
        assert levels[-1] == 100
        dispatcher.shutdown()

    def test_slow_target_does_not_block_others(self, gated: GatedBackend) -> None:
        fast = MockAudioBackend()

        class Routed(MockAudioBackend):
            def set_volume(self, name, level, kind=SINK):
                (gated if name == "slow" else fast).set_volume(name, level, kind)

        dispatcher = VolumeDispatcher(Routed())
        dispatcher.submit("slow", 10)
        assert gated.entered.wait(timeout=5)
        dispatcher.submit("fast", 20)

        for _ in range(100):
            if fast.calls:
                break
            time.sleep(0.05)
        assert fast.calls == [("fast", 20, SINK)]

        gated.gate.set()
        assert dispatcher.wait_idle(timeout=5)
        dispatcher.shutdown()

    def test_backend_error_is_reported_not_raised(self, mock_backend: MockAudioBackend) -> None:
        errors = []
        mock_backend.failing.add("master_sink")
        dispatcher = VolumeDispatcher(mock_backend, on_error=errors.append)

        dispatcher.submit("master_sink", 10)
        assert dispatcher.wait_idle(timeout=5)
        dispatcher.submit("master_sink", 20)
        assert dispatcher.wait_idle(timeout=5)

        assert [e.target for e in errors] == ["master_sink", "master_sink"]
        assert all(isinstance(e, BackendError) for e in errors)
        assert mock_backend.levels_for("master_sink") == [10, 20]
        dispatcher.shutdown()

    def test_submit_after_shutdown_is_ignored(self, mock_backend: MockAudioBackend) -> None:
        dispatcher = VolumeDispatcher(mock_backend)
        dispatcher.shutdown()
        dispatcher.submit("master_sink", 10)
        assert mock_backend.calls == []

    def test_unexpected_error_keeps_worker_alive(self) -> None:
        class Flaky(MockAudioBackend):
            def __init__(self):
                super().__init__()
                self.raised = False

            def set_volume(self, name, level, kind=SINK):
                if not self.raised:
                    self.raised = True
                    raise RuntimeError("ctypes call failed")
                super().set_volume(name, level, kind)

        backend = Flaky()
        dispatcher = VolumeDispatcher(backend)
        dispatcher.submit("master_sink", 10)
        assert dispatcher.wait_idle(timeout=5)
        dispatcher.submit("master_sink", 20)
        assert dispatcher.wait_idle(timeout=5)

        assert backend.levels_for("master_sink") == [20]
        dispatcher.shutdown()
