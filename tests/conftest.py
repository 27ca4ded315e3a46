"""
Pytest fixtures for korg_volume tests.

Provides mock dependencies and a small reference mapping.
"""
import pytest

from korg_volume.config.app_config import default_config
from korg_volume.model.channel_state import ChannelStateStore
from korg_volume.model.mapping import ControlMapping
from korg_volume.model.reconciler import EventReconciler

from .mocks import MockAudioBackend, MockPresenter, MockTransport


@pytest.fixture
def mapping():
    """CC0 -> master_sink, CC1 -> comms_sink, CC16 -> Firefox; CC64 mutes CC0, CC65 mutes CC1."""
    return ControlMapping.build(
        sinks={"cc_0": "master_sink", "cc_1": "comms_sink"},
        applications={"cc_16": "Firefox"},
        mute_buttons={"cc_64": 0, "cc_65": 1},
    )


@pytest.fixture
def store(mapping):
    return ChannelStateStore((t.name, t.kind, t.cc) for t in mapping.targets())


@pytest.fixture
def reconciler(store, mapping):
    return EventReconciler(store, mapping, channel=1)


@pytest.fixture
def config():
    cfg = default_config()
    cfg["midi_controls"] = {
        "sinks": {"cc_0": "master_sink", "cc_1": "comms_sink"},
        "applications": {"cc_16": "Firefox"},
        "mute_buttons": {"cc_64": 0, "cc_48": 0, "cc_65": 1},
    }
    return cfg


@pytest.fixture
def mock_transport() -> MockTransport:
    return MockTransport()


@pytest.fixture
def mock_backend() -> MockAudioBackend:
    return MockAudioBackend({"master_sink": 40, "comms_sink": 60})


@pytest.fixture
def mock_presenter() -> MockPresenter:
    return MockPresenter()
