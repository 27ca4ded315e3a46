"""
Exception hierarchy for the volume controller.
"""


class KorgVolumeError(Exception):
    """Base class for all application errors."""


class ConfigError(KorgVolumeError):
    """Configuration file could not be read, parsed or validated."""


class MappingError(ConfigError):
    """CC mapping table is malformed or has dangling references."""


class BackendError(KorgVolumeError):
    """Audio backend failed to apply a volume change."""

    def __init__(self, target: str, message: str):
        super().__init__(f"{target}: {message}")
        self.target = target


class TransportError(KorgVolumeError):
    """MIDI device could not be found or opened."""
