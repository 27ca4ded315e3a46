"""
Static CC mapping table: which CC drives which fader target, and which
button CCs toggle mute on which fader.
"""
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple, Union

from korg_volume.config.settings import MIDI_CC_RANGE
from korg_volume.model.channel_state import SINK, APPLICATION
from korg_volume.model.errors import MappingError

_CC_KEY_PATTERN = re.compile(r"^cc_(\d{1,3})$")


@dataclass(frozen=True)
class FaderTarget:
    cc: int
    name: str
    kind: str

    @property
    def is_application(self) -> bool:
        return self.kind == APPLICATION


def parse_cc_key(key: str) -> int:
    """'cc_12' -> 12, raising MappingError for anything else."""
    match = _CC_KEY_PATTERN.match(str(key).strip())
    if not match:
        raise MappingError(f"Invalid control key '{key}' (expected cc_<number>)")
    return _check_cc_range(int(match.group(1)), key)


def _check_cc_range(cc: int, source: object) -> int:
    low, high = MIDI_CC_RANGE
    if not (low <= cc <= high):
        raise MappingError(f"CC {cc} from '{source}' is outside {low}-{high}")
    return cc


def _parse_fader_cc(value: Union[int, str], button_key: str) -> int:
    # Both `cc_64 = 0` and `cc_64 = "cc_0"` are accepted
    if isinstance(value, bool):
        raise MappingError(f"Mute button '{button_key}' has a non-numeric target: {value!r}")
    if isinstance(value, int):
        return _check_cc_range(value, button_key)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return _check_cc_range(int(text), button_key)
        return parse_cc_key(text)
    raise MappingError(f"Mute button '{button_key}' has a non-numeric target: {value!r}")


class ControlMapping:
    """
    Immutable after construction. Use build() to validate raw config tables.
    """

    def __init__(self, faders: Dict[int, FaderTarget], mute_buttons: Dict[int, int]):
        self._faders = dict(faders)
        self._mute_buttons = dict(mute_buttons)
        self._by_name = {target.name: target for target in self._faders.values()}
        self._buttons_by_fader: Dict[int, List[int]] = {}
        for button_cc, fader_cc in sorted(self._mute_buttons.items()):
            self._buttons_by_fader.setdefault(fader_cc, []).append(button_cc)

    @classmethod
    def build(cls, sinks: Mapping[str, str], applications: Mapping[str, str],
              mute_buttons: Mapping[str, Union[int, str]]) -> "ControlMapping":
        """Validate the three [midi_controls] tables and build the mapping."""
        faders: Dict[int, FaderTarget] = {}
        names: Dict[str, int] = {}

        for kind, table in ((SINK, sinks), (APPLICATION, applications)):
            for key, raw_name in table.items():
                cc = parse_cc_key(key)
                name = str(raw_name).strip() if raw_name is not None else ""
                if not name:
                    raise MappingError(f"'{key}' maps to an empty target name")
                if cc in faders:
                    raise MappingError(
                        f"CC {cc} is mapped twice ({faders[cc].name!r} and {name!r})")
                if name in names:
                    raise MappingError(
                        f"Target {name!r} is mapped to both CC {names[name]} and CC {cc}")
                faders[cc] = FaderTarget(cc=cc, name=name, kind=kind)
                names[name] = cc

        buttons: Dict[int, int] = {}
        for key, raw_target in mute_buttons.items():
            button_cc = parse_cc_key(key)
            fader_cc = _parse_fader_cc(raw_target, key)
            if button_cc in faders:
                raise MappingError(
                    f"CC {button_cc} is used both as a fader and as a mute button")
            if button_cc in buttons:
                raise MappingError(f"Mute button CC {button_cc} is mapped twice ('{key}')")
            if fader_cc not in faders:
                raise MappingError(
                    f"Mute button CC {button_cc} points at unknown fader CC {fader_cc}")
            buttons[button_cc] = fader_cc

        return cls(faders, buttons)

    def fader(self, cc: int) -> Optional[FaderTarget]:
        return self._faders.get(cc)

    def mute_target(self, button_cc: int) -> Optional[FaderTarget]:
        """Fader target toggled by a mute button, or None if unmapped."""
        fader_cc = self._mute_buttons.get(button_cc)
        if fader_cc is None:
            return None
        return self._faders[fader_cc]

    def target_by_name(self, name: str) -> Optional[FaderTarget]:
        return self._by_name.get(name)

    def buttons_for(self, target: FaderTarget) -> List[int]:
        """All mute button CCs that toggle this target, ascending."""
        return list(self._buttons_by_fader.get(target.cc, []))

    def targets(self) -> List[FaderTarget]:
        """All fader targets ordered by CC."""
        return [self._faders[cc] for cc in sorted(self._faders)]

    def mute_buttons(self) -> List[Tuple[int, int]]:
        return sorted(self._mute_buttons.items())

    def __len__(self) -> int:
        return len(self._faders)
