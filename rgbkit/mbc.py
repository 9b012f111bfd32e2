"""Memory bank controller (cartridge type) names, codes and parsing."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, IntFlag

__all__ = [
    "MbcType",
    "MbcError",
    "UnknownMbcError",
    "IncompatibleFeaturesError",
    "MbcRangeError",
    "ParsedMbc",
    "parse_mbc",
    "mbc_name",
    "has_ram",
    "is_tpp1",
    "accepted_mbc_names",
]


class MbcType(IntEnum):
    """Cartridge type codes; values of 0x100 and up stand for TPP1 feature sets."""

    ROM = 0x00
    ROM_RAM = 0x08
    ROM_RAM_BATTERY = 0x09

    MBC1 = 0x01
    MBC1_RAM = 0x02
    MBC1_RAM_BATTERY = 0x03

    MBC2 = 0x05
    MBC2_BATTERY = 0x06

    MMM01 = 0x0B
    MMM01_RAM = 0x0C
    MMM01_RAM_BATTERY = 0x0D

    MBC3 = 0x11
    MBC3_TIMER_BATTERY = 0x0F
    MBC3_TIMER_RAM_BATTERY = 0x10
    MBC3_RAM = 0x12
    MBC3_RAM_BATTERY = 0x13

    MBC5 = 0x19
    MBC5_RAM = 0x1A
    MBC5_RAM_BATTERY = 0x1B
    MBC5_RUMBLE = 0x1C
    MBC5_RUMBLE_RAM = 0x1D
    MBC5_RUMBLE_RAM_BATTERY = 0x1E

    MBC6 = 0x20

    MBC7_SENSOR_RUMBLE_RAM_BATTERY = 0x22

    POCKET_CAMERA = 0xFC
    BANDAI_TAMA5 = 0xFD
    HUC3 = 0xFE
    HUC1_RAM_BATTERY = 0xFF

    TPP1 = 0x100
    TPP1_RUMBLE = 0x101
    TPP1_MULTIRUMBLE = 0x102
    TPP1_MULTIRUMBLE_RUMBLE = 0x103
    TPP1_TIMER = 0x104
    TPP1_TIMER_RUMBLE = 0x105
    TPP1_TIMER_MULTIRUMBLE = 0x106
    TPP1_TIMER_MULTIRUMBLE_RUMBLE = 0x107
    TPP1_BATTERY = 0x108
    TPP1_BATTERY_RUMBLE = 0x109
    TPP1_BATTERY_MULTIRUMBLE = 0x10A
    TPP1_BATTERY_MULTIRUMBLE_RUMBLE = 0x10B
    TPP1_BATTERY_TIMER = 0x10C
    TPP1_BATTERY_TIMER_RUMBLE = 0x10D
    TPP1_BATTERY_TIMER_MULTIRUMBLE = 0x10E
    TPP1_BATTERY_TIMER_MULTIRUMBLE_RUMBLE = 0x10F


class MbcError(ValueError):
    """An MBC specification could not be turned into a cartridge type."""


class UnknownMbcError(MbcError):
    """The MBC does not exist, or its name is malformed."""


class IncompatibleFeaturesError(MbcError):
    """The MBC exists but not with the requested features."""


class MbcRangeError(MbcError):
    """A numeric MBC code does not fit in a byte."""


@dataclass(frozen=True)
class ParsedMbc:
    """Result of parsing an MBC specification."""

    code: int
    tpp1_revision: tuple[int, int] | None = None
    warnings: tuple[str, ...] = ()

    @property
    def type(self) -> MbcType | None:
        """The code as an ``MbcType`` member, or ``None`` for codes with no name."""
        try:
            return MbcType(self.code)
        except ValueError:
            return None


class _Feature(IntFlag):
    RAM = 0x80
    BATTERY = 0x40
    TIMER = 0x20
    RUMBLE = 0x10
    SENSOR = 0x08
    MULTIRUMBLE = 0x04


_C_SPACE = " \t\n\v\f\r"
_DIGITS = "0123456789"


def _digit_value(c: str) -> int:
    if "0" <= c <= "9":
        return ord(c) - ord("0")
    if "a" <= c.lower() <= "z":
        return ord(c.lower()) - ord("a") + 10
    return 99


def _strtoul(text: str, pos: int, base: int) -> tuple[int, int]:
    """Parse an unsigned long the way the C library does; return (value, end)."""
    i = pos
    while i < len(text) and text[i] in _C_SPACE:
        i += 1
    negative = False
    if i < len(text) and text[i] in "+-":
        negative = text[i] == "-"
        i += 1
    if (
        base in (0, 16)
        and text[i : i + 2].lower() == "0x"
        and i + 2 < len(text)
        and _digit_value(text[i + 2]) < 16
    ):
        i += 2
        base = 16
    elif base == 0:
        base = 8 if text[i : i + 1] == "0" else 10
    start = i
    value = 0
    while i < len(text) and _digit_value(text[i]) < base:
        value = value * base + _digit_value(text[i])
        i += 1
    if i == start:
        return 0, pos
    if negative and value:
        value = (-value) % (1 << 64)
    return value, i


class _Scanner:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def take(self) -> str:
        c = self.peek()
        self.pos += 1
        return c

    def skip(self, chars: str) -> None:
        while self.peek() and self.peek() in chars:
            self.pos += 1

    def slice_matches(self, expected: str) -> bool:
        for want in expected:
            c = self.take()
            if not c:
                return False
            if "a" <= c <= "z":
                c = c.upper()
            elif c == "_":
                c = " "
            if c != want:
                return False
        return True


def _parse_number(name: str) -> ParsedMbc:
    base, start = (16, 1) if name[0] == "$" else (0, 0)
    value, end = _strtoul(name, start, base)
    if end < len(name):
        raise UnknownMbcError(f'Unknown MBC "{name}"')
    if value > 0xFF:
        raise MbcRangeError(f"Specified MBC ID out of range 0-255: {name}")
    return ParsedMbc(value)


def parse_mbc(name: str) -> ParsedMbc:
    """Parse an MBC name (e.g. ``MBC5+RAM+BATTERY``) or number (``$1B``, ``27``)."""
    if name and (name[0] in _DIGITS or name[0] == "$"):
        return _parse_number(name)

    def bad() -> UnknownMbcError:
        return UnknownMbcError(f'Unknown MBC "{name}"')

    def expect(expected: str) -> None:
        if not scan.slice_matches(expected):
            raise bad()

    scan = _Scanner(name)
    warnings: list[str] = []
    revision: tuple[int, int] | None = None
    scan.skip(" \t")

    first = scan.take()
    if first in ("R", "r"):
        expect("OM")
        scan.skip(" \t_")
        if scan.peek() in ("O", "o") and scan.peek():
            scan.take()
            expect("NLY")
        mbc = MbcType.ROM
    elif first in ("M", "m"):
        second = scan.take()
        if second in ("B", "b") and second:
            if scan.take() not in ("C", "c"):
                raise bad()
            digit = scan.take()
            numbered = {
                "1": MbcType.MBC1,
                "2": MbcType.MBC2,
                "3": MbcType.MBC3,
                "5": MbcType.MBC5,
                "6": MbcType.MBC6,
                "7": MbcType.MBC7_SENSOR_RUMBLE_RAM_BATTERY,
            }
            if digit not in numbered:
                raise bad()
            mbc = numbered[digit]
        elif second in ("M", "m") and second:
            expect("M01")
            mbc = MbcType.MMM01
        else:
            raise bad()
    elif first in ("P", "p") and first:
        expect("OCKET CAMERA")
        mbc = MbcType.POCKET_CAMERA
    elif first in ("B", "b") and first:
        expect("ANDAI TAMA5")
        mbc = MbcType.BANDAI_TAMA5
    elif first in ("T", "t") and first:
        second = scan.take()
        if second == "A":
            expect("MA5")
            mbc = MbcType.BANDAI_TAMA5
        elif second == "P":
            expect("P1")
            scan.skip(" _")
            major, end = _strtoul(scan.text, scan.pos, 10)
            if end == scan.pos:
                raise UnknownMbcError("Failed to parse TPP1 major revision number")
            scan.pos = end
            if major != 1:
                raise UnknownMbcError("RGBFIX only supports TPP1 versions 1.0")
            expect(".")
            minor, end = _strtoul(scan.text, scan.pos, 10)
            if end == scan.pos:
                raise UnknownMbcError("Failed to parse TPP1 minor revision number")
            scan.pos = end
            if minor > 0xFF:
                raise UnknownMbcError("TPP1 minor revision number must be 8-bit")
            revision = (major, minor)
            mbc = MbcType.TPP1
        else:
            raise bad()
    elif first in ("H", "h") and first:
        expect("UC")
        digit = scan.take()
        if digit == "1":
            mbc = MbcType.HUC1_RAM_BATTERY
        elif digit == "3":
            mbc = MbcType.HUC3
        else:
            raise bad()
    else:
        raise bad()

    features = _Feature(0)
    while True:
        scan.skip(" \t_")
        if not scan.peek():
            break
        if scan.take() != "+":
            raise bad()
        scan.skip(" \t_")
        c = scan.take()
        if c in ("B", "b") and c:
            expect("ATTERY")
            features |= _Feature.BATTERY
        elif c in ("M", "m") and c:
            expect("ULTIRUMBLE")
            features |= _Feature.MULTIRUMBLE
        elif c in ("R", "r") and c:
            second = scan.take()
            if second in ("U", "u") and second:
                expect("MBLE")
                features |= _Feature.RUMBLE
            elif second in ("A", "a") and second:
                if not scan.peek() or scan.peek() not in ("M", "m"):
                    raise bad()
                scan.take()
                features |= _Feature.RAM
            else:
                raise bad()
        elif c in ("S", "s") and c:
            expect("ENSOR")
            features |= _Feature.SENSOR
        elif c in ("T", "t") and c:
            expect("IMER")
            features |= _Feature.TIMER
        else:
            raise bad()

    wrong = IncompatibleFeaturesError(f'Features incompatible with MBC ("{name}")')
    ram_battery = _Feature.RAM | _Feature.BATTERY
    code = int(mbc)

    def add_ram(base: int) -> int:
        if features == _Feature.RAM:
            return base + 1
        if features == ram_battery:
            return base + 2
        if features:
            raise wrong
        return base

    if mbc == MbcType.ROM:
        if features:
            code = add_ram(MbcType.ROM_RAM - 1)
    elif mbc in (MbcType.MBC1, MbcType.MMM01):
        code = add_ram(code)
    elif mbc == MbcType.MBC2:
        if features == _Feature.BATTERY:
            code = MbcType.MBC2_BATTERY
        elif features:
            raise wrong
    elif mbc == MbcType.MBC3:
        if features & _Feature.TIMER:
            if not features & _Feature.BATTERY:
                warnings.append("MBC3+TIMER implies BATTERY")
            features &= ~(_Feature.TIMER | _Feature.BATTERY)
            code = MbcType.MBC3_TIMER_BATTERY
        code = add_ram(code)
    elif mbc == MbcType.MBC5:
        if features & _Feature.RUMBLE:
            features &= ~_Feature.RUMBLE
            code = MbcType.MBC5_RUMBLE
        code = add_ram(code)
    elif mbc in (MbcType.MBC6, MbcType.POCKET_CAMERA, MbcType.BANDAI_TAMA5, MbcType.HUC3):
        if features:
            raise wrong
    elif mbc == MbcType.MBC7_SENSOR_RUMBLE_RAM_BATTERY:
        if features != (_Feature.SENSOR | _Feature.RUMBLE | ram_battery):
            raise wrong
    elif mbc == MbcType.HUC1_RAM_BATTERY:
        if features != ram_battery:
            raise wrong
    elif mbc == MbcType.TPP1:
        if features & _Feature.RAM:
            warnings.append("TPP1 requests RAM implicitly if given a non-zero RAM size")
        if features & _Feature.BATTERY:
            code |= 0x08
        if features & _Feature.TIMER:
            code |= 0x04
        if features & _Feature.MULTIRUMBLE:
            code |= 0x03
        if features & _Feature.RUMBLE:
            code |= 0x01
        if features & _Feature.SENSOR:
            raise wrong

    return ParsedMbc(int(code), revision, tuple(warnings))


_NAMES: dict[int, str] = {
    MbcType.ROM: "ROM",
    MbcType.ROM_RAM: "ROM+RAM",
    MbcType.ROM_RAM_BATTERY: "ROM+RAM+BATTERY",
    MbcType.MBC1: "MBC1",
    MbcType.MBC1_RAM: "MBC1+RAM",
    MbcType.MBC1_RAM_BATTERY: "MBC1+RAM+BATTERY",
    MbcType.MBC2: "MBC2",
    MbcType.MBC2_BATTERY: "MBC2+BATTERY",
    MbcType.MMM01: "MMM01",
    MbcType.MMM01_RAM: "MMM01+RAM",
    MbcType.MMM01_RAM_BATTERY: "MMM01+RAM+BATTERY",
    MbcType.MBC3: "MBC3",
    MbcType.MBC3_TIMER_BATTERY: "MBC3+TIMER+BATTERY",
    MbcType.MBC3_TIMER_RAM_BATTERY: "MBC3+TIMER+RAM+BATTERY",
    MbcType.MBC3_RAM: "MBC3+RAM",
    MbcType.MBC3_RAM_BATTERY: "MBC3+RAM+BATTERY",
    MbcType.MBC5: "MBC5",
    MbcType.MBC5_RAM: "MBC5+RAM",
    MbcType.MBC5_RAM_BATTERY: "MBC5+RAM+BATTERY",
    MbcType.MBC5_RUMBLE: "MBC5+RUMBLE",
    MbcType.MBC5_RUMBLE_RAM: "MBC5+RUMBLE+RAM",
    MbcType.MBC5_RUMBLE_RAM_BATTERY: "MBC5+RUMBLE+RAM+BATTERY",
    MbcType.MBC6: "MBC6",
    MbcType.MBC7_SENSOR_RUMBLE_RAM_BATTERY: "MBC7+SENSOR+RUMBLE+RAM+BATTERY",
    MbcType.POCKET_CAMERA: "POCKET CAMERA",
    MbcType.BANDAI_TAMA5: "BANDAI TAMA5",
    MbcType.HUC3: "HUC3",
    MbcType.HUC1_RAM_BATTERY: "HUC1+RAM+BATTERY",
    MbcType.TPP1: "TPP1",
    MbcType.TPP1_RUMBLE: "TPP1+RUMBLE",
    MbcType.TPP1_MULTIRUMBLE: "TPP1+MULTIRUMBLE",
    MbcType.TPP1_MULTIRUMBLE_RUMBLE: "TPP1+MULTIRUMBLE",
    MbcType.TPP1_TIMER: "TPP1+TIMER",
    MbcType.TPP1_TIMER_RUMBLE: "TPP1+TIMER+RUMBLE",
    MbcType.TPP1_TIMER_MULTIRUMBLE: "TPP1+TIMER+MULTIRUMBLE",
    MbcType.TPP1_TIMER_MULTIRUMBLE_RUMBLE: "TPP1+TIMER+MULTIRUMBLE",
    MbcType.TPP1_BATTERY: "TPP1+BATTERY",
    MbcType.TPP1_BATTERY_RUMBLE: "TPP1+BATTERY+RUMBLE",
    MbcType.TPP1_BATTERY_MULTIRUMBLE: "TPP1+BATTERY+MULTIRUMBLE",
    MbcType.TPP1_BATTERY_MULTIRUMBLE_RUMBLE: "TPP1+BATTERY+MULTIRUMBLE",
    MbcType.TPP1_BATTERY_TIMER: "TPP1+BATTERY+TIMER",
    MbcType.TPP1_BATTERY_TIMER_RUMBLE: "TPP1+BATTERY+TIMER+RUMBLE",
    MbcType.TPP1_BATTERY_TIMER_MULTIRUMBLE: "TPP1+BATTERY+TIMER+MULTIRUMBLE",
    MbcType.TPP1_BATTERY_TIMER_MULTIRUMBLE_RUMBLE: "TPP1+BATTERY+TIMER+MULTIRUMBLE",
}

_WITHOUT_RAM = frozenset(
    {
        MbcType.ROM,
        MbcType.MBC1,
        MbcType.MBC2,
        MbcType.MBC2_BATTERY,
        MbcType.MMM01,
        MbcType.MBC3,
        MbcType.MBC3_TIMER_BATTERY,
        MbcType.MBC5,
        MbcType.MBC5_RUMBLE,
        MbcType.MBC6,
        MbcType.BANDAI_TAMA5,
    }
)


def is_tpp1(code: int) -> bool:
    """Whether a cartridge type code designates a TPP1 mapper."""
    return (code & 0xFF00) == MbcType.TPP1


def mbc_name(code: int) -> str:
    """Human-readable name of a known cartridge type; ``ValueError`` otherwise."""
    try:
        return _NAMES[code]
    except KeyError:
        raise ValueError(f"no name for cartridge type ${code:02X}") from None


def has_ram(code: int) -> bool:
    """Whether a known, non-TPP1 cartridge type is marked as having RAM."""
    if is_tpp1(code):
        raise ValueError("TPP1 may or may not have RAM")
    if code not in _NAMES:
        raise ValueError(f"unknown cartridge type ${code:02X}")
    return code not in _WITHOUT_RAM


def accepted_mbc_names() -> str:
    """The list of accepted MBC names, one group per line."""
    return (
        "\tROM ($00) [aka ROM_ONLY]\n"
        "\tMBC1 ($01), MBC1+RAM ($02), MBC1+RAM+BATTERY ($03)\n"
        "\tMBC2 ($05), MBC2+BATTERY ($06)\n"
        "\tROM+RAM ($08) [deprecated], ROM+RAM+BATTERY ($09) [deprecated]\n"
        "\tMMM01 ($0B), MMM01+RAM ($0C), MMM01+RAM+BATTERY ($0D)\n"
        "\tMBC3+TIMER+BATTERY ($0F), MBC3+TIMER+RAM+BATTERY ($10)\n"
        "\tMBC3 ($11), MBC3+RAM ($12), MBC3+RAM+BATTERY ($13)\n"
        "\tMBC5 ($19), MBC5+RAM ($1A), MBC5+RAM+BATTERY ($1B)\n"
        "\tMBC5+RUMBLE ($1C), MBC5+RUMBLE+RAM ($1D), MBC5+RUMBLE+RAM+BATTERY ($1E)\n"
        "\tMBC6 ($20)\n"
        "\tMBC7+SENSOR+RUMBLE+RAM+BATTERY ($22)\n"
        "\tPOCKET_CAMERA ($FC)\n"
        "\tBANDAI_TAMA5 ($FD)\n"
        "\tHUC3 ($FE)\n"
        "\tHUC1+RAM+BATTERY ($FF)\n"
        "\n\tTPP1_1.0, TPP1_1.0+RUMBLE, TPP1_1.0+MULTIRUMBLE, TPP1_1.0+TIMER,\n"
        "\tTPP1_1.0+TIMER+RUMBLE, TPP1_1.0+TIMER+MULTIRUMBLE, TPP1_1.0+BATTERY,\n"
        "\tTPP1_1.0+BATTERY+RUMBLE, TPP1_1.0+BATTERY+MULTIRUMBLE,\n"
        "\tTPP1_1.0+BATTERY+TIMER, TPP1_1.0+BATTERY+TIMER+RUMBLE,\n"
        "\tTPP1_1.0+BATTERY+TIMER+MULTIRUMBLE\n"
    )