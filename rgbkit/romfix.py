"""Fixing up the header of Game Boy ROM images: logo, metadata and checksums."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass, field
from enum import Enum, IntFlag
from typing import BinaryIO, Union

from rgbkit.mbc import is_tpp1

__all__ = [
    "BANK_SIZE",
    "NINTENDO_LOGO",
    "FixSpec",
    "Model",
    "FixOptions",
    "FixError",
    "FixResult",
    "parse_fix_spec",
    "fix_rom",
    "fix_stream",
    "fix_file",
]

BANK_SIZE = 0x4000
_MAX_BANKS = 0x10000

NINTENDO_LOGO = bytes(
    [
        0xCE, 0xED, 0x66, 0x66, 0xCC, 0x0D, 0x00, 0x0B,
        0x03, 0x73, 0x00, 0x83, 0x00, 0x0C, 0x00, 0x0D,
        0x00, 0x08, 0x11, 0x1F, 0x88, 0x89, 0x00, 0x0E,
        0xDC, 0xCC, 0x6E, 0xE6, 0xDD, 0xDD, 0xD9, 0x99,
        0xBB, 0xBB, 0x67, 0x63, 0x6E, 0x0E, 0xEC, 0xCC,
        0xDD, 0xDC, 0x99, 0x9F, 0xBB, 0xB9, 0x33, 0x3E,
    ]
)
_TRASH_LOGO = bytes(b ^ 0xFF for b in NINTENDO_LOGO)

_TPP1_CODE = b"\xC1\x65"

Text = Union[str, bytes]


class FixSpec(IntFlag):
    """Which header parts to fix (make valid) or trash (make invalid)."""

    FIX_LOGO = 0x80
    TRASH_LOGO = 0x40
    FIX_HEADER_SUM = 0x20
    TRASH_HEADER_SUM = 0x10
    FIX_GLOBAL_SUM = 0x08
    TRASH_GLOBAL_SUM = 0x04


class Model(Enum):
    """Hardware compatibility; ``DMG`` leaves the CGB flag alone."""

    DMG = "dmg"
    BOTH = "both"
    CGB = "cgb"


class FixError(Exception):
    """A ROM could not be fixed."""


_SPEC_LETTERS = {
    "l": (FixSpec.FIX_LOGO, "L", FixSpec.TRASH_LOGO),
    "L": (FixSpec.TRASH_LOGO, "l", FixSpec.FIX_LOGO),
    "h": (FixSpec.FIX_HEADER_SUM, "H", FixSpec.TRASH_HEADER_SUM),
    "H": (FixSpec.TRASH_HEADER_SUM, "h", FixSpec.FIX_HEADER_SUM),
    "g": (FixSpec.FIX_GLOBAL_SUM, "G", FixSpec.TRASH_GLOBAL_SUM),
    "G": (FixSpec.TRASH_GLOBAL_SUM, "g", FixSpec.FIX_GLOBAL_SUM),
}


def parse_fix_spec(spec: str) -> tuple[FixSpec, tuple[str, ...]]:
    """Parse a fix spec such as ``"lhg"``; return the flags and any warnings."""
    flags = FixSpec(0)
    warnings: list[str] = []
    for c in spec:
        entry = _SPEC_LETTERS.get(c)
        if entry is None:
            warnings.append(f"Ignoring '{c}' in fix spec")
            continue
        flag, bad_letter, bad = entry
        if flags & bad:
            warnings.append(f"'{c}' overriding '{bad_letter}' in fix spec")
        flags = (flags & ~bad) | flag
    return flags, tuple(warnings)


def _as_bytes(value: Text) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8", "surrogateescape")


@dataclass
class FixOptions:
    """What to change in a ROM's header; ``None`` leaves a field untouched."""

    fix_spec: FixSpec = FixSpec(0)
    model: Model = Model.DMG
    title: Text | None = None
    game_id: Text | None = None
    new_licensee: Text | None = None
    japanese: bool = True
    old_licensee: int | None = None
    cartridge_type: int | None = None
    tpp1_revision: tuple[int, int] = (1, 0)
    rom_version: int | None = None
    pad_value: int | None = None
    ram_size: int | None = None
    sgb: bool = False
    overwrite: bool = False

    def __post_init__(self) -> None:
        for name in ("old_licensee", "rom_version", "pad_value", "ram_size"):
            value = getattr(self, name)
            if value is not None and not 0 <= value <= 0xFF:
                raise ValueError(f"{name} must be a byte, not {value}")
        code = self.cartridge_type
        if code is not None and not (0 <= code <= 0xFF or 0x100 <= code <= 0x10F):
            raise ValueError(f"invalid cartridge type {code:#x}")
        if not all(0 <= part <= 0xFF for part in self.tpp1_revision):
            raise ValueError("TPP1 revision numbers must be bytes")

    def max_title_len(self) -> int:
        """Room for the title, which shrinks when a game ID or CGB flag is written."""
        if self.game_id is not None:
            return 11
        return 15 if self.model != Model.DMG else 16

    @property
    def tpp1(self) -> bool:
        return self.cartridge_type is not None and is_tpp1(self.cartridge_type)


@dataclass(frozen=True)
class FixResult:
    """The fixed ROM image, how many banks it spans, and warnings raised."""

    data: bytes
    nb_banks: int
    warnings: tuple[str, ...] = field(default=())

    @property
    def header_checksum(self) -> int:
        return self.data[0x14D]

    @property
    def global_checksum(self) -> int:
        return int.from_bytes(self.data[0x14E:0x150], "big")


@dataclass
class _Image:
    rom0: bytearray
    romx: bytes
    padding: int
    nb_banks: int
    header_size: int
    warnings: list[str]

    def output(self, pad_value: int | None) -> bytes:
        tail = bytes([pad_value]) * self.padding if pad_value is not None else b""
        return bytes(self.rom0) + self.romx + tail


def _fix(data: bytes, options: FixOptions, name: str) -> _Image:
    header_size = 0x154 if options.tpp1 else 0x150
    rom0 = bytearray(data[:BANK_SIZE])
    if len(rom0) < header_size:
        raise FixError(
            f'"{name}" too short, expected at least {header_size} (${header_size:x}) '
            f"bytes, got only {len(rom0)}"
        )
    romx = bytes(data[BANK_SIZE:])
    nb_banks = 1 + -(-len(romx) // BANK_SIZE)
    if nb_banks > _MAX_BANKS:
        raise FixError(f'"{name}" has more than 65536 banks')

    warnings: list[str] = []

    def overwrite(addr: int, fixed: bytes, area: str) -> None:
        if not options.overwrite:
            original = rom0[addr : addr + len(fixed)]
            if any(old and old != new for old, new in zip(original, fixed)):
                warnings.append(f"Overwrote a non-zero byte in the {area}")
        rom0[addr : addr + len(fixed)] = fixed

    spec = options.fix_spec
    if spec & FixSpec.FIX_LOGO:
        overwrite(0x104, NINTENDO_LOGO, "Nintendo logo")
    elif spec & FixSpec.TRASH_LOGO:
        overwrite(0x104, _TRASH_LOGO, "Nintendo logo")

    if options.title is not None:
        overwrite(0x134, _as_bytes(options.title)[: options.max_title_len()], "title")
    if options.game_id is not None:
        overwrite(0x13F, _as_bytes(options.game_id)[:4], "manufacturer code")
    if options.model != Model.DMG:
        overwrite(0x143, bytes([0x80 if options.model == Model.BOTH else 0xC0]), "CGB flag")
    if options.new_licensee is not None:
        overwrite(0x144, _as_bytes(options.new_licensee)[:2], "new licensee code")
    if options.sgb:
        overwrite(0x146, b"\x03", "SGB flag")

    code = options.cartridge_type
    if code is not None:
        overwrite(0x147, bytes([0xBC if options.tpp1 else code]), "cartridge type")

    if options.tpp1:
        assert code is not None
        overwrite(0x149, _TPP1_CODE, "TPP1 identification code")
        overwrite(0x150, bytes(options.tpp1_revision), "TPP1 revision number")
        if options.ram_size is not None:
            overwrite(0x152, bytes([options.ram_size]), "RAM size")
        overwrite(0x153, bytes([code & 0xFF]), "TPP1 feature flags")
    else:
        if options.ram_size is not None:
            overwrite(0x149, bytes([options.ram_size]), "RAM size")
        if not options.japanese:
            overwrite(0x14A, b"\x01", "destination code")

    if options.old_licensee is not None:
        overwrite(0x14B, bytes([options.old_licensee]), "old licensee code")
    if options.rom_version is not None:
        overwrite(0x14C, bytes([options.rom_version]), "mask ROM version number")

    padding = 0
    pad = options.pad_value
    if pad is not None:
        if nb_banks == 1:
            rom0.extend(bytes([pad]) * (BANK_SIZE - len(rom0)))
            nb_banks = 2
        if nb_banks & (nb_banks - 1):
            nb_banks = 1 << nb_banks.bit_length()
        rom0[0x148] = (nb_banks // 2).bit_length() - 1
        padding = (nb_banks - 1) * BANK_SIZE - len(romx)

    if spec & (FixSpec.FIX_HEADER_SUM | FixSpec.TRASH_HEADER_SUM):
        checksum = -sum(b + 1 for b in rom0[0x134:0x14D]) & 0xFF
        if spec & FixSpec.TRASH_HEADER_SUM:
            checksum = ~checksum & 0xFF
        overwrite(0x14D, bytes([checksum]), "header checksum")

    if spec & (FixSpec.FIX_GLOBAL_SUM | FixSpec.TRASH_GLOBAL_SUM):
        total = sum(rom0[:0x14E]) + sum(rom0[0x150:]) + sum(romx)
        if pad is not None:
            total += pad * padding
        total &= 0xFFFF
        if spec & FixSpec.TRASH_GLOBAL_SUM:
            total = ~total & 0xFFFF
        overwrite(0x14E, total.to_bytes(2, "big"), "global checksum")

    return _Image(rom0, romx, padding, nb_banks, header_size, warnings)


def fix_rom(rom: bytes, options: FixOptions) -> FixResult:
    """Fix a whole ROM image held in memory and return the new image."""
    image = _fix(bytes(rom), options, "<stdin>")
    return FixResult(image.output(options.pad_value), image.nb_banks, tuple(image.warnings))


def fix_stream(source: BinaryIO, sink: BinaryIO, options: FixOptions) -> FixResult:
    """Read a ROM from ``source`` and write the fixed image to ``sink``."""
    result = fix_rom(source.read(), options)
    sink.write(result.data)
    return result


def fix_file(path: str | os.PathLike[str], options: FixOptions) -> FixResult:
    """Fix a ROM file in place, rewriting only the header unless padding it."""
    name = os.fspath(path)
    try:
        handle = open(path, "r+b")
    except OSError as exc:
        raise FixError(
            f'Failed to open "{name}" for reading+writing: {exc.strerror or exc}'
        ) from exc
    with handle:
        try:
            info = os.fstat(handle.fileno())
        except OSError as exc:
            raise FixError(f'Failed to stat "{name}": {exc.strerror or exc}') from exc
        if not stat.S_ISREG(info.st_mode):
            raise FixError(
                f'"{name}" is not a regular file, and thus cannot be modified in-place'
            )
        if info.st_size < 0x150:
            raise FixError(
                f'"{name}" too short, expected at least 336 ($150) bytes, '
                f"got only {info.st_size}"
            )
        if info.st_size >= _MAX_BANKS * BANK_SIZE:
            raise FixError(f'"{name}" has more than 65536 banks')

        image = _fix(handle.read(), options, name)
        try:
            handle.seek(0)
            if options.pad_value is None:
                handle.write(image.rom0[: image.header_size])
            else:
                handle.write(image.rom0)
                handle.seek(0, os.SEEK_END)
                handle.write(bytes([options.pad_value]) * image.padding)
        except OSError as exc:
            raise FixError(f'Failed to write "{name}": {exc.strerror or exc}') from exc
    return FixResult(image.output(options.pad_value), image.nb_banks, tuple(image.warnings))