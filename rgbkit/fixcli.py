"""Command-line front end that fixes Game Boy ROM headers."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator, Sequence, TextIO

from rgbkit.mbc import (
    IncompatibleFeaturesError,
    MbcRangeError,
    MbcType,
    UnknownMbcError,
    accepted_mbc_names,
    has_ram,
    is_tpp1,
    mbc_name,
    parse_mbc,
)
from rgbkit.romfix import FixError, FixOptions, FixSpec, Model, fix_file, fix_stream

__all__ = ["parse_byte", "main"]

_VERSION_MAJOR = 0
_VERSION_MINOR = 6
_VERSION_PATCH = 1
_VERSION = f"{_VERSION_MAJOR}.{_VERSION_MINOR}.{_VERSION_PATCH}"

_MAX_ERRORS = 0xFF

# Short option letter -> whether it takes an argument.
_SHORT_OPTIONS = {
    "C": False,
    "c": False,
    "f": True,
    "i": True,
    "j": False,
    "k": True,
    "l": True,
    "m": True,
    "n": True,
    "O": False,
    "p": True,
    "r": True,
    "s": False,
    "t": True,
    "V": False,
    "v": False,
}

_LONG_OPTIONS = (
    ("color-only", "C"),
    ("color-compatible", "c"),
    ("fix-spec", "f"),
    ("game-id", "i"),
    ("non-japanese", "j"),
    ("new-licensee", "k"),
    ("old-licensee", "l"),
    ("mbc-type", "m"),
    ("rom-version", "n"),
    ("overwrite", "O"),
    ("pad-value", "p"),
    ("ram-size", "r"),
    ("sgb-compatible", "s"),
    ("title", "t"),
    ("version", "V"),
    ("validate", "v"),
)

_USAGE = (
    "Usage: rgbfix [-jOsVv] [-C | -c] [-f <fix_spec>] [-i <game_id>] [-k <licensee>]\n"
    "              [-l <licensee_byte>] [-m <mbc_type>] [-n <rom_version>]\n"
    "              [-p <pad_value>] [-r <ram_size>] [-t <title_str>] [<file> ...]\n"
    "Useful options:\n"
    "    -m, --mbc-type <value>      set the MBC type byte to this value; refer\n"
    "                                  to the man page for a list of values\n"
    "    -p, --pad-value <value>     pad to the next valid size using this value\n"
    "    -r, --ram-size <code>       set the cart RAM size byte to this value\n"
    "    -V, --version               print RGBFIX version and exit\n"
    "    -v, --validate              fix the header logo and both checksums (-f lhg)\n"
    "\n"
    "For help, use `man rgbfix'.\n"
)

_C_SPACE = " \t\n\v\f\r"


class _UsageError(Exception):
    """The command line holds an option that cannot be understood."""


def _digit(c: str) -> int:
    if "0" <= c <= "9":
        return ord(c) - ord("0")
    low = c.lower()
    if "a" <= low <= "z":
        return ord(low) - ord("a") + 10
    return 99


def _strtoul(text: str, base: int) -> tuple[int, int]:
    """Parse like the C library's ``strtoul``; return (value, index past the number)."""
    i = 0
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
        and _digit(text[i + 2]) < 16
    ):
        i += 2
        base = 16
    elif base == 0:
        base = 8 if text[i : i + 1] == "0" else 10
    start = i
    value = 0
    while i < len(text) and _digit(text[i]) < base:
        value = value * base + _digit(text[i])
        i += 1
    if i == start:
        return 0, 0
    if negative and value:
        value = (-value) % (1 << 64)
    return value, i


def parse_byte(arg: str, name: str) -> int:
    """Parse a byte-sized option argument (``$FF``, ``0xFF``, ``0377`` or ``255``)."""
    if not arg:
        raise ValueError(f"Argument to option '{name}' may not be empty")
    if arg[0] == "$":
        value, end = _strtoul(arg[1:], 16)
        end += 1
    else:
        value, end = _strtoul(arg, 0)
    if end < len(arg):
        raise ValueError(f"Expected number as argument to option '{name}', got {arg}")
    if value > 0xFF:
        raise ValueError(f"Argument to option '{name}' is larger than 255: {value}")
    return value


def _match_long(body: str, single_dash: bool) -> tuple[str, str | None] | None:
    key, eq, value = body.partition("=")
    if not key:
        return None
    candidates = [letter for long_name, letter in _LONG_OPTIONS if long_name.startswith(key)]
    exact = [letter for long_name, letter in _LONG_OPTIONS if long_name == key]
    if exact:
        candidates = exact
    if len(candidates) != 1:
        return None
    if single_dash and len(key) == 1 and key in _SHORT_OPTIONS:
        return None
    return candidates[0], (value if eq else None)


def _getopt(argv: Sequence[str], positionals: list[str]) -> Iterator[tuple[str, str | None]]:
    """Yield (option letter, argument) pairs; collect non-options into ``positionals``."""
    args = list(argv)
    i = 0
    while i < len(args):
        arg = args[i]
        i += 1
        if arg == "--":
            positionals.extend(args[i:])
            return
        if not arg.startswith("-") or arg == "-":
            positionals.append(arg)
            continue
        double = arg.startswith("--")
        body = arg[2:] if double else arg[1:]
        match = _match_long(body, single_dash=not double)
        if match is not None:
            letter, value = match
            if _SHORT_OPTIONS[letter]:
                if value is None:
                    if i >= len(args):
                        raise _UsageError(f"option requires an argument: {arg}")
                    value = args[i]
                    i += 1
            elif value is not None:
                raise _UsageError(f"option does not take an argument: {arg}")
            yield letter, value
            continue
        if double:
            raise _UsageError(f"unrecognized option: {arg}")
        j = 0
        while j < len(body):
            c = body[j]
            j += 1
            if c not in _SHORT_OPTIONS:
                raise _UsageError(f"unrecognized option: -{c}")
            if not _SHORT_OPTIONS[c]:
                yield c, None
                continue
            if j < len(body):
                value = body[j:]
            elif i < len(args):
                value = args[i]
                i += 1
            else:
                raise _UsageError(f"option requires an argument: -{c}")
            yield c, value
            break


@dataclass
class _Settings:
    model: Model = Model.DMG
    fix_spec: FixSpec = FixSpec(0)
    title_arg: str | None = None
    title: bytes | None = None
    game_id_arg: str | None = None
    game_id: bytes | None = None
    new_licensee: bytes | None = None
    japanese: bool = True
    old_licensee: int | None = None
    cartridge_type: int | None = None
    tpp1_revision: tuple[int, int] = (0, 0)
    rom_version: int | None = None
    overwrite: bool = False
    pad_value: int | None = None
    ram_size: int | None = None
    sgb: bool = False
    errors: int = field(default=0)

    def options(self) -> FixOptions:
        return FixOptions(
            fix_spec=self.fix_spec,
            model=self.model,
            title=self.title,
            game_id=self.game_id,
            new_licensee=self.new_licensee,
            japanese=self.japanese,
            old_licensee=self.old_licensee,
            cartridge_type=self.cartridge_type,
            tpp1_revision=self.tpp1_revision,
            rom_version=self.rom_version,
            pad_value=self.pad_value,
            ram_size=self.ram_size,
            sgb=self.sgb,
            overwrite=self.overwrite,
        )

    def max_title_len(self) -> int:
        return FixOptions(model=self.model, game_id=self.game_id).max_title_len()

    def truncate_title(self, limit: int) -> None:
        if self.title is not None and len(self.title) > limit:
            self.title = self.title[:limit]
            _warn(f'Truncating title "{self.title_arg}" to {limit} chars')


def _say(message: str) -> None:
    print(message, file=sys.stderr)


def _warn(message: str) -> None:
    _say(f"warning: {message}")


def _report(settings: _Settings, message: str) -> None:
    _say(message)
    if settings.errors != _MAX_ERRORS:
        settings.errors += 1


def _set_mbc(settings: _Settings, arg: str) -> None:
    settings.cartridge_type = None
    try:
        parsed = parse_mbc(arg)
    except IncompatibleFeaturesError:
        _report(
            settings,
            f'error: Features incompatible with MBC ("{arg}")\nAccepted combinations:',
        )
        sys.stderr.write(accepted_mbc_names())
        return
    except MbcRangeError:
        _report(settings, f"error: Specified MBC ID out of range 0-255: {arg}")
        return
    except UnknownMbcError as exc:
        if str(exc) != f'Unknown MBC "{arg}"':
            _report(settings, f"error: {exc}")
        _report(settings, f'error: Unknown MBC "{arg}"\nAccepted MBC names:')
        sys.stderr.write(accepted_mbc_names())
        return
    for message in parsed.warnings:
        _warn(message)
    settings.cartridge_type = parsed.code
    if parsed.tpp1_revision is not None:
        settings.tpp1_revision = parsed.tpp1_revision
    if parsed.code in (MbcType.ROM_RAM, MbcType.ROM_RAM_BATTERY):
        _warn("ROM+RAM / ROM+RAM+BATTERY are under-specified and poorly supported")


def _set_byte(settings: _Settings, attr: str, arg: str, letter: str) -> None:
    try:
        setattr(settings, attr, parse_byte(arg, letter))
    except ValueError as exc:
        _report(settings, f"error: {exc}")


def _apply(settings: _Settings, letter: str, arg: str | None) -> int | None:
    """Apply one option; return an exit status if the program should stop."""
    if letter in ("C", "c"):
        settings.model = Model.BOTH if letter == "c" else Model.CGB
        settings.truncate_title(15)
    elif letter == "f":
        assert arg is not None
        settings.fix_spec = FixSpec(0)
        for c in arg:
            if c in "lLhHgG":
                settings.fix_spec = _parse_spec_letter(settings.fix_spec, c)
            else:
                _warn(f"Ignoring '{c}' in fix spec")
    elif letter == "i":
        assert arg is not None
        settings.game_id_arg = arg
        encoded = os.fsencode(arg)
        if len(encoded) > 4:
            encoded = encoded[:4]
            _warn(f'Truncating game ID "{arg}" to 4 chars')
        settings.game_id = encoded
        settings.truncate_title(11)
    elif letter == "j":
        settings.japanese = False
    elif letter == "k":
        assert arg is not None
        encoded = os.fsencode(arg)
        if len(encoded) > 2:
            encoded = encoded[:2]
            _warn(f'Truncating new licensee "{arg}" to 2 chars')
        settings.new_licensee = encoded
    elif letter == "l":
        assert arg is not None
        _set_byte(settings, "old_licensee", arg, "l")
    elif letter == "m":
        assert arg is not None
        if arg.lower() == "help":
            _say("Accepted MBC names:")
            sys.stderr.write(accepted_mbc_names())
            return 0
        _set_mbc(settings, arg)
    elif letter == "n":
        assert arg is not None
        _set_byte(settings, "rom_version", arg, "n")
    elif letter == "O":
        settings.overwrite = True
    elif letter == "p":
        assert arg is not None
        _set_byte(settings, "pad_value", arg, "p")
    elif letter == "r":
        assert arg is not None
        _set_byte(settings, "ram_size", arg, "r")
    elif letter == "s":
        settings.sgb = True
    elif letter == "t":
        assert arg is not None
        settings.title_arg = arg
        encoded = os.fsencode(arg)
        limit = settings.max_title_len()
        if len(encoded) > limit:
            encoded = encoded[:limit]
            _warn(f'Truncating title "{arg}" to {limit} chars')
        settings.title = encoded
    elif letter == "V":
        print(f"rgbfix {_VERSION}")
        return 0
    elif letter == "v":
        settings.fix_spec = FixSpec.FIX_LOGO | FixSpec.FIX_HEADER_SUM | FixSpec.FIX_GLOBAL_SUM
    return None


_SPEC_PAIRS = {
    "l": (FixSpec.FIX_LOGO, "L", FixSpec.TRASH_LOGO),
    "L": (FixSpec.TRASH_LOGO, "l", FixSpec.FIX_LOGO),
    "h": (FixSpec.FIX_HEADER_SUM, "H", FixSpec.TRASH_HEADER_SUM),
    "H": (FixSpec.TRASH_HEADER_SUM, "h", FixSpec.FIX_HEADER_SUM),
    "g": (FixSpec.FIX_GLOBAL_SUM, "G", FixSpec.TRASH_GLOBAL_SUM),
    "G": (FixSpec.TRASH_GLOBAL_SUM, "g", FixSpec.FIX_GLOBAL_SUM),
}


def _parse_spec_letter(current: FixSpec, c: str) -> FixSpec:
    flag, bad_letter, bad = _SPEC_PAIRS[c]
    if current & bad:
        _warn(f"'{c}' overriding '{bad_letter}' in fix spec")
    return (current & ~bad) | flag


def _check_settings(settings: _Settings) -> None:
    code = settings.cartridge_type
    if code is not None and is_tpp1(code) and not settings.japanese:
        _warn("TPP1 overwrites region flag for its identification code, ignoring `-j`")

    ram = settings.ram_size
    if ram is not None and code is not None and not is_tpp1(code):
        if code in (MbcType.ROM_RAM, MbcType.ROM_RAM_BATTERY):
            if ram != 1:
                _warn(f'MBC "{mbc_name(code)}" should have 2kiB of RAM (-r 1)')
        else:
            try:
                with_ram = has_ram(code)
            except ValueError:
                with_ram = None
            if with_ram is True:
                if ram == 0:
                    _warn(f'MBC "{mbc_name(code)}" has RAM, but RAM size was set to 0')
                elif ram == 1:
                    _warn(f'RAM size 1 (2 kiB) was specified for MBC "{mbc_name(code)}"')
            elif with_ram is False and ram:
                _warn(f'MBC "{mbc_name(code)}" has no RAM, but RAM size was set to {ram}')

    licensee = settings.old_licensee
    if settings.sgb and licensee is not None and licensee != 0x33:
        shown = f"{licensee:#x}" if licensee else "0"
        _warn(f"SGB compatibility enabled, but old licensee is {shown}, not 0x33")


def _binary(stream: TextIO | BinaryIO) -> BinaryIO:
    return getattr(stream, "buffer", stream)


def _process(name: str, options: FixOptions) -> bool:
    display = "<stdin>" if name == "-" else name
    errors = 0
    try:
        if name == "-":
            sink = _binary(sys.stdout)
            result = fix_stream(_binary(sys.stdin), sink, options)
            sink.flush()
        else:
            result = fix_file(name, options)
    except FixError as exc:
        _say(f"FATAL: {exc}")
        errors = 1
    else:
        for message in result.warnings:
            _warn(message)
    if errors:
        _say(f'Fixing "{display}" failed with {errors} error{"" if errors == 1 else "s"}')
    return bool(errors)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the ROM fixer; return the process exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    settings = _Settings()
    files: list[str] = []
    try:
        for letter, arg in _getopt(args, files):
            status = _apply(settings, letter, arg)
            if status is not None:
                return status
    except _UsageError as exc:
        _say(f"FATAL: {exc}")
        sys.stderr.write(_USAGE)
        return 1

    _check_settings(settings)

    failed = settings.errors != 0
    options = settings.options()
    for name in files or ["-"]:
        failed |= _process(name, options)
    return int(failed)


if __name__ == "__main__":
    sys.exit(main())