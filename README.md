# rgbkit

Tools for Game Boy development: a ROM header fixer, cartridge (MBC) type
parsing, and a few small text helpers.

## Installing

    pip install .

## Fixing a ROM header

The `rgbfix` command rewrites the cartridge header of one or more ROM files
in place. With no file, or with `-`, it reads a ROM from standard input and
writes the fixed ROM to standard output.

    rgbfix -v -p 0xFF game.gb

Options:

    -v, --validate              fix the logo and both checksums (same as -f lhg)
    -f, --fix-spec <spec>       choose fixes: l/L logo, h/H header sum, g/G global sum
                                (upper case writes a deliberately wrong value)
    -m, --mbc-type <value>      set the cartridge type; `-m help` lists the names
    -p, --pad-value <value>     pad to the next power-of-two bank count with this byte
    -r, --ram-size <code>       set the cart RAM size byte
    -t, --title <title>         set the game title
    -i, --game-id <id>          set the 4-character manufacturer code
    -k, --new-licensee <code>   set the 2-character new licensee code
    -l, --old-licensee <byte>   set the old licensee byte
    -n, --rom-version <byte>    set the mask ROM version number
    -j, --non-japanese          set the destination code to non-Japanese
    -C, --color-only            mark the ROM as CGB-only
    -c, --color-compatible      mark the ROM as CGB-compatible
    -s, --sgb-compatible        mark the ROM as SGB-compatible
    -O, --overwrite             do not warn when overwriting non-zero bytes
    -V, --version               print the version and exit

Byte arguments accept `$FF`, `0xFF`, octal `0377` or decimal `255`. Long
options may be abbreviated and may also be given with a single dash.
The exit status is non-zero when any file failed.

## From Python

    from rgbkit.mbc import parse_mbc, mbc_name
    from rgbkit.romfix import FixOptions, FixSpec, fix_file

    parsed = parse_mbc("MBC5+RAM+BATTERY")
    print(mbc_name(parsed.code))            # MBC5+RAM+BATTERY

    options = FixOptions(fix_spec=FixSpec.FIX_LOGO | FixSpec.FIX_HEADER_SUM,
                         cartridge_type=parsed.code)
    result = fix_file("game.gb", options)
    print(result.header_checksum, result.warnings)

`rgbkit.mbc`:

- `parse_mbc(name)` accepts names such as `ROM_ONLY`, `MBC3+TIMER+RAM+BATTERY`
  or `TPP1_1.0+RUMBLE`, and numbers such as `$1B` or `27`. It returns a
  `ParsedMbc` with the `code`, the TPP1 revision if any, and warnings. Bad
  input raises `UnknownMbcError`, `IncompatibleFeaturesError` or
  `MbcRangeError`, all subclasses of `MbcError` (itself a `ValueError`).
- `mbc_name(code)`, `has_ram(code)`, `is_tpp1(code)` and
  `accepted_mbc_names()` describe cartridge types; `MbcType` lists them.

`rgbkit.romfix`:

- `FixOptions` says what to write; fields left at `None` are untouched.
  `parse_fix_spec("lhg")` turns a spec string into `FixSpec` flags.
- `fix_rom(rom, options)` works on bytes in memory, `fix_stream(source, sink,
  options)` reads one binary stream and writes another, and
  `fix_file(path, options)` edits a file in place, rewriting only the header
  unless padding. Each returns a `FixResult` (`data`, `nb_banks`, `warnings`,
  `header_checksum`, `global_checksum`); problems are raised as `FixError`.

`rgbkit.textutil` has `print_char(c)`, which renders a character code for a
message, and `read_utf8_char(data)`, which returns the bytes of the first
well-formed UTF-8 character (or empty bytes).

## What this package does not do

There is no assembler or linker here: rgbkit does not read source files,
keep a symbol table, or produce object files or ROMs. It only edits the
header of ROM images that already exist.