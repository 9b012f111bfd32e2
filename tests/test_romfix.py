import io

import pytest

from rgbkit.mbc import MbcType
from rgbkit.romfix import (
    BANK_SIZE,
    NINTENDO_LOGO,
    FixError,
    FixOptions,
    FixSpec,
    Model,
    fix_file,
    fix_rom,
    fix_stream,
    parse_fix_spec,
)

VALIDATE = FixSpec.FIX_LOGO | FixSpec.FIX_HEADER_SUM | FixSpec.FIX_GLOBAL_SUM


def blank(size=BANK_SIZE * 2):
    return bytes(size)


def test_parse_fix_spec_all_fixes():
    spec, warnings = parse_fix_spec("lhg")
    assert spec == VALIDATE
    assert warnings == ()


def test_parse_fix_spec_override_warns():
    spec, warnings = parse_fix_spec("lL")
    assert spec == FixSpec.TRASH_LOGO
    assert warnings == ("'L' overriding 'l' in fix spec",)


def test_parse_fix_spec_ignores_unknown():
    spec, warnings = parse_fix_spec("xg")
    assert spec == FixSpec.FIX_GLOBAL_SUM
    assert warnings == ("Ignoring 'x' in fix spec",)


def test_max_title_len():
    assert FixOptions().max_title_len() == 16
    assert FixOptions(model=Model.CGB).max_title_len() == 15
    assert FixOptions(game_id="ABCD", model=Model.CGB).max_title_len() == 11


def test_invalid_byte_option():
    with pytest.raises(ValueError):
        FixOptions(old_licensee=256)


def test_logo_is_written():
    result = fix_rom(blank(), FixOptions(fix_spec=FixSpec.FIX_LOGO))
    assert result.data[0x104:0x134] == NINTENDO_LOGO
    assert result.data[0x104:0x108] == b"\xCE\xED\x66\x66"
    assert len(result.data) == BANK_SIZE * 2


def test_trash_logo_differs_everywhere():
    result = fix_rom(blank(), FixOptions(fix_spec=FixSpec.TRASH_LOGO))
    logo = result.data[0x104:0x134]
    assert all(a ^ b == 0xFF for a, b in zip(logo, NINTENDO_LOGO))


def test_header_checksum_invariant():
    opts = FixOptions(fix_spec=FixSpec.FIX_HEADER_SUM, title="HELLO", rom_version=3)
    data = fix_rom(blank(), opts).data
    assert (sum(data[0x134:0x14D]) + len(range(0x134, 0x14D)) + data[0x14D]) % 256 == 0


def test_trashed_header_checksum_is_complement():
    good = fix_rom(blank(), FixOptions(fix_spec=FixSpec.FIX_HEADER_SUM))
    bad = fix_rom(blank(), FixOptions(fix_spec=FixSpec.TRASH_HEADER_SUM))
    assert bad.header_checksum == good.header_checksum ^ 0xFF


def test_global_checksum_invariant():
    rom = bytearray(blank())
    rom[0x5000] = 0x42
    rom[0x200] = 0x17
    result = fix_rom(bytes(rom), FixOptions(fix_spec=VALIDATE))
    data = result.data
    assert result.global_checksum == (sum(data) - data[0x14E] - data[0x14F]) & 0xFFFF


def test_trashed_global_checksum_is_complement():
    good = fix_rom(blank(), FixOptions(fix_spec=FixSpec.FIX_GLOBAL_SUM))
    bad = fix_rom(blank(), FixOptions(fix_spec=FixSpec.TRASH_GLOBAL_SUM))
    assert bad.global_checksum == good.global_checksum ^ 0xFFFF


def test_metadata_fields():
    opts = FixOptions(
        model=Model.CGB,
        sgb=True,
        japanese=False,
        game_id="ABCDEF",
        new_licensee="XYZ",
        old_licensee=0x33,
        cartridge_type=MbcType.MBC5_RAM_BATTERY,
        ram_size=3,
    )
    data = fix_rom(blank(), opts).data
    assert data[0x143] == 0xC0
    assert data[0x146] == 0x03
    assert data[0x14A] == 0x01
    assert data[0x13F:0x143] == b"ABCD"
    assert data[0x144:0x146] == b"XY"
    assert data[0x14B] == 0x33
    assert data[0x147] == MbcType.MBC5_RAM_BATTERY
    assert data[0x149] == 3


def test_both_model_flag():
    data = fix_rom(blank(), FixOptions(model=Model.BOTH)).data
    assert data[0x143] == 0x80


def test_title_truncated_to_max():
    opts = FixOptions(title="ABCDEFGHIJKLMNOPQRS", game_id="GAME")
    data = fix_rom(blank(), opts).data
    assert data[0x134:0x13F] == b"ABCDEFGHIJK"
    assert data[0x13F:0x143] == b"GAME"


def test_tpp1_header():
    opts = FixOptions(cartridge_type=MbcType.TPP1_BATTERY, tpp1_revision=(1, 0), ram_size=2)
    data = fix_rom(blank(), opts).data
    assert data[0x147] == 0xBC
    assert data[0x149:0x14B] == b"\xC1\x65"
    assert data[0x150:0x152] == bytes([1, 0])
    assert data[0x152] == 2
    assert data[0x153] == MbcType.TPP1_BATTERY & 0xFF


def test_tpp1_requires_longer_header():
    with pytest.raises(FixError, match="too short"):
        fix_rom(bytes(0x150), FixOptions(cartridge_type=MbcType.TPP1))


def test_too_short_rom():
    with pytest.raises(FixError, match="too short"):
        fix_rom(bytes(0x100), FixOptions())


def test_overwrite_warning():
    rom = bytearray(blank())
    rom[0x104] = 1
    result = fix_rom(bytes(rom), FixOptions(fix_spec=FixSpec.FIX_LOGO))
    assert result.warnings == ("Overwrote a non-zero byte in the Nintendo logo",)
    quiet = fix_rom(bytes(rom), FixOptions(fix_spec=FixSpec.FIX_LOGO, overwrite=True))
    assert quiet.warnings == ()
    assert quiet.data == result.data


def test_padding_short_rom_to_two_banks():
    result = fix_rom(bytes(0x150), FixOptions(pad_value=0xFF))
    assert len(result.data) == 2 * BANK_SIZE
    assert result.nb_banks == 2
    assert result.data[0x148] == 0
    assert set(result.data[0x150:]) == {0xFF}


def test_padding_rounds_to_power_of_two():
    result = fix_rom(bytes(3 * BANK_SIZE), FixOptions(pad_value=0))
    assert result.nb_banks == 4
    assert len(result.data) == result.nb_banks * BANK_SIZE
    assert len(result.data) == (2 * BANK_SIZE) << result.data[0x148]


def test_padding_global_checksum_counts_padding():
    opts = FixOptions(pad_value=0xFF, fix_spec=FixSpec.FIX_GLOBAL_SUM)
    data = fix_rom(bytes(3 * BANK_SIZE), opts).data
    assert int.from_bytes(data[0x14E:0x150], "big") == (
        sum(data) - data[0x14E] - data[0x14F]
    ) & 0xFFFF


def test_fix_stream_matches_fix_rom():
    rom = blank()
    opts = FixOptions(fix_spec=VALIDATE, title="STREAM")
    sink = io.BytesIO()
    result = fix_stream(io.BytesIO(rom), sink, opts)
    assert sink.getvalue() == fix_rom(rom, opts).data
    assert sink.getvalue() == result.data


def test_fix_file_in_place(tmp_path):
    rom = bytearray(blank())
    rom[0x6000] = 9
    path = tmp_path / "game.gb"
    path.write_bytes(bytes(rom))
    opts = FixOptions(fix_spec=VALIDATE, title="FILE")
    result = fix_file(path, opts)
    assert path.read_bytes() == fix_rom(bytes(rom), opts).data
    assert result.data == path.read_bytes()


def test_fix_file_with_padding(tmp_path):
    path = tmp_path / "small.gb"
    path.write_bytes(bytes(0x200))
    opts = FixOptions(pad_value=0xFF, fix_spec=VALIDATE)
    fix_file(path, opts)
    content = path.read_bytes()
    assert len(content) == 2 * BANK_SIZE
    assert content == fix_rom(bytes(0x200), opts).data


def test_fix_file_too_short(tmp_path):
    path = tmp_path / "tiny.gb"
    path.write_bytes(bytes(0x10))
    with pytest.raises(FixError, match="too short"):
        fix_file(path, FixOptions())


def test_fix_file_missing(tmp_path):
    with pytest.raises(FixError, match="Failed to open"):
        fix_file(tmp_path / "absent.gb", FixOptions())


def test_fix_file_directory(tmp_path):
    with pytest.raises(FixError):
        fix_file(tmp_path, FixOptions())