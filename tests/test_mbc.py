import pytest

from rgbkit.mbc import (
    IncompatibleFeaturesError,
    MbcError,
    MbcRangeError,
    MbcType,
    UnknownMbcError,
    accepted_mbc_names,
    has_ram,
    is_tpp1,
    mbc_name,
    parse_mbc,
)


@pytest.mark.parametrize(
    "spec, expected",
    [
        ("MBC5+RAM+BATTERY", MbcType.MBC5_RAM_BATTERY),
        ("mbc5 + rumble + ram", MbcType.MBC5_RUMBLE_RAM),
        ("ROM_ONLY", MbcType.ROM),
        ("rom only", MbcType.ROM),
        ("ROM+RAM", MbcType.ROM_RAM),
        ("ROM+RAM+BATTERY", MbcType.ROM_RAM_BATTERY),
        ("MBC1", MbcType.MBC1),
        ("MMM01+RAM", MbcType.MMM01_RAM),
        ("MBC2+BATTERY", MbcType.MBC2_BATTERY),
        ("MBC3+TIMER+RAM+BATTERY", MbcType.MBC3_TIMER_RAM_BATTERY),
        ("HuC1+RAM+BATTERY", MbcType.HUC1_RAM_BATTERY),
        ("huc3", MbcType.HUC3),
        ("POCKET_CAMERA", MbcType.POCKET_CAMERA),
        ("TAMA5", MbcType.BANDAI_TAMA5),
        ("mbc7+sensor+rumble+ram+battery", MbcType.MBC7_SENSOR_RUMBLE_RAM_BATTERY),
        ("  MBC6  ", MbcType.MBC6),
    ],
)
def test_parse_names(spec, expected):
    assert parse_mbc(spec).code == expected


def test_parse_hex_and_decimal_numbers():
    assert parse_mbc("$1B").code == MbcType.MBC5_RAM_BATTERY
    assert parse_mbc("0x13").code == MbcType.MBC3_RAM_BATTERY
    assert parse_mbc("17").code == MbcType.MBC3


def test_numeric_code_without_name_is_kept():
    parsed = parse_mbc("$04")
    assert parsed.code == 4
    assert parsed.type is None


def test_number_out_of_range():
    with pytest.raises(MbcRangeError):
        parse_mbc("256")


def test_trailing_garbage_after_number():
    with pytest.raises(UnknownMbcError):
        parse_mbc("12x")


@pytest.mark.parametrize("spec", ["MBC4", "FOO", "", "MBC5+", "MBC5 RAM", "ROM+RA"])
def test_unknown_names(spec):
    with pytest.raises(UnknownMbcError):
        parse_mbc(spec)


@pytest.mark.parametrize(
    "spec", ["MBC2+RAM", "MBC6+RAM", "HUC1", "MBC7+RAM", "ROM+TIMER", "TPP1_1.0+SENSOR"]
)
def test_incompatible_features(spec):
    with pytest.raises(IncompatibleFeaturesError):
        parse_mbc(spec)


def test_errors_share_a_base_class():
    with pytest.raises(MbcError):
        parse_mbc("MBC2+RAM")
    with pytest.raises(ValueError):
        parse_mbc("nonsense")


def test_mbc3_timer_implies_battery():
    parsed = parse_mbc("MBC3+TIMER")
    assert parsed.code == MbcType.MBC3_TIMER_BATTERY
    assert any("implies BATTERY" in w for w in parsed.warnings)


def test_mbc3_timer_battery_has_no_warning():
    parsed = parse_mbc("MBC3+TIMER+BATTERY")
    assert parsed.code == MbcType.MBC3_TIMER_BATTERY
    assert parsed.warnings == ()


def test_tpp1_features_and_revision():
    parsed = parse_mbc("TPP1_1.0+BATTERY+TIMER")
    assert parsed.code == MbcType.TPP1_BATTERY_TIMER
    assert parsed.tpp1_revision == (1, 0)
    assert is_tpp1(parsed.code)


def test_tpp1_multirumble_sets_rumble():
    assert parse_mbc("TPP1_1.0+MULTIRUMBLE").code == MbcType.TPP1_MULTIRUMBLE_RUMBLE


def test_tpp1_ram_warns():
    parsed = parse_mbc("TPP1_1.0+RAM")
    assert parsed.code == MbcType.TPP1
    assert any("RAM implicitly" in w for w in parsed.warnings)


@pytest.mark.parametrize("spec", ["TPP1_2.0", "TPP1", "TPP1_1", "TPP1_1.256"])
def test_tpp1_bad_revisions(spec):
    with pytest.raises(UnknownMbcError):
        parse_mbc(spec)


def test_names_round_trip_through_parser():
    for mbc in MbcType:
        if is_tpp1(mbc):
            continue
        assert parse_mbc(mbc_name(mbc)).code == mbc


def test_tpp1_name_collapses_rumble():
    assert mbc_name(MbcType.TPP1_MULTIRUMBLE_RUMBLE) == "TPP1+MULTIRUMBLE"
    assert mbc_name(MbcType.POCKET_CAMERA) == "POCKET CAMERA"


def test_mbc_name_unknown_code():
    with pytest.raises(ValueError):
        mbc_name(0x04)


def test_has_ram():
    assert has_ram(MbcType.MBC1_RAM) is True
    assert has_ram(MbcType.POCKET_CAMERA) is True
    assert has_ram(MbcType.MBC2) is False
    assert has_ram(MbcType.MBC5_RUMBLE) is False


def test_has_ram_rejects_tpp1():
    with pytest.raises(ValueError):
        has_ram(MbcType.TPP1_BATTERY)


def test_is_tpp1():
    assert is_tpp1(MbcType.TPP1_TIMER)
    assert not is_tpp1(MbcType.HUC1_RAM_BATTERY)


def test_accepted_names_lists_every_nontpp1_name_group():
    text = accepted_mbc_names()
    assert "MBC5+RUMBLE+RAM+BATTERY ($1E)" in text
    assert "HUC1+RAM+BATTERY ($FF)" in text
    assert text.endswith("\n")