"""Game Boy ROM header fixing, cartridge type parsing and small text helpers."""

__version__ = "0.6.1"