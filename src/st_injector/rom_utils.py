import zlib
from pathlib import Path

from .errors import ConfigError, SavestateIOError

ROM_PADDING_BYTE = 0xFF
ENTRY_POINT_OFFSET = 0x8
HEADER_SIZE = 0x40

# First word of the header in each of the common dump byte orders
BYTE_ORDERS = {
    b"\x80\x37\x12\x40": "big-endian (z64)",
    b"\x37\x80\x40\x12": "byte-swapped (v64)",
    b"\x40\x12\x37\x80": "little-endian (n64)",
}

# Common cartridge sizes; not authoritative
EXPECTED_SIZES = {0x400000, 0x800000, 0xC00000, 0x1000000, 0x2000000, 0x4000000}


def read_rom_bytes(path: str | Path) -> bytes:
    try:
        return Path(path).read_bytes()
    except FileNotFoundError:
        raise ConfigError(f"file {path} could not be opened")
    except OSError as e:
        raise SavestateIOError(f"error reading from ROM file {path}: {e}")


def crc32(data: bytes) -> int:
    return zlib.crc32(data) & 0xFFFFFFFF


def read_entry_point(data: bytes) -> int:
    """Return the runtime entry address stored big-endian at 0x8..0xB."""
    word = data[ENTRY_POINT_OFFSET:ENTRY_POINT_OFFSET + 4]
    if len(word) != 4:
        raise SavestateIOError("error reading the entry point from ROM file: image too small")
    return int.from_bytes(word, "big")


def padded_end(data: bytes) -> int:
    """Offset just past the last byte that is not 0xFF padding."""
    return len(data.rstrip(bytes([ROM_PADDING_BYTE])))


def parse_header(data: bytes) -> dict:
    if len(data) < HEADER_SIZE:
        raise ValueError("ROM too small to contain a valid header")
    magic = data[0:4]
    title_raw = data[0x20:0x34]
    title = bytes(b for b in title_raw if 32 <= b <= 126).decode("ascii", errors="ignore").strip()
    game_code_raw = data[0x3B:0x3F]
    game_code = game_code_raw.decode("ascii", errors="replace") if all(32 <= b <= 126 for b in game_code_raw) else ""

    header = {
        "byte_order": BYTE_ORDERS.get(magic, f"unknown ({magic.hex()})"),
        "big_endian": magic == b"\x80\x37\x12\x40",
        "clock_rate": int.from_bytes(data[0x4:0x8], "big"),
        "entry_point": read_entry_point(data),
        "release": int.from_bytes(data[0xC:0x10], "big"),
        "crc1": int.from_bytes(data[0x10:0x14], "big"),
        "crc2": int.from_bytes(data[0x14:0x18], "big"),
        "title": title or "(unknown)",
        "game_code": game_code or "(unknown)",
        "version": data[0x3F],
    }
    return header


def inspect_rom(path: str | Path) -> dict:
    data = read_rom_bytes(path)
    size = len(data)
    info = {"size": size, "crc32": crc32(data), "padded_end": padded_end(data)}
    if size not in EXPECTED_SIZES:
        info["warning"] = "Unexpected ROM size. Confirm this is a complete dump."
    try:
        header = parse_header(data)
        info["header"] = header
        if not header["big_endian"]:
            info["header_warning"] = "ROM is not big-endian (z64); savestate injection expects z64 order"
    except ValueError as e:
        info["header_error"] = str(e)
    return info
