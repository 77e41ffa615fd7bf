import gzip

import pytest

from st_injector.address_utils import AUX_SEGMENT_BASE, SAVESTATE_RDRAM_OFFSET, to_rom_offset

ENTRY = 0x80246000
ROM_SIZE = 0x200000
# Where the custom segment starts in the new ROM (and the base ROM's padded end)
AUX_ROM_OFFSET = to_rom_offset(AUX_SEGMENT_BASE, ENTRY)

RDRAM_SIZE = 0x800000
SAVESTATE_TAIL = b"ST-TAIL-" * 8

FUNC_A = 0x80246100
FUNC_B = AUX_SEGMENT_BASE
CUSTOM_CODE = bytes(range(1, 0x41))


def make_rom(custom: bytes = b"", entry: int = ENTRY) -> bytes:
    rom = bytearray(b"\xff" * ROM_SIZE)
    rom[0:4] = b"\x80\x37\x12\x40"
    rom[8:12] = entry.to_bytes(4, "big")
    rom[0x20:0x34] = b"SUPER MARIO 64".ljust(20)
    rom[0x3B:0x3F] = b"NSME"
    body_len = AUX_ROM_OFFSET - 0x1000
    rom[0x1000:AUX_ROM_OFFSET] = (bytes(range(255)) * (body_len // 255 + 1))[:body_len]
    rom[AUX_ROM_OFFSET:AUX_ROM_OFFSET + len(custom)] = custom
    return bytes(rom)


def make_savestate(rdram: bytes | None = None) -> bytes:
    if rdram is None:
        rdram = bytes(RDRAM_SIZE)
    return b"\x11" * SAVESTATE_RDRAM_OFFSET + rdram + SAVESTATE_TAIL


def map_line(addr: int, name: str) -> str:
    return f"                0x{addr:016x}                {name}\n"


@pytest.fixture(scope="session")
def baserom() -> bytes:
    return make_rom()


@pytest.fixture(scope="session")
def newrom() -> bytes:
    return make_rom(CUSTOM_CODE)


@pytest.fixture
def workspace(tmp_path, baserom, newrom):
    """Input files for a full patch run with one hook funcA <-- funcB."""
    files = {
        "baserom": tmp_path / "baserom.us.z64",
        "rom": tmp_path / "sm64.us.z64",
        "input": tmp_path / "basest.us.st",
        "output": tmp_path / "out" / "sm64.us.st",
        "hooks": tmp_path / "hooks.txt",
        "map": tmp_path / "sm64.us.map",
    }
    files["baserom"].write_bytes(baserom)
    files["rom"].write_bytes(newrom)
    files["input"].write_bytes(gzip.compress(make_savestate()))
    files["hooks"].write_text("funcA funcB 0x10\n")
    files["map"].write_text(
        " .text          0x0000000080246000     0x1234 build/us/src/game/main.o\n"
        + map_line(FUNC_A, "funcA")
        + map_line(FUNC_B, "funcB")
    )
    return files
