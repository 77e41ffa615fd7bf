"""Address-space translation between ROM offsets, RDRAM and savestate offsets.

Memory addresses are KSEG0 virtual addresses (0x80000000-based). A savestate
stores the RDRAM image at SAVESTATE_RDRAM_OFFSET, and the ROM places linked
code ROM_HEADER_SIZE bytes past the entry point's file position.
"""

# Expansion Pak region reserved for custom code
AUX_SEGMENT_BASE = 0x80400000

SAVESTATE_RDRAM_OFFSET = 0x1B0
ROM_HEADER_SIZE = 0x1000

SEGMENT_MASK = 0xF0000000
KSEG0_BIT = 0x80000000
ADDR_MASK = 0xFFFFFFFF

WORD_SIZE = 4


def to_savestate_offset(mem_addr: int) -> int:
    """Strip the segment nibble and add the savestate RDRAM base."""
    return ((mem_addr & ~SEGMENT_MASK) + SAVESTATE_RDRAM_OFFSET) & ADDR_MASK


def to_mem_address(savestate_offset: int) -> int:
    """Inverse of to_savestate_offset: mark as KSEG0 and drop the RDRAM base."""
    return ((savestate_offset | KSEG0_BIT) - SAVESTATE_RDRAM_OFFSET) & ADDR_MASK


def to_rom_offset(mem_addr: int, rom_entry: int) -> int:
    """Convert a link-time memory address into a file offset in the ROM image."""
    return (mem_addr - rom_entry + ROM_HEADER_SIZE) & ~KSEG0_BIT & ADDR_MASK


def from_rom_offset(rom_offset: int, rom_entry: int) -> int:
    return (rom_offset - ROM_HEADER_SIZE + rom_entry) & ADDR_MASK


def in_aux_segment(mem_addr: int) -> bool:
    return mem_addr >= AUX_SEGMENT_BASE


def swap_word(word: bytes) -> bytes:
    """Reverse one 4-byte word.

    ROM images are big-endian while the savestate RDRAM image stores each
    word in host (little-endian) order, so every word read from a ROM goes
    through here before it is written to a savestate.
    """
    if len(word) != WORD_SIZE:
        raise ValueError(f"expected a {WORD_SIZE}-byte word, got {len(word)} bytes")
    return bytes(reversed(word))
