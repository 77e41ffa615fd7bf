"""Savestate rewriting: hook substitution, custom segment append and tail copy."""
import logging
from dataclasses import dataclass, field
from typing import BinaryIO

from .address_utils import (
    AUX_SEGMENT_BASE,
    WORD_SIZE,
    swap_word,
    to_mem_address,
    to_rom_offset,
    to_savestate_offset,
)
from .errors import SavestateIOError
from .hook_table import HookRecord

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 0x10000


@dataclass
class InjectionReport:
    inject_start: int
    inject_end: int
    hooks_started: list[int] = field(default_factory=list)
    hooks_skipped: list[int] = field(default_factory=list)
    words_substituted: int = 0
    aux_words_written: int = 0
    tail_bytes: int = 0


def _read_replacement_word(modified_rom: bytes, offset: int) -> bytes:
    word = modified_rom[offset:offset + WORD_SIZE]
    if len(word) != WORD_SIZE:
        raise SavestateIOError(
            f"error reading from ROM file: replacement word at 0x{offset:x} is past the end of the image"
        )
    return word


def _apply_hooks(staged: bytearray, hooks: list[HookRecord], modified_rom: bytes,
                 rom_entry: int, report: InjectionReport) -> None:
    """Substitute replacement words for every word of `staged` inside a hook range.

    `staged` holds the savestate from offset 0 up to the custom segment, so
    position p covers memory address to_mem_address(p) == region_base + p.
    """
    region_base = to_mem_address(0)
    for index, hook in enumerate(hooks, start=1):
        start = max(hook.target_address, region_base)
        # Only word positions are visited, so begin at the first word inside the range
        start += -(start - region_base) % WORD_SIZE
        end = min(hook.target_end, AUX_SEGMENT_BASE)
        rom_base = to_rom_offset(hook.replacement_address, rom_entry)

        for mem_addr in range(start, end, WORD_SIZE):
            pos = mem_addr - region_base
            word = _read_replacement_word(modified_rom, rom_base + (mem_addr - hook.target_address))
            staged[pos:pos + WORD_SIZE] = swap_word(word)
            report.words_substituted += 1
            if not hook.injection_started:
                hook.injection_started = True
                report.hooks_started.append(index)
                logger.debug(
                    "Began injecting hook #%d from 0x%08x to 0x%08x",
                    index, hook.replacement_address, hook.target_address,
                )

        if not hook.injection_started:
            report.hooks_skipped.append(index)
            logger.warning(
                "Hook #%d (%s at 0x%08x) lies outside the savestate RDRAM image and was not injected",
                index, hook.target_name, hook.target_address,
            )


def inject_savestate(
    src: BinaryIO,
    dst: BinaryIO,
    hooks: list[HookRecord],
    modified_rom: bytes,
    rom_entry: int,
    inject_start: int,
    inject_end: int,
) -> InjectionReport:
    """Copy `src` to `dst`, patching hooks and appending the custom segment.

    Args:
        src: decompressed input savestate, positioned at its start
        dst: output stream, positioned at its start
        hooks: resolved hook table
        modified_rom: newly built ROM image
        rom_entry: entry point read from the new ROM header
        inject_start: base ROM padded end, where the custom segment begins in the new ROM
        inject_end: new ROM padded end

    Returns an InjectionReport describing what was written.
    """
    report = InjectionReport(inject_start=inject_start, inject_end=inject_end)

    # Phase 1: everything below the custom segment, with hook words replaced
    region_size = to_savestate_offset(AUX_SEGMENT_BASE)
    staged = bytearray(src.read(region_size))
    if len(staged) < region_size:
        raise SavestateIOError(
            f"input savestate ended at 0x{len(staged):x}, before the custom segment at 0x{region_size:x}"
        )
    _apply_hooks(staged, hooks, modified_rom, rom_entry, report)
    dst.write(staged)

    # Phase 2: the custom segment, taken from the new ROM in place of the input's bytes
    for offset in range(inject_start, inject_end, WORD_SIZE):
        word = modified_rom[offset:offset + WORD_SIZE]
        if len(word) < WORD_SIZE:
            break
        dst.write(swap_word(word))
        src.read(WORD_SIZE)
        report.aux_words_written += 1
    logger.debug("Wrote %d custom segment words", report.aux_words_written)

    # Phase 3: trailing savestate data, unchanged
    while True:
        chunk = src.read(COPY_CHUNK_SIZE)
        if not chunk:
            break
        dst.write(chunk)
        report.tail_bytes += len(chunk)

    return report
