"""Checks that a rebuilt ROM only differs from the base ROM in the custom segment.

Everything the custom segment adds lands past the base ROM's last non-padding
byte, so any other difference (the header aside, which holds checksums) means
the rebuild changed stock code and the savestate cannot be patched safely.
"""
import logging
from dataclasses import dataclass

from .address_utils import ROM_HEADER_SIZE
from .errors import UnexpectedRomDifference
from .rom_utils import ROM_PADDING_BYTE, padded_end

logger = logging.getLogger(__name__)


@dataclass
class RomDiffResult:
    baseline_end: int
    modified_end: int

    @property
    def injected_size(self) -> int:
        return max(self.modified_end - self.baseline_end, 0)


def _byte_at(data: bytes, offset: int) -> int:
    # Reading past the end of a short image yields padding
    return data[offset] if offset < len(data) else ROM_PADDING_BYTE


def find_first_difference(baseline: bytes, modified: bytes, start: int, end: int) -> int | None:
    if end <= start:
        return None
    window = modified[start:end]
    if len(window) < end - start:
        window += bytes([ROM_PADDING_BYTE]) * (end - start - len(window))
    if baseline[start:end] == window:
        return None
    for offset in range(start, end):
        if baseline[offset] != window[offset - start]:
            return offset
    return None


def verify_rom_diff(baseline: bytes, modified: bytes) -> RomDiffResult:
    result = RomDiffResult(baseline_end=padded_end(baseline), modified_end=padded_end(modified))
    logger.debug(
        "Base ROM ends at 0x%x, new ROM ends at 0x%x", result.baseline_end, result.modified_end
    )
    offset = find_first_difference(baseline, modified, ROM_HEADER_SIZE, result.baseline_end)
    if offset is not None:
        raise UnexpectedRomDifference(offset, baseline[offset], _byte_at(modified, offset))
    return result


def summarize_differences(baseline: bytes, modified: bytes) -> list[tuple[int, int]]:
    """Return (offset, length) runs of differing bytes outside the expected area."""
    end = padded_end(baseline)
    runs = []
    if find_first_difference(baseline, modified, ROM_HEADER_SIZE, end) is None:
        return runs
    i = ROM_HEADER_SIZE
    while i < end:
        if baseline[i] != _byte_at(modified, i):
            start = i
            while i < end and baseline[i] != _byte_at(modified, i):
                i += 1
            runs.append((start, i - start))
        else:
            i += 1
    return runs
