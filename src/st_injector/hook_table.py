"""Hook file parsing and symbol map resolution.

Hook file format, one hook per non-empty line:

    <target function> <replacement function> <max size>

The target is a stock function to overwrite, the replacement a function in
the custom segment whose code is copied over it, and the max size the
number of bytes (non-zero, divisible by 4) that may be written at the target.
"""
import logging
import re
from dataclasses import dataclass
from typing import Iterable, TextIO

from .address_utils import AUX_SEGMENT_BASE, WORD_SIZE, in_aux_segment
from .errors import (
    HookUnresolved,
    InvalidHookSpec,
    LineTooLong,
    OverlappingHooks,
    ReplacementNotInAuxiliarySegment,
    TargetInAuxiliarySegment,
    TooManyHooks,
    UnresolvedSymbol,
)

logger = logging.getLogger(__name__)

MAX_HOOKS = 1024
MAX_LINE_LENGTH = 255

# strtoul(..., 0): optional leading whitespace, then hex, octal or decimal
_LEADING_INT = re.compile(r"\s*(0[xX][0-9A-Fa-f]+|0[0-7]*|[1-9][0-9]*)")


@dataclass
class HookRecord:
    target_name: str
    replacement_name: str
    max_patch_size: int
    target_address: int = 0
    replacement_address: int = 0
    injection_started: bool = False
    line_number: int = 0

    @property
    def resolved(self) -> bool:
        return self.target_address != 0 and self.replacement_address != 0

    @property
    def target_end(self) -> int:
        return self.target_address + self.max_patch_size


def parse_c_integer(text: str) -> int | None:
    """Parse the leading integer of `text` like strtoul with base 0.

    Returns None when the text does not start with a number.
    """
    m = _LEADING_INT.match(text)
    if not m:
        return None
    token = m.group(1)
    if token[:2] in ("0x", "0X"):
        return int(token, 16)
    if len(token) > 1 and token.startswith("0"):
        return int(token, 8)
    return int(token)


def _parse_size(field: str) -> int | None:
    # The whole field must be a number; "16abc" is rejected rather than read as 16
    m = _LEADING_INT.fullmatch(field)
    if not m:
        return None
    return parse_c_integer(field)


def load_hooks(stream: TextIO) -> list[HookRecord]:
    """Build the hook table from a hook file stream."""
    hooks: list[HookRecord] = []
    for line_number, raw in enumerate(stream, start=1):
        line = raw.rstrip("\r\n")
        if len(line) > MAX_LINE_LENGTH:
            raise LineTooLong(
                f"line {line_number} of the hook file is longer than {MAX_LINE_LENGTH} characters"
            )
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if len(hooks) == MAX_HOOKS:
            raise TooManyHooks(f"hook file has more than the maximum {MAX_HOOKS} hooks")

        fields = stripped.split()
        if len(fields) != 3:
            raise InvalidHookSpec(f"invalid line {line_number} in hook file:\n\t{line}")
        target, replacement, size_field = fields

        size = _parse_size(size_field)
        if not size or size % WORD_SIZE != 0:
            raise InvalidHookSpec(
                f"invalid target size in hook file '{size_field}'. "
                "The size must be a valid non-zero integer divisible by 4."
            )
        hooks.append(HookRecord(target, replacement, size, line_number=line_number))

    logger.debug("Parsed %d hooks", len(hooks))
    return hooks


def _map_lines(stream: TextIO) -> Iterable[str]:
    for line in stream:
        # Names are matched with their trailing newline, so the last line needs one too
        if not line.endswith("\n"):
            line += "\n"
        if len(line) <= 1 or len(line) >= MAX_LINE_LENGTH:
            continue
        yield line


def _address_from_line(line: str, name: str, role: str) -> int:
    addr = parse_c_integer(line)
    if not addr:
        raise UnresolvedSymbol(
            f"invalid address for hook {role} function {name} in map file:\n\t{line.rstrip()}"
        )
    return addr


def resolve_hooks(hooks: list[HookRecord], stream: TextIO) -> list[HookRecord]:
    """Fill in target and replacement addresses from a linker map.

    A line matches a symbol when it contains the name immediately followed by
    the end of the line, which keeps `foo` from matching `foo_bar`. Each
    symbol takes the address from the first line that names it.
    """
    if not hooks:
        return hooks

    for line in _map_lines(stream):
        for hook in hooks:
            if not hook.target_address and f"{hook.target_name}\n" in line:
                addr = _address_from_line(line, hook.target_name, "target")
                if in_aux_segment(addr):
                    raise TargetInAuxiliarySegment(
                        f"hook target function {hook.target_name} (0x{addr:08x}) "
                        "must not come from custom segment"
                    )
                hook.target_address = addr
                logger.debug("Resolved target %s -> 0x%08x", hook.target_name, addr)

            if not hook.replacement_address and f"{hook.replacement_name}\n" in line:
                addr = _address_from_line(line, hook.replacement_name, "source")
                if not in_aux_segment(addr):
                    raise ReplacementNotInAuxiliarySegment(
                        f"hook source function {hook.replacement_name} (0x{addr:08x}) "
                        f"must come from custom segment (at or above 0x{AUX_SEGMENT_BASE:08x})"
                    )
                hook.replacement_address = addr
                logger.debug("Resolved source %s -> 0x%08x", hook.replacement_name, addr)

    for hook in hooks:
        if not hook.target_address:
            raise HookUnresolved(
                f"no address found for hook target function {hook.target_name} in map file"
            )
        if not hook.replacement_address:
            raise HookUnresolved(
                f"no address found for hook source function {hook.replacement_name} in map file"
            )

    check_overlaps(hooks)
    return hooks


def check_overlaps(hooks: list[HookRecord]) -> None:
    ordered = sorted(hooks, key=lambda h: h.target_address)
    for prev, cur in zip(ordered, ordered[1:]):
        if cur.target_address < prev.target_end:
            raise OverlappingHooks(
                f"hooks on {prev.target_name} (0x{prev.target_address:08x}-0x{prev.target_end:08x}) "
                f"and {cur.target_name} (0x{cur.target_address:08x}-0x{cur.target_end:08x}) overlap"
            )


def describe_hook(hook: HookRecord) -> str:
    return (
        f"{hook.target_name} (0x{hook.target_address:08x}) <-- "
        f"{hook.replacement_name} (0x{hook.replacement_address:08x}), "
        f"max 0x{hook.max_patch_size:x} bytes"
    )
