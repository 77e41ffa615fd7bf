"""Exception hierarchy for st-injector.

Every failure is fatal for a run; the CLI turns these into exit status 1.
"""

__all__ = [
    "StInjectorError",
    "ConfigError",
    "HookSpecError",
    "InvalidHookSpec",
    "TooManyHooks",
    "LineTooLong",
    "OverlappingHooks",
    "ResolutionError",
    "UnresolvedSymbol",
    "TargetInAuxiliarySegment",
    "ReplacementNotInAuxiliarySegment",
    "HookUnresolved",
    "RomIntegrityError",
    "UnexpectedRomDifference",
    "SavestateIOError",
]


class StInjectorError(Exception):
    """Root exception for all st-injector errors."""


# ── Configuration ─────────────────────────────────────────────────────────────

class ConfigError(StInjectorError):
    """Raised for bad arguments, unreadable config files or missing inputs."""


# ── Hook file ─────────────────────────────────────────────────────────────────

class HookSpecError(StInjectorError):
    """Base class for malformed hook file entries."""


class InvalidHookSpec(HookSpecError):
    """Raised when a hook line has the wrong shape or an invalid size."""


class TooManyHooks(HookSpecError):
    """Raised when the hook file declares more than MAX_HOOKS hooks."""


class LineTooLong(HookSpecError):
    """Raised when a hook line exceeds MAX_LINE_LENGTH characters."""


class OverlappingHooks(HookSpecError):
    """Raised when two resolved hooks patch overlapping target ranges."""


# ── Symbol resolution ─────────────────────────────────────────────────────────

class ResolutionError(StInjectorError):
    """Base class for symbol map resolution failures."""


class UnresolvedSymbol(ResolutionError):
    """Raised when a map line naming a hook symbol carries no usable address."""


class TargetInAuxiliarySegment(ResolutionError):
    """Raised when a hook target lives in the auxiliary segment."""


class ReplacementNotInAuxiliarySegment(ResolutionError):
    """Raised when a hook replacement lives outside the auxiliary segment."""


class HookUnresolved(ResolutionError):
    """Raised when a hook symbol never appears in the symbol map."""


# ── ROM integrity ─────────────────────────────────────────────────────────────

class RomIntegrityError(StInjectorError):
    """Base class for ROM comparison failures."""


class UnexpectedRomDifference(RomIntegrityError):
    """Raised when the modified ROM differs outside the auxiliary region."""

    def __init__(self, offset: int, baseline_byte: int, modified_byte: int):
        self.offset = offset
        self.baseline_byte = baseline_byte
        self.modified_byte = modified_byte
        super().__init__(
            "found a difference between the base ROM and the new ROM outside of the "
            f"expected area (byte at 0x{offset:x} changed from {baseline_byte:02x} "
            f"to {modified_byte:02x})"
        )


# ── Streams ───────────────────────────────────────────────────────────────────

class SavestateIOError(StInjectorError):
    """Raised when reading or writing a ROM or savestate stream fails."""
