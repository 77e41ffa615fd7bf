"""Opening input savestates and writing output savestates transactionally."""
import gzip
import logging
import os
import stat
import tempfile
import zlib
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator

from .errors import ConfigError, SavestateIOError
from .hook_table import HookRecord
from .injector import InjectionReport, inject_savestate

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"

STREAM_ERRORS = (OSError, EOFError, zlib.error)


def open_savestate(path: str | Path) -> BinaryIO:
    """Open a savestate for reading, decompressing it when it is gzip data.

    Uncompressed savestates are read as-is.
    """
    path = Path(path)
    try:
        with open(path, "rb") as f:
            magic = f.read(2)
        if magic == GZIP_MAGIC:
            return gzip.open(path, "rb")
        return open(path, "rb")
    except FileNotFoundError:
        raise ConfigError(f"file {path} could not be opened")
    except OSError as e:
        raise SavestateIOError(f"error opening savestate {path}: {e}")


def _output_mode(path: Path) -> int:
    # mkstemp creates 0600 files; keep an existing output's mode, otherwise follow the umask
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


@contextmanager
def staged_savestate(path: str | Path) -> Iterator[BinaryIO]:
    """Yield a gzip writer whose data replaces `path` only if the block succeeds."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as raw, gzip.GzipFile(filename="", mode="wb", fileobj=raw) as out:
            yield out
        os.chmod(tmp_name, _output_mode(path))
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def patch_savestate(
    in_path: str | Path,
    out_path: str | Path,
    hooks: list[HookRecord],
    modified_rom: bytes,
    rom_entry: int,
    inject_start: int,
    inject_end: int,
) -> InjectionReport:
    """Run the injection from the savestate at `in_path` into `out_path`."""
    try:
        with ExitStack() as stack:
            src = stack.enter_context(open_savestate(in_path))
            dst = stack.enter_context(staged_savestate(out_path))
            report = inject_savestate(src, dst, hooks, modified_rom, rom_entry, inject_start, inject_end)
    except STREAM_ERRORS as e:
        raise SavestateIOError(f"error processing savestate {in_path} -> {out_path}: {e}") from e
    logger.debug("Wrote %s", out_path)
    return report
