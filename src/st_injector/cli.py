import logging
import sys

import click

from . import config, rom_diff, rom_utils
from .errors import StInjectorError
from .hook_table import describe_hook, load_hooks, resolve_hooks
from .savestate import patch_savestate

PROG = "st-injector"


class _EchoHandler(logging.Handler):
    """Send log records through click so they land on the current stderr."""

    def emit(self, record):
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def _load_resolved_hooks(hooks_path: str, map_path: str):
    with open(hooks_path, "r", encoding="utf-8", errors="replace") as f:
        hooks = load_hooks(f)
    if hooks:
        with open(map_path, "r", encoding="utf-8", errors="replace") as f:
            resolve_hooks(hooks, f)
    return hooks


def _paths(ctx: click.Context, **overrides) -> config.PatchPaths:
    return config.resolve_paths(ctx.obj.get("config"), **overrides)


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), envvar="ST_INJECTOR_CONFIG",
              default=None, help="YAML file with default paths")
@click.option("-v", "--verbose", is_flag=True, help="Log debug details")
@click.pass_context
def main(ctx, config_path, verbose):
    """Inject custom segment code and function hooks into N64 savestates."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        handlers=[_EchoHandler()],
        force=True,
    )
    ctx.ensure_object(dict)
    if config_path:
        try:
            ctx.obj["config"] = config.load_config(config_path)
        except StInjectorError as e:
            raise click.ClickException(str(e))


@main.command()
@click.option("-b", "--baserom", type=click.Path(dir_okay=False), default=None, help="Unmodified ROM")
@click.option("-r", "--rom", type=click.Path(dir_okay=False), default=None, help="Newly built ROM")
@click.option("-i", "--in", "input_path", type=click.Path(dir_okay=False), default=None, help="Input savestate")
@click.option("-o", "--out", "output_path", type=click.Path(dir_okay=False), default=None, help="Output savestate")
@click.option("-x", "--hooks", "hooks_path", type=click.Path(dir_okay=False), default=None, help="Hook file")
@click.option("-m", "--map", "map_path", type=click.Path(dir_okay=False), default=None, help="Linker map file")
@click.pass_context
def inject(ctx, baserom, rom, input_path, output_path, hooks_path, map_path):
    """Inject the new ROM's custom segment and hooks into a savestate.

    The two ROMs must only differ in the custom segment appended after the
    base ROM's data. The input savestate is never modified.

    Each non-empty line of the hook file names a target function, the
    custom-segment function copied over it, and the maximum number of
    bytes that may be written at the target, all space-separated.
    """
    try:
        paths = _paths(ctx, baserom=baserom, rom=rom, input=input_path, output=output_path,
                       hooks=hooks_path, map=map_path)
    except StInjectorError as e:
        raise click.ClickException(str(e))

    click.echo("Patching ST.")
    click.echo(f"Base ROM: {paths.baserom}")
    click.echo(f"ROM: {paths.rom}")
    click.echo(f"Input ST: {paths.input}")
    click.echo(f"Output ST: {paths.output}")
    click.echo(f"Hook file: {paths.hooks}")
    click.echo(f"Map file: {paths.map}")

    try:
        config.require_files(paths.baserom, paths.rom, paths.hooks, paths.map, paths.input)
        baseline = rom_utils.read_rom_bytes(paths.baserom)
        modified = rom_utils.read_rom_bytes(paths.rom)
        rom_entry = rom_utils.read_entry_point(modified)

        hooks = _load_resolved_hooks(paths.hooks, paths.map)
        if hooks:
            click.echo("Loaded hooks:")
            for hook in hooks:
                click.echo(f"\t{describe_hook(hook)}")

        diff = rom_diff.verify_rom_diff(baseline, modified)
        click.echo(f"Injecting from offset 0x{diff.baseline_end:x} to offset 0x{diff.modified_end:x}")

        report = patch_savestate(paths.input, paths.output, hooks, modified, rom_entry,
                                 diff.baseline_end, diff.modified_end)
    except (StInjectorError, OSError) as e:
        click.echo(f"{PROG}: {e}", err=True)
        click.echo("Savestate injection failed.", err=True)
        ctx.exit(1)

    for index in report.hooks_started:
        hook = hooks[index - 1]
        click.echo(
            f"Began injecting hook #{index} from 0x{hook.replacement_address:08x} to 0x{hook.target_address:08x}"
        )
    click.echo(f"Custom segment: {report.aux_words_written * 4} bytes, {report.words_substituted} hook words")
    click.echo("Savestate injection succeeded!")


@main.command()
@click.option("--rom", type=click.Path(dir_okay=False), default=None, help="Path to ROM (default: new ROM)")
@click.pass_context
def verify(ctx, rom):
    """Print ROM size, CRC and header."""
    try:
        path = _paths(ctx, rom=rom).rom
        info = rom_utils.inspect_rom(path)
    except StInjectorError as e:
        raise click.ClickException(str(e))
    click.echo(f"Size: {info['size']} bytes")
    click.echo(f"CRC32: {info['crc32']:08X}")
    click.echo(f"Padded end: 0x{info['padded_end']:X}")
    if info.get("warning"):
        click.echo(f"Warning: {info['warning']}")
    hdr = info.get("header")
    if hdr:
        click.echo("Header:")
        click.echo(f"  Byte order: {hdr['byte_order']}")
        click.echo(f"  Title: {hdr['title']}")
        click.echo(f"  Game code: {hdr['game_code']} (version {hdr['version']})")
        click.echo(f"  Entry point: 0x{hdr['entry_point']:08X}")
        click.echo(f"  CRC1/CRC2: 0x{hdr['crc1']:08X} 0x{hdr['crc2']:08X}")
    if info.get("header_warning"):
        click.echo(f"Warning: {info['header_warning']}")
    if info.get("header_error"):
        click.echo(f"Header error: {info['header_error']}")


@main.command("check-roms")
@click.option("-b", "--baserom", type=click.Path(dir_okay=False), default=None)
@click.option("-r", "--rom", type=click.Path(dir_okay=False), default=None)
@click.pass_context
def check_roms(ctx, baserom, rom):
    """Check that the new ROM only differs from the base ROM in the custom segment."""
    try:
        paths = _paths(ctx, baserom=baserom, rom=rom)
        baseline = rom_utils.read_rom_bytes(paths.baserom)
        modified = rom_utils.read_rom_bytes(paths.rom)
    except StInjectorError as e:
        raise click.ClickException(str(e))

    runs = rom_diff.summarize_differences(baseline, modified)
    if runs:
        click.echo(f"{len(runs)} unexpected difference(s):", err=True)
        for offset, length in runs[:20]:
            click.echo(f"  0x{offset:06X}: {length} bytes", err=True)
        raise click.ClickException("ROMs differ outside the custom segment")

    result = rom_diff.verify_rom_diff(baseline, modified)
    click.echo(
        f"Custom segment: 0x{result.baseline_end:X}-0x{result.modified_end:X} ({result.injected_size} bytes)"
    )


@main.command("hooks")
@click.option("-x", "--hooks", "hooks_path", type=click.Path(dir_okay=False), default=None)
@click.option("-m", "--map", "map_path", type=click.Path(dir_okay=False), default=None)
@click.pass_context
def list_hooks(ctx, hooks_path, map_path):
    """Resolve the hook file against a map and list the hooks."""
    try:
        paths = _paths(ctx, hooks=hooks_path, map=map_path)
        config.require_files(paths.hooks, paths.map)
        hooks = _load_resolved_hooks(paths.hooks, paths.map)
    except StInjectorError as e:
        raise click.ClickException(str(e))
    click.echo(f"{len(hooks)} hook(s):")
    for i, hook in enumerate(hooks, start=1):
        click.echo(f"  #{i} {describe_hook(hook)}")


def run():
    """Console entry point; every failure, usage errors included, exits with status 1."""
    try:
        rv = main.main(prog_name=PROG, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(1)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)
    sys.exit(rv if isinstance(rv, int) else 0)


if __name__ == "__main__":
    run()
