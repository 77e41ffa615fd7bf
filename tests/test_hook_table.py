"""
Unit tests for hook file parsing and symbol map resolution.
"""
import io

import pytest

from st_injector.errors import (
    HookUnresolved,
    InvalidHookSpec,
    LineTooLong,
    OverlappingHooks,
    ReplacementNotInAuxiliarySegment,
    TargetInAuxiliarySegment,
    TooManyHooks,
    UnresolvedSymbol,
)
from st_injector.hook_table import (
    MAX_HOOKS,
    HookRecord,
    describe_hook,
    load_hooks,
    parse_c_integer,
    resolve_hooks,
)


def _hooks(text: str) -> list[HookRecord]:
    return load_hooks(io.StringIO(text))


def _resolve(hook_text: str, map_text: str) -> list[HookRecord]:
    return resolve_hooks(_hooks(hook_text), io.StringIO(map_text))


# ── Parsing ───────────────────────────────────────────────────────────────────

class TestLoadHooks:

    def test_parses_fields_in_order(self):
        hooks = _hooks("render_hud custom_render_hud 0x40\nupdate_mario custom_update 16\n")
        assert [(h.target_name, h.replacement_name, h.max_patch_size) for h in hooks] == [
            ("render_hud", "custom_render_hud", 0x40),
            ("update_mario", "custom_update", 16),
        ]
        assert hooks[1].line_number == 2
        assert not hooks[0].resolved
        assert not hooks[0].injection_started

    def test_blank_and_comment_lines_are_skipped(self):
        hooks = _hooks("\n   \n# profiler hook\nfoo bar 8\n\n")
        assert len(hooks) == 1

    def test_empty_file(self):
        assert _hooks("") == []

    @pytest.mark.parametrize("size", ["0", "0x0", "6", "0x11", "-4", "abc", "16abc"])
    def test_invalid_sizes_rejected(self, size):
        with pytest.raises(InvalidHookSpec):
            _hooks(f"foo bar {size}\n")

    @pytest.mark.parametrize("size, expected", [("4", 4), ("0x10", 16), ("0X100", 256), ("010", 8), ("4096", 4096)])
    def test_valid_sizes_accepted(self, size, expected):
        assert _hooks(f"foo bar {size}\n")[0].max_patch_size == expected

    @pytest.mark.parametrize("line", ["foo bar\n", "foo\n", "foo bar 8 extra\n"])
    def test_wrong_field_count_rejected(self, line):
        with pytest.raises(InvalidHookSpec):
            _hooks(line)

    def test_line_too_long(self):
        long_name = "f" * 250
        with pytest.raises(LineTooLong):
            _hooks(f"{long_name} bar 8\n")

    def test_line_at_limit_accepted(self):
        name = "f" * (255 - len(" bar 8"))
        assert len(_hooks(f"{name} bar 8\n")) == 1

    def test_too_many_hooks(self):
        text = "".join(f"f{i} g{i} 4\n" for i in range(MAX_HOOKS + 1))
        with pytest.raises(TooManyHooks):
            _hooks(text)

    def test_max_hooks_accepted(self):
        text = "".join(f"f{i} g{i} 4\n" for i in range(MAX_HOOKS))
        assert len(_hooks(text)) == MAX_HOOKS


# ── Resolution ────────────────────────────────────────────────────────────────

class TestResolveHooks:

    MAP = (
        "                0x0000000080246100                funcA\n"
        "                0x0000000080246200                funcA_helper\n"
        "                0x0000000080400000                funcB\n"
        "                0x0000000080400100                funcC\n"
    )

    def test_resolves_addresses(self):
        hooks = _resolve("funcA funcB 0x10\n", self.MAP)
        assert hooks[0].target_address == 0x80246100
        assert hooks[0].replacement_address == 0x80400000
        assert hooks[0].resolved

    def test_partial_names_do_not_match(self):
        hooks = _resolve("funcA_helper funcC 8\nfuncA funcB 8\n", self.MAP)
        assert hooks[0].target_address == 0x80246200
        assert hooks[1].target_address == 0x80246100

    def test_prefix_of_longer_name_does_not_match(self):
        with pytest.raises(HookUnresolved, match="func "):
            _resolve("func funcB 8\n", self.MAP)

    def test_last_line_without_newline(self):
        hooks = _resolve("funcA funcB 8\n", self.MAP.rstrip("\n"))
        assert hooks[0].replacement_address == 0x80400000

    def test_first_definition_wins(self):
        map_text = self.MAP + "                0x0000000080300000                funcA\n"
        assert _resolve("funcA funcB 8\n", map_text)[0].target_address == 0x80246100

    def test_shared_replacement_resolves_for_every_hook(self):
        hooks = _resolve("funcA funcB 8\nfuncA_helper funcB 8\n", self.MAP)
        assert [h.replacement_address for h in hooks] == [0x80400000, 0x80400000]

    def test_target_in_aux_segment_rejected(self):
        with pytest.raises(TargetInAuxiliarySegment, match="funcC"):
            _resolve("funcC funcB 8\n", self.MAP)

    def test_replacement_outside_aux_segment_rejected(self):
        with pytest.raises(ReplacementNotInAuxiliarySegment, match="funcA_helper"):
            _resolve("funcA funcA_helper 8\n", self.MAP)

    def test_zero_address_rejected(self):
        map_text = "                0x0000000000000000                funcA\n" + self.MAP
        with pytest.raises(UnresolvedSymbol, match="funcA"):
            _resolve("funcA funcB 8\n", map_text)

    def test_line_without_leading_address_rejected(self):
        with pytest.raises(UnresolvedSymbol):
            _resolve("funcA funcB 8\n", "see funcA\n" + self.MAP)

    def test_missing_target_named(self):
        with pytest.raises(HookUnresolved, match="target function missing_fn"):
            _resolve("missing_fn funcB 8\n", self.MAP)

    def test_missing_replacement_named(self):
        with pytest.raises(HookUnresolved, match="source function custom_missing"):
            _resolve("funcA custom_missing 8\n", self.MAP)

    def test_overlapping_targets_rejected(self):
        with pytest.raises(OverlappingHooks):
            _resolve("funcA funcB 0x200\nfuncA_helper funcC 8\n", self.MAP)

    def test_adjacent_targets_accepted(self):
        hooks = _resolve("funcA funcB 0x100\nfuncA_helper funcC 8\n", self.MAP)
        assert all(h.resolved for h in hooks)

    def test_no_hooks_reads_nothing(self):
        stream = io.StringIO(self.MAP)
        assert resolve_hooks([], stream) == []
        assert stream.tell() == 0

    def test_long_map_lines_ignored(self):
        long_line = "                0x0000000080300000 " + " " * 250 + "funcA\n"
        hooks = _resolve("funcA funcB 8\n", long_line + self.MAP)
        assert hooks[0].target_address == 0x80246100


class TestHelpers:

    @pytest.mark.parametrize("text, expected", [
        ("0x80246000 main", 0x80246000),
        ("   0x0000000080246000   funcA", 0x80246000),
        ("42 foo", 42),
        ("017", 15),
        ("main 0x80246000", None),
        ("", None),
    ])
    def test_parse_c_integer(self, text, expected):
        assert parse_c_integer(text) == expected

    def test_describe_hook(self):
        hook = HookRecord("funcA", "funcB", 0x10, target_address=0x80246100, replacement_address=0x80400000)
        assert describe_hook(hook) == "funcA (0x80246100) <-- funcB (0x80400000), max 0x10 bytes"
