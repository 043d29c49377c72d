# tests/unit/logging/test_unit_context.py — v2
"""Tests for logging/context.py — contextual logging variables."""

from __future__ import annotations

from rfgbuild.logging.context import (
    clear_context,
    get_context,
    new_run_context,
    set_fingerprint,
    set_step,
)


class TestLogContext:
    def test_initial_state(self):
        ctx = get_context()
        assert ctx.run_id is None
        assert ctx.fingerprint is None
        assert ctx.step is None

    def test_new_run_resets_fields(self):
        set_fingerprint("abc")
        set_step("html")
        run_id = new_run_context()
        ctx = get_context()
        assert ctx.run_id == run_id
        assert ctx.fingerprint is None
        assert ctx.step is None

    def test_fingerprint_shortened(self):
        set_fingerprint("f" * 64)
        assert get_context().fingerprint == "f" * 12

    def test_as_dict_filters_none(self):
        set_step("config")
        assert get_context().as_dict() == {"step": "config"}

    def test_clear(self):
        new_run_context()
        set_step("html")
        clear_context()
        assert get_context().as_dict() == {}
