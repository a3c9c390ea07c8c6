"""Tests for the accumulator merge model and run state."""

from __future__ import annotations

import logging
from types import SimpleNamespace

import pytest

from processflow import RunState
from processflow.merge import apply_overlay, apply_result

logger = logging.getLogger("processflow.tests")


@pytest.mark.unit
class TestRunState:
    def test_begin_copies_starting_context(self):
        starting = {"user": "ada"}
        state = RunState.begin("Checkout", starting)

        assert state.context == {"user": "ada", "process_name": "Checkout", "errors": ()}
        assert state.context is not starting
        assert "process_name" not in starting
        assert state.data == {"cookies": {}}

    def test_context_sees_snapshot_of_failures(self):
        state = RunState.begin("p")
        state.record_failure("broken", ValueError("boom"))

        assert state.context["errors"] == tuple(state.errors)
        assert state.context["errors"] is not state.errors
        assert state.errors[0].occurred_in == "broken"
        assert state.errors[0].message == "boom"
        assert state.failed("broken")
        assert not state.failed("other")

    @pytest.mark.parametrize("value", [None, [], 3, "cookies", ("a", "b")])
    def test_ensure_cookies_resets_non_mapping(self, value, caplog):
        state = RunState.begin("p")
        state.data["cookies"] = value

        with caplog.at_level(logging.ERROR):
            assert state.ensure_cookies("bad", logger) is True

        assert state.data["cookies"] == {}
        assert "invalidly changed data.cookies" in caplog.text

    def test_ensure_cookies_resets_deleted(self):
        state = RunState.begin("p")
        del state.data["cookies"]
        assert state.ensure_cookies("deleter", logger) is True
        assert state.data["cookies"] == {}

    def test_ensure_cookies_keeps_mapping(self):
        state = RunState.begin("p")
        state.data["cookies"]["a"] = 1
        assert state.ensure_cookies("fine", logger) is False
        assert state.data["cookies"] == {"a": 1}

    def test_drop_empty_cookies(self):
        state = RunState.begin("p")
        state.drop_empty_cookies()
        assert "cookies" not in state.data

        state.data["cookies"] = {"a": 1}
        state.drop_empty_cookies()
        assert state.data["cookies"] == {"a": 1}


@pytest.mark.unit
class TestApplyResult:
    def test_none_result_keeps_in_place_changes(self):
        state = RunState.begin("p")
        state.data["mutated"] = True
        apply_result(state, None)
        assert state.data["mutated"] is True

    def test_overlay_is_shallow_last_write_wins(self):
        state = RunState.begin("p")
        data, context = state.data, state.context
        state.data["nested"] = {"a": 1, "b": 2}
        state.data["kept"] = "yes"

        apply_result(state, {"data": {"nested": {"a": 3}}, "context": {"x": 1}})

        # Nested values are replaced wholesale, not deep-merged
        assert state.data["nested"] == {"a": 3}
        assert state.data["kept"] == "yes"
        assert state.context["x"] == 1
        # The canonical dicts are never swapped out
        assert state.data is data
        assert state.context is context

    def test_returned_copy_does_not_drop_sibling_changes(self):
        state = RunState.begin("p")
        snapshot = dict(state.data)
        state.data["sibling"] = "in place"
        snapshot["mine"] = "returned"

        apply_result(state, {"data": snapshot})

        assert state.data["sibling"] == "in place"
        assert state.data["mine"] == "returned"

    def test_errors_cannot_be_replaced_by_overlay(self):
        state = RunState.begin("p")
        state.record_failure("a", RuntimeError("x"))

        apply_result(state, {"context": {"errors": []}})

        assert state.context["errors"] == tuple(state.errors)
        assert len(state.errors) == 1

    def test_attribute_result(self):
        state = RunState.begin("p")
        apply_result(state, SimpleNamespace(data={"a": 1}, context=None))
        assert state.data["a"] == 1

    @pytest.mark.parametrize("result", [3, "text", {"data": [1, 2]}, {"context": "x"}])
    def test_rejects_invalid_result(self, result):
        with pytest.raises(TypeError):
            apply_result(RunState.begin("p"), result)


@pytest.mark.unit
def test_apply_overlay_same_object_is_noop():
    target = {"a": 1}
    apply_overlay(target, target, "data")
    assert target == {"a": 1}
