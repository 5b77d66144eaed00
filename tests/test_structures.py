"""Tests for the shared data structures."""

import pytest

from babelblocks.errors import MismatchError
from babelblocks.structures import (
    DocumentState,
    Locator,
    SegmentKind,
    TextSegment,
    TranslationOutcome,
    TranslationResult,
    TranslationUnit,
    UnitStatus,
)


def make_unit(text="Hello"):
    return TranslationUnit(
        segment=TextSegment(text=text, locator=Locator(path=(0,), kind=SegmentKind.TEXT_NODE, index=1))
    )


class TestLocator:
    def test_text_node_form(self):
        assert str(Locator(path=(4, 0), kind=SegmentKind.TEXT_NODE, index=3)) == "4.0:text#3"

    def test_attribute_form(self):
        locator = Locator(path=(6,), kind=SegmentKind.ATTRIBUTE, index=0, attribute="text")
        assert str(locator) == "6:attr:text"

    def test_segment_reports_its_origin(self):
        assert make_unit().segment.origin_kind is SegmentKind.TEXT_NODE


class TestTranslationUnit:
    def test_starts_pending(self):
        assert make_unit().status is UnitStatus.PENDING

    def test_succeed(self):
        unit = make_unit()
        unit.succeed("Hola")
        assert unit.status is UnitStatus.SUCCEEDED
        assert unit.translated_text == "Hola"

    def test_fail(self):
        unit = make_unit()
        unit.fail("timeout")
        assert unit.status is UnitStatus.FAILED
        assert unit.translated_text is None

    def test_terminal_states_are_final(self):
        unit = make_unit()
        unit.fail("timeout")
        with pytest.raises(ValueError, match="already failed"):
            unit.succeed("Hola")


class TestOutcomeAndResult:
    def test_outcome_ok(self):
        assert TranslationOutcome(translated_text="").ok
        assert not TranslationOutcome().ok
        assert not TranslationOutcome(translated_text="x", error="boom").ok

    def test_result_success_follows_state(self):
        result = TranslationResult(units_attempted=3, units_failed=1)
        assert not result.success
        result.state = DocumentState.COMPLETED
        assert result.success
        assert result.units_succeeded == 2

    def test_mismatch_error_message(self):
        error = MismatchError(3, 2)
        assert error.expected == 3
        assert error.received == 2
        assert "Expected 3 translated units but received 2" in str(error)
