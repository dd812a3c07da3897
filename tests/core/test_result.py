"""
Tests for the Result[P] envelope and the Timer.

Validates:
    - Generic payload and field access
    - Frozen immutability
    - Default warnings
    - Timer sections accumulate and report
"""

from dataclasses import FrozenInstanceError, dataclass

import pytest

from pyglm.core.compute.timing import Timer
from pyglm.core.result import Result


@dataclass(frozen=True)
class FakeParams:
    """Minimal payload for testing."""
    value: float


# ═══════════════════════════════════════════════════════════════════════
# Result
# ═══════════════════════════════════════════════════════════════════════


class TestResult:

    def test_basic_creation(self):
        result = Result(
            params=FakeParams(value=42.0),
            info={"ss_type": 3},
            timing={"total_seconds": 0.01},
            method="glm_univariate",
        )
        assert result.params.value == 42.0
        assert result.info["ss_type"] == 3
        assert result.timing["total_seconds"] == 0.01
        assert result.method == "glm_univariate"

    def test_warnings_default_empty(self):
        result = Result(params=FakeParams(1.0), info={}, timing=None, method="x")
        assert result.warnings == ()

    def test_warnings_kept_in_order(self):
        notes = ("Term 'A*B' is not estimable: no contrast", "2 case(s) excluded")
        result = Result(params=FakeParams(1.0), info={}, timing=None, method="x", warnings=notes)
        assert result.warnings == notes

    def test_frozen(self):
        result = Result(params=FakeParams(1.0), info={}, timing=None, method="x")
        with pytest.raises(FrozenInstanceError):
            result.method = "y"


# ═══════════════════════════════════════════════════════════════════════
# Timer
# ═══════════════════════════════════════════════════════════════════════


class TestTimer:

    def test_sections_reported(self):
        timer = Timer()
        timer.start()
        with timer.section('design'):
            pass
        with timer.section('cross_product'):
            pass
        timer.stop()
        result = timer.result()
        assert set(result) == {'total_seconds', 'design', 'cross_product'}
        assert result['total_seconds'] >= 0.0

    def test_sections_accumulate(self):
        timer = Timer()
        timer.start()
        with timer.section('term'):
            pass
        first = timer.elapsed('term')
        with timer.section('term'):
            pass
        assert timer.elapsed('term') >= first

    def test_elapsed_unknown_section_is_zero(self):
        assert Timer().elapsed('never') == 0.0

    def test_result_before_stop_raises(self):
        timer = Timer()
        timer.start()
        with pytest.raises(RuntimeError):
            timer.result()

    def test_stop_before_start_raises(self):
        with pytest.raises(RuntimeError):
            Timer().stop()
