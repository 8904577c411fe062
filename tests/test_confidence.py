import pytest

from app.vision.confidence import score
from app.vision.types import ExtractionResult, ValidationCheck


def _result(step_id: str, confidence: float, success: bool = True) -> ExtractionResult:
    return ExtractionResult(step_id=step_id, confidence=confidence, success=success)


def _check(passed: bool, severity: str = "warning") -> ValidationCheck:
    return ValidationCheck(name="check", passed=passed, message="", severity=severity)


def test_average_of_successful_results():
    report = score([_result("receipt", 0.9), _result("odometer", 0.8), _result("gauge", 0.0, success=False)], [])
    assert report.overall == pytest.approx(0.85)
    assert report.per_step == {"receipt": 90, "odometer": 80, "gauge": 0, "additive": 0}


def test_each_failed_check_costs_ten_points():
    results = [_result("receipt", 0.9)]
    assert score(results, [_check(False)]).overall == pytest.approx(0.8)
    assert score(results, [_check(False), _check(False, "error")]).overall == pytest.approx(0.7)
    assert score(results, [_check(True), _check(False, "info")]).overall == pytest.approx(0.9)


def test_overall_never_negative():
    report = score([_result("receipt", 0.2)], [_check(False)] * 5)
    assert report.overall == 0.0


def test_no_successes_scores_zero():
    report = score([_result("receipt", 0.0, success=False)], [_check(False)])
    assert report.overall == 0.0
    assert report.per_step["receipt"] == 0


def test_repeated_step_is_averaged():
    report = score([_result("additive", 0.9), _result("additive", 0.7)], [])
    assert report.per_step["additive"] == 80
