from structupgrade.errors.types import StepRecord, StepStatus


def test_stepstatus_values_are_stable() -> None:
    assert StepStatus.CHANGED.value == "changed"
    assert StepStatus.UNCHANGED.value == "unchanged"
    assert StepStatus.FAILED.value == "failed"
    assert StepStatus.SKIPPED.value == "skipped"


def test_step_record_from_raised_error_captures_traceback() -> None:
    try:
        raise ValueError("nope")
    except ValueError as exc:
        rec = StepRecord.from_error(step_name="users", exc=exc, existed_rev=3, context={"db": "main"})

    assert rec.step_name == "users"
    assert rec.status == StepStatus.FAILED
    assert rec.message == "nope"
    assert rec.existed_rev == 3
    assert rec.exc_type == "ValueError"
    assert rec.context == {"db": "main"}
    assert rec.traceback is not None
    assert "nope" in rec.traceback


def test_step_record_from_returned_error_has_no_traceback() -> None:
    rec = StepRecord.from_error(step_name="users", exc=RuntimeError("returned"))

    assert rec.exc_type == "RuntimeError"
    assert rec.traceback is None
    assert rec.existed_rev is None
