from pathlib import Path
import json
import logging

import pytest

from structupgrade import StructureUpgradeStatus, UpgradeAborted, UpgradeSequence
from structupgrade.errors import UpgradeRunConfig, UpgradeReporter
from structupgrade.errors.types import StepStatus


def _make_reporter(*, tmp_path: Path, mode: str, write_jsonl: bool = False) -> UpgradeReporter:
    cfg = UpgradeRunConfig(
        mode=mode,  # type: ignore[arg-type]
        log_dir=tmp_path / "logs",
        run_id="testrun",
        write_jsonl=write_jsonl,
        console_level=logging.CRITICAL,  # keep test output quiet
    )
    return UpgradeReporter.from_config(cfg)


def test_sequence_happy_path_runs_all_in_order(tmp_path: Path) -> None:
    reporter = _make_reporter(tmp_path=tmp_path, mode="run")
    seq = UpgradeSequence(reporter)
    seen: list[tuple[str, int]] = []

    def users(rev: int):
        seen.append(("users", rev))
        return True, None

    def orders():
        seen.append(("orders", 4))
        return False, None

    seq.add("users", users, 3)
    seq.add_callable("orders", orders, 4)

    status = seq.run()

    assert seen == [("users", 3), ("orders", 4)]
    assert status.changed is True
    assert status.last_error is None
    assert reporter.status("users") == StepStatus.CHANGED
    assert reporter.status("orders") == StepStatus.UNCHANGED
    assert reporter.changed_count() == 1
    assert reporter.exit_code() == 0


def test_sequence_failure_skips_remaining_steps(tmp_path: Path) -> None:
    reporter = _make_reporter(tmp_path=tmp_path, mode="run")
    seq = UpgradeSequence(reporter)
    err = ValueError("bad column")
    ran: list[str] = []

    def a(rev: int):
        ran.append("a")
        return True, None

    def b(rev: int):
        ran.append("b")
        return False, err

    def c():
        ran.append("c")
        return True, None

    seq.add("a", a, 1)
    seq.add("b", b, 1)
    seq.add_callable("c", c, 2)

    status = seq.run()

    assert ran == ["a", "b"]
    assert status.last_error is err
    assert status.changed is True
    assert reporter.status("b") == StepStatus.FAILED
    assert reporter.status("c") == StepStatus.SKIPPED
    assert "SKIP c: Skipped because upgrade 'b' failed." in reporter.render_summary()
    assert reporter.exit_code() == 1


def test_sequence_logs_tracker_error_line_to_file(tmp_path: Path) -> None:
    reporter = _make_reporter(tmp_path=tmp_path, mode="run")
    seq = UpgradeSequence(reporter)
    seq.add("schema", lambda rev: (False, RuntimeError("locked")), 9)

    seq.run()

    text = (tmp_path / "logs" / "run_testrun.log").read_text(encoding="utf-8")
    assert "ERR: cannot upgrade [schema] from [9]: locked" in text


def test_sequence_debug_mode_raises_after_recording(tmp_path: Path) -> None:
    reporter = _make_reporter(tmp_path=tmp_path, mode="debug")
    seq = UpgradeSequence(reporter)
    err = RuntimeError("stop")

    seq.add("a", lambda rev: (False, err), 1)
    seq.add("b", lambda rev: (True, None), 1)

    with pytest.raises(UpgradeAborted, match="stop") as info:
        seq.run()

    assert info.value.__cause__ is err
    assert info.value.structure_name == "a"
    assert reporter.status("a") == StepStatus.FAILED
    assert reporter.status("b") == StepStatus.SKIPPED
    assert seq.status.changed is False


def test_sequence_with_prelatched_status_skips_everything(tmp_path: Path) -> None:
    reporter = _make_reporter(tmp_path=tmp_path, mode="run")
    err = ValueError("earlier")
    seq = UpgradeSequence(reporter, status=StructureUpgradeStatus(last_error=err))
    ran: list[str] = []

    def a(rev: int):
        ran.append("a")
        return True, None

    seq.add("a", a, 1)

    status = seq.run()

    assert ran == []
    assert status.last_error is err
    assert reporter.status("a") == StepStatus.SKIPPED


def test_sequence_rejects_duplicate_names(tmp_path: Path) -> None:
    reporter = _make_reporter(tmp_path=tmp_path, mode="run")
    seq = UpgradeSequence(reporter)
    seq.add("a", lambda rev: (False, None), 1)

    with pytest.raises(ValueError, match="Duplicate upgrade name"):
        seq.add_callable("a", lambda: (False, None), 1)


def test_sequence_writes_jsonl_events(tmp_path: Path) -> None:
    reporter = _make_reporter(tmp_path=tmp_path, mode="run", write_jsonl=True)
    seq = UpgradeSequence(reporter)
    seq.add("a", lambda rev: (True, None), 1)
    seq.add("b", lambda rev: (False, ValueError("x")), 2)
    seq.add("c", lambda rev: (True, None), 3)

    seq.run()

    lines = (tmp_path / "logs" / "events_testrun.jsonl").read_text(encoding="utf-8").strip().splitlines()
    payloads = [json.loads(line) for line in lines]

    assert [(p["structure"], p["outcome"]) for p in payloads] == [("a", "changed"), ("b", "failed"), ("c", "skipped")]
    assert payloads[1]["existed_rev"] == 2
    assert payloads[1]["error"] == {"type": "ValueError", "message": "x"}
    assert payloads[2]["note"] == "Skipped because upgrade 'b' failed."


def test_sequence_summary_points_at_existing_run_log_with_auto_run_id(tmp_path: Path) -> None:
    cfg = UpgradeRunConfig(log_dir=tmp_path / "logs", write_jsonl=False, console_level=logging.CRITICAL)
    assert cfg.run_id == "auto"
    reporter = UpgradeReporter.from_config(cfg)
    seq = UpgradeSequence(reporter)
    seq.add("users", lambda rev: (False, RuntimeError("locked")), 2)

    seq.run()

    summary = reporter.render_summary()
    artifacts = [line.strip()[2:] for line in summary.split("Artifacts:")[1].strip().splitlines()]
    on_disk = sorted(p.name for p in (tmp_path / "logs").iterdir())

    assert on_disk == [f"run_{reporter.run_id}.log"]
    assert artifacts == [str(tmp_path / "logs" / f"run_{reporter.run_id}.log")]
    assert f"run_id={reporter.run_id}" in summary
    assert f"run={reporter.run_id}" in Path(artifacts[0]).read_text(encoding="utf-8")
