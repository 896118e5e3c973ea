"""Tests for provisioner.engine: convergence loop, outcomes and report."""

import io
import threading

from rich.console import Console

from provisioner.engine import Outcome, Report, Step, StepResult, run


def _console():
    return Console(file=io.StringIO(), width=120)


class FakeResource:
    """A durable thing with a probe and an apply that counts calls."""

    def __init__(self, present=False, apply_ok=True):
        self.present = present
        self.apply_ok = apply_ok
        self.probe_calls = 0
        self.apply_calls = 0

    def probe(self):
        self.probe_calls += 1
        return self.present

    def apply(self):
        self.apply_calls += 1
        if self.apply_ok:
            self.present = True
        return self.apply_ok


def _step(name, res, fatal=True):
    return Step(name=name, probe=res.probe, apply=res.apply, fatal=fatal)


def test_satisfied_step_is_skipped_without_apply():
    res = FakeResource(present=True)
    report = run([_step("a", res)], console=_console())

    assert report.outcome_of("a") == Outcome.SKIPPED
    assert res.probe_calls == 1
    assert res.apply_calls == 0


def test_unsatisfied_step_is_applied():
    res = FakeResource()
    report = run([_step("a", res)], console=_console())

    assert report.outcome_of("a") == Outcome.APPLIED
    assert res.apply_calls == 1
    assert report.ok


def test_second_run_skips_everything():
    resources = [FakeResource() for _ in range(3)]
    steps = [_step(f"s{i}", r) for i, r in enumerate(resources)]

    first = run(steps, console=_console())
    second = run(steps, console=_console())

    assert [r.outcome for r in first.results] == [Outcome.APPLIED] * 3
    assert [r.outcome for r in second.results] == [Outcome.SKIPPED] * 3
    assert all(r.apply_calls == 1 for r in resources)


def test_later_probe_sees_earlier_apply():
    events = []
    manager = FakeResource()

    def install_manager():
        events.append("apply:manager")
        return manager.apply()

    def runtime_probe():
        events.append("probe:runtime")
        # runtime can only be checked once the manager exists
        assert manager.present
        return False

    steps = [
        Step(name="manager", probe=manager.probe, apply=install_manager),
        Step(name="runtime", probe=runtime_probe, apply=lambda: True),
    ]
    report = run(steps, console=_console())

    assert events == ["apply:manager", "probe:runtime"]
    assert report.ok


def test_fatal_failure_short_circuits():
    a = FakeResource(apply_ok=False)
    b = FakeResource(apply_ok=False)
    c = FakeResource()
    steps = [_step("a", a, fatal=False), _step("b", b, fatal=True), _step("c", c, fatal=False)]

    report = run(steps, console=_console())

    assert [(r.name, r.outcome) for r in report.results] == [
        ("a", Outcome.FAILED),
        ("b", Outcome.FAILED),
    ]
    assert report.outcome_of("c") is None
    assert report.not_attempted == ["c"]
    assert report.fatal_step == "b"
    assert not report.ok
    assert c.probe_calls == 0


def test_best_effort_failure_continues():
    a = FakeResource(apply_ok=False)
    b = FakeResource()
    report = run([_step("a", a, fatal=False), _step("b", b, fatal=False)], console=_console())

    assert report.outcome_of("a") == Outcome.FAILED
    assert report.outcome_of("b") == Outcome.APPLIED
    assert report.ok
    assert report.fatal_step is None


def test_probe_error_means_not_satisfied():
    calls = []

    def broken_probe():
        raise FileNotFoundError("no such tool")

    step = Step(name="x", probe=broken_probe, apply=lambda: calls.append(1) or True)
    report = run([step], console=_console())

    assert calls == [1]
    assert report.outcome_of("x") == Outcome.APPLIED


def test_apply_exception_is_a_failure():
    def boom():
        raise RuntimeError("disk full")

    report = run([Step(name="x", apply=boom, fatal=False)], console=_console())

    result = report.results[0]
    assert result.outcome == Outcome.FAILED
    assert result.error == "RuntimeError: disk full"
    assert report.ok


def test_step_without_probe_always_applies():
    calls = []
    step = Step(name="update", apply=lambda: calls.append(1) or True)

    run([step], console=_console())
    run([step], console=_console())

    assert calls == [1, 1]


def test_dry_run_never_applies():
    missing = FakeResource()
    present = FakeResource(present=True)
    report = run(
        [_step("missing", missing), _step("present", present)],
        console=_console(),
        dry_run=True,
    )

    assert report.outcome_of("missing") == Outcome.PLANNED
    assert report.outcome_of("present") == Outcome.SKIPPED
    assert missing.apply_calls == 0


def test_abort_is_checked_between_steps():
    abort = threading.Event()
    second = FakeResource()

    def first_apply():
        abort.set()
        return True

    steps = [Step(name="first", apply=first_apply), _step("second", second)]
    report = run(steps, console=_console(), abort=abort)

    assert report.outcome_of("first") == Outcome.APPLIED
    assert report.not_attempted == ["second"]
    assert report.aborted
    assert not report.ok
    assert second.probe_calls == 0


def test_interrupt_inside_step_keeps_report():
    done = FakeResource()
    later = FakeResource()

    def interrupted():
        raise KeyboardInterrupt

    steps = [_step("done", done), Step(name="slow", apply=interrupted), _step("later", later)]
    report = run(steps, console=_console())

    assert report.outcome_of("done") == Outcome.APPLIED
    assert report.results[-1] == StepResult("slow", Outcome.FAILED, True, report.results[-1].duration, "interrupted")
    assert report.not_attempted == ["later"]
    assert report.aborted
    assert report.fatal_step is None
    assert later.probe_calls == 0


def test_messages_are_printed():
    console = _console()
    steps = [
        Step(name="ok", apply=lambda: True, announce="Installing thing...", success="done!"),
        Step(name="bad", apply=lambda: False, fatal=False, fail="install it manually"),
    ]
    run(steps, console=console)

    out = console.file.getvalue()
    assert "Installing thing..." in out
    assert "done!" in out
    assert "install it manually" in out


def test_report_to_dict():
    report = Report(
        results=[
            StepResult("a", Outcome.APPLIED, True, 1.23456),
            StepResult("b", Outcome.FAILED, True, 0.5, "boom"),
        ],
        not_attempted=["c"],
        fatal_step="b",
    )
    data = report.to_dict()

    assert data["ok"] is False
    assert data["fatal_step"] == "b"
    assert data["counts"] == {"skipped": 0, "applied": 1, "failed": 1, "planned": 0}
    assert data["results"][0] == {
        "name": "a",
        "outcome": "applied",
        "fatal": True,
        "duration": 1.235,
        "error": None,
    }
    assert data["not_attempted"] == ["c"]
