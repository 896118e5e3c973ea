# -*- coding: utf-8 -*-
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from time import perf_counter
from typing import Any, Callable, Dict, Iterable, List, Optional

from rich.console import Console
from rich.markup import escape

Probe = Callable[[], bool]
Apply = Callable[[], bool]


class Outcome(str, Enum):
    SKIPPED = "skipped"
    APPLIED = "applied"
    FAILED = "failed"
    # только в dry-run: проба сказала «не сделано», apply не вызывался
    PLANNED = "planned"


@dataclass(frozen=True)
class Step:
    """
    Одна единица желаемого состояния.

    probe: True если уже сделано, False если надо применять. None: применять всегда.
    apply: True при успехе, False при ошибке (исключение тоже считается ошибкой).
    fatal: ошибка такого шага останавливает весь прогон.
    """

    name: str
    apply: Apply
    probe: Optional[Probe] = None
    fatal: bool = True
    kind: str = "custom"
    announce: Optional[str] = None
    success: Optional[str] = None
    fail: Optional[str] = None


@dataclass(frozen=True)
class StepResult:
    name: str
    outcome: Outcome
    fatal: bool
    duration: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "outcome": self.outcome.value,
            "fatal": self.fatal,
            "duration": round(self.duration, 3),
            "error": self.error,
        }


@dataclass
class Report:
    """
    Итог прогона. Шаги после фатальной ошибки или abort в results не попадают,
    их имена лежат в not_attempted.
    """

    results: List[StepResult] = field(default_factory=list)
    not_attempted: List[str] = field(default_factory=list)
    fatal_step: Optional[str] = None
    aborted: bool = False

    @property
    def ok(self) -> bool:
        return self.fatal_step is None and not self.aborted

    def outcome_of(self, name: str) -> Optional[Outcome]:
        for r in self.results:
            if r.name == name:
                return r.outcome
        return None

    def counts(self) -> Dict[str, int]:
        out = {o.value: 0 for o in Outcome}
        for r in self.results:
            out[r.outcome.value] += 1
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "fatal_step": self.fatal_step,
            "aborted": self.aborted,
            "counts": self.counts(),
            "results": [r.to_dict() for r in self.results],
            "not_attempted": list(self.not_attempted),
        }


def _error_text(exc: BaseException) -> str:
    msg = str(exc).strip()
    return f"{type(exc).__name__}: {msg}" if msg else type(exc).__name__


def _probe(step: Step, console: Console) -> bool:
    if step.probe is None:
        return False
    try:
        return bool(step.probe())
    except Exception as e:
        # нечем проверить, значит и того, что проверяем, скорее всего нет
        console.print(
            f"[dim]{escape(step.name)}: probe unavailable ({escape(_error_text(e))})[/dim]"
        )
        return False


def _aborted(report: Report, rest: List[Step], console: Console) -> Report:
    report.aborted = True
    report.not_attempted = [s.name for s in rest]
    console.print(f"[yellow]Прервано[/]: {len(rest)} шагов не запускались")
    return report


def run(
    steps: Iterable[Step],
    *,
    console: Optional[Console] = None,
    dry_run: bool = False,
    abort: Optional[threading.Event] = None,
) -> Report:
    """
    Прогоняет шаги строго по порядку: проба → (apply, если не сделано).
    Best-effort ошибки логируются и пропускаются, фатальная останавливает прогон.
    abort проверяется только между шагами. KeyboardInterrupt внутри шага
    не выходит наружу: прогон помечается aborted, отчёт возвращается.
    """
    console = console or Console()
    steps = list(steps)
    report = Report()

    for idx, step in enumerate(steps):
        if abort is not None and abort.is_set():
            return _aborted(report, steps[idx:], console)

        label = escape(step.name)
        t0 = perf_counter()

        try:
            satisfied = _probe(step, console)
        except KeyboardInterrupt:
            return _aborted(report, steps[idx:], console)

        if satisfied:
            report.results.append(
                StepResult(step.name, Outcome.SKIPPED, step.fatal, perf_counter() - t0)
            )
            console.print(f"[dim]skip[/]  {label}")
            continue

        if dry_run:
            report.results.append(StepResult(step.name, Outcome.PLANNED, step.fatal))
            console.print(f"[cyan]DRY[/]   {label}")
            continue

        if step.announce:
            console.print(step.announce)

        error: Optional[str] = None
        try:
            ok = bool(step.apply())
        except KeyboardInterrupt:
            # второй Ctrl+C: шаг оборван, но отчёт остаётся целым
            dt = perf_counter() - t0
            report.results.append(
                StepResult(step.name, Outcome.FAILED, step.fatal, dt, "interrupted")
            )
            console.print(f"[red]interrupted[/] {label} ({dt:.2f}s)")
            return _aborted(report, steps[idx + 1 :], console)
        except Exception as e:
            ok = False
            error = _error_text(e)
        dt = perf_counter() - t0

        if ok:
            report.results.append(StepResult(step.name, Outcome.APPLIED, step.fatal, dt))
            if step.success:
                console.print(step.success)
            console.print(f"[green]apply[/] {label} ({dt:.2f}s)")
            continue

        report.results.append(StepResult(step.name, Outcome.FAILED, step.fatal, dt, error))
        if step.fail:
            console.print(f"[red]{step.fail}[/]")
        detail = f": {escape(error)}" if error else ""

        if step.fatal:
            console.print(f"[red]fail[/]  {label}{detail} ({dt:.2f}s)")
            report.fatal_step = step.name
            report.not_attempted = [s.name for s in steps[idx + 1 :]]
            return report

        console.print(f"[yellow]fail[/]  {label}{detail} (best-effort, продолжаю)")

    return report
