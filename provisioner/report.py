# -*- coding: utf-8 -*-
from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .engine import Outcome, Report

_STYLE = {
    Outcome.SKIPPED: "dim",
    Outcome.APPLIED: "green",
    Outcome.FAILED: "red",
    Outcome.PLANNED: "cyan",
}


def render_summary(console: Console, report: Report) -> None:
    """Таблица по шагам + итоговая строка."""
    table = Table(title="Итог")
    table.add_column("Шаг")
    table.add_column("Результат")
    table.add_column("Время", justify="right")
    for r in report.results:
        style = _STYLE[r.outcome]
        outcome = r.outcome.value if r.fatal else f"{r.outcome.value} (best-effort)"
        table.add_row(escape(r.name), f"[{style}]{outcome}[/]", f"{r.duration:.2f}s")
    for name in report.not_attempted:
        table.add_row(escape(name), "[dim]not attempted[/]", "")
    console.print(table)

    c = report.counts()
    line = (
        f"applied={c['applied']} skipped={c['skipped']} "
        f"failed={c['failed']} planned={c['planned']}"
    )
    if report.fatal_step:
        console.print(f"[red]FAILED[/] на шаге {escape(report.fatal_step)}: {line}")
    elif report.aborted:
        console.print(f"[yellow]ABORTED[/]: {line}")
    else:
        console.print(f"[green]OK[/]: {line}")


def write_json(report: Report, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
