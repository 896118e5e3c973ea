# -*- coding: utf-8 -*-
from __future__ import annotations

import signal
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .actions import REGISTRY
from .context import Context
from .dsl import load_config, validate_scenario
from .engine import Step
from .orchestrator import compile_scenario, run_scenario
from .report import render_summary, write_json


app = typer.Typer(add_completion=False, help="Mini provisioner: идемпотентная настройка рабочей машины")

console = Console()
ROOT = Path(__file__).resolve().parents[1]

DEFAULT_SCENARIO = "workstation"

_ROOT_OPTION = typer.Option(
    None, "--root", envvar="PROVISIONER_ROOT", help="Каталог с configs/ и scenarios/"
)
_PROFILE_OPTION = typer.Option(None, help="Имя профиля из configs/profiles")
_SET_OPTION = typer.Option(None, "--set", help="Переопределения key=value (можно несколько)")


def _project_root(root: Optional[Path]) -> Path:
    return (root or ROOT).resolve()


def _iter_scenarios(root: Path) -> List[Path]:
    folder = root / "scenarios"
    if not folder.exists():
        return []
    return sorted(folder.glob("*.yaml"))


def _prepare(
    root: Path,
    scenario: str,
    profile: Optional[str],
    override: Optional[List[str]],
) -> Tuple[Dict[str, Any], List[Step]]:
    """
    Загрузка + валидация + сборка шагов. Любая ошибка конфигурации → exit 2,
    до запуска первого шага.
    """
    try:
        cfg = load_config(root, scenario, profile, override or [])
        errors = validate_scenario(cfg, REGISTRY.keys())
        if not errors:
            steps = compile_scenario(Context.from_config(cfg, console, dry_run=True))
    except (ValueError, KeyError, TypeError, FileNotFoundError, yaml.YAMLError) as e:
        console.print(f"[red]Ошибка конфигурации:[/] {escape(str(e))}")
        raise typer.Exit(code=2)

    if errors:
        console.print("[red]Ошибки:[/]")
        for e in errors:
            console.print(f" - {escape(e)}")
        raise typer.Exit(code=2)
    return cfg, steps


@app.command(name="list")
def list_scenarios(root: Optional[Path] = _ROOT_OPTION) -> None:
    """Показать сценарии из каталога scenarios/"""
    rows = _iter_scenarios(_project_root(root))
    if not rows:
        console.print("[yellow]Сценариев пока нет.[/]")
        raise typer.Exit(code=0)
    table = Table(title="Доступные сценарии")
    table.add_column("Имя")
    table.add_column("Путь")
    for p in rows:
        table.add_row(p.stem, str(p))
    console.print(table)


@app.command()
def check(
    scenario: str = typer.Argument(..., help="Путь к yaml или имя из папки scenarios"),
    profile: Optional[str] = _PROFILE_OPTION,
    override: Optional[List[str]] = _SET_OPTION,
    root: Optional[Path] = _ROOT_OPTION,
) -> None:
    """Проверить сценарий: загрузка, валидация и сборка шагов."""
    cfg, steps = _prepare(_project_root(root), scenario, profile, override)
    fatal = sum(1 for s in steps if s.fatal)
    console.print(
        f"[green]OK[/]: версия={cfg.get('version')} шагов={len(steps)} "
        f"(fatal={fatal}, best-effort={len(steps) - fatal})"
    )


@app.command()
def plan(
    scenario: str = typer.Argument(DEFAULT_SCENARIO, help="Путь к yaml или имя из папки scenarios"),
    profile: Optional[str] = _PROFILE_OPTION,
    override: Optional[List[str]] = _SET_OPTION,
    root: Optional[Path] = _ROOT_OPTION,
) -> None:
    """Показать собранные шаги в порядке выполнения, ничего не запуская."""
    _cfg, steps = _prepare(_project_root(root), scenario, profile, override)
    table = Table(title="План")
    table.add_column("#", justify="right")
    table.add_column("Шаг")
    table.add_column("Kind")
    table.add_column("Ошибка")
    for idx, st in enumerate(steps, 1):
        table.add_row(
            str(idx),
            escape(st.name),
            st.kind,
            "fatal" if st.fatal else "[yellow]best-effort[/]",
        )
    console.print(table)


@app.command()
def run(
    scenario: str = typer.Argument(DEFAULT_SCENARIO, help="Путь к yaml или имя из папки scenarios"),
    profile: Optional[str] = _PROFILE_OPTION,
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Только пробы, без изменений в системе"
    ),
    override: Optional[List[str]] = _SET_OPTION,
    report: Optional[Path] = typer.Option(None, "--report", help="Сохранить отчёт в JSON"),
    root: Optional[Path] = _ROOT_OPTION,
) -> None:
    """
    Выполнить сценарий сверху вниз: уже сделанное пропускается,
    best-effort ошибки не влияют на код выхода, фатальная останавливает прогон.
    """
    cfg, steps = _prepare(_project_root(root), scenario, profile, override)

    console.rule("[bold cyan]Сводка")
    console.print(f"Сценарий: {escape(str(cfg['paths']['scenario_file']))}")
    console.print(f"Шагов: {len(steps)}")
    console.print(f"Dry-run: {dry_run}")

    abort = threading.Event()

    def _on_sigint(signum, frame):
        if abort.is_set():
            raise KeyboardInterrupt
        abort.set()
        console.print("\n[yellow]Остановлюсь после текущего шага (Ctrl+C ещё раз: прервать сразу)[/]")

    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        result = run_scenario(cfg, dry_run=dry_run, console=console, abort=abort)
    finally:
        signal.signal(signal.SIGINT, previous)

    render_summary(console, result)
    if report is not None:
        write_json(result, report)
        console.print(f"Отчёт: {escape(str(report))}")

    if result.aborted:
        raise typer.Exit(code=130)
    if not result.ok:
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
