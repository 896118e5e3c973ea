# -*- coding: utf-8 -*-
from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional

from rich.console import Console

from . import engine
from .actions import build_steps
from .context import Context
from .engine import Report, Step


def compile_scenario(ctx: Context) -> List[Step]:
    """Шаги сценария → плоский список engine.Step в порядке объявления."""
    return build_steps(ctx, list(ctx.config.get("steps") or []))


def run_scenario(
    cfg: Dict[str, Any],
    *,
    dry_run: bool = False,
    console: Optional[Console] = None,
    abort: Optional[threading.Event] = None,
) -> Report:
    console = console or Console()
    ctx = Context.from_config(cfg, console, dry_run=dry_run)
    steps = compile_scenario(ctx)

    title = cfg.get("title") or (cfg.get("paths") or {}).get("scenario_file", "scenario")
    console.rule(f"[bold]{title}[/]  ([dim]{len(steps)} шагов[/])")

    return engine.run(steps, console=console, dry_run=dry_run, abort=abort)
