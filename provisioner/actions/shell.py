# -*- coding: utf-8 -*-
from __future__ import annotations

import shutil
import signal
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from rich.markup import escape

from ..context import Context
from ..engine import Step
from ..utils.paths import resolve_user_path
from ..utils.timeparse import parse_duration
from . import make_step, register

Command = Union[str, Sequence[str]]


class ToolNotFound(FileNotFoundError):
    """Бинарник для пробы не найден: проба недоступна."""


def resolve_timeout(ctx: Context, spec: Dict[str, Any]) -> Optional[float]:
    """
    Цепочка приоритетов:
    1) step.timeout
    2) settings.defaults.timeout
    Возвращает seconds | None.
    """
    own = parse_duration(spec.get("timeout"))
    return own if own is not None else ctx.default_timeout()


def _ignore_sigint() -> None:
    """
    Выполняется в дочернем процессе до exec. Ctrl+C из терминала приходит всей
    группе процессов: команда должна доработать, остановку между шагами решает CLI.
    Отдельную сессию не заводим, иначе sudo/chsh теряют терминал для пароля.
    """
    signal.signal(signal.SIGINT, signal.SIG_IGN)


def _display(cmd: Command) -> str:
    return cmd if isinstance(cmd, str) else " ".join(str(c) for c in cmd)


def capture(
    ctx: Context,
    cmd: Command,
    *,
    timeout: Optional[float] = None,
    cwd: Optional[Path] = None,
) -> subprocess.CompletedProcess:
    """
    Запуск команды для пробы: вывод перехватывается, код возврата не проверяется.
    Строка идёт через shell, список запускается напрямую.
    Нет бинарника → ToolNotFound; таймаут → subprocess.TimeoutExpired.
    """
    try:
        return subprocess.run(
            cmd if isinstance(cmd, str) else list(cmd),
            shell=isinstance(cmd, str),
            cwd=str(cwd) if cwd else None,
            env=ctx.env or None,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout,
            preexec_fn=_ignore_sigint,
        )
    except FileNotFoundError as e:
        raise ToolNotFound(f"command not found: {_display(cmd)}") from e


def execute(
    ctx: Context,
    cmd: Command,
    *,
    timeout: Optional[float] = None,
    cwd: Optional[Path] = None,
) -> bool:
    """
    Запуск команды, меняющей систему. Ошибка (код != 0, нет бинарника, таймаут)
    возвращается как False, вывод печатается в консоль.
    """
    shown = _display(cmd)
    try:
        proc = subprocess.run(
            cmd if isinstance(cmd, str) else list(cmd),
            shell=isinstance(cmd, str),
            cwd=str(cwd) if cwd else None,
            env=ctx.env or None,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout,
            preexec_fn=_ignore_sigint,
        )
    except FileNotFoundError:
        ctx.console.print(f"[red]command not found:[/] {escape(shown)}")
        return False
    except subprocess.TimeoutExpired:
        ctx.console.print(f"[red]timeout after {timeout:.1f}s:[/] {escape(shown)}")
        return False

    if proc.returncode != 0:
        ctx.console.print(f"[red]non-zero exit {proc.returncode}:[/] {escape(shown)}")
        if proc.stdout:
            ctx.console.print(f"[dim]stdout:[/]\n{escape(proc.stdout[-4000:])}")
        if proc.stderr:
            ctx.console.print(f"[dim]stderr:[/]\n{escape(proc.stderr[-4000:])}")
        return False
    return True


def execute_all(
    ctx: Context,
    cmds: List[Command],
    *,
    timeout: Optional[float] = None,
    cwd: Optional[Path] = None,
) -> bool:
    for c in cmds:
        if not execute(ctx, c, timeout=timeout, cwd=cwd):
            return False
    return True


def which(ctx: Context, binary: str) -> Optional[str]:
    return shutil.which(binary, path=ctx.env.get("PATH"))


@register("shell")
def shell_step(ctx: Context, spec: Dict[str, Any]) -> List[Step]:
    """
    params:
      run: str | [str, ...]   (через shell, по очереди до первой ошибки)
      check?: str             (exit 0 → уже сделано)
      creates?: path          (путь существует → уже сделано)
      which?: str             (бинарник есть в PATH → уже сделано)
      cwd?: path
      name?: str
    Без check/creates/which шаг применяется всегда.
    """
    raw = spec.get("run")
    if not raw:
        raise ValueError("shell: 'run' is required")
    cmds: List[Command] = [str(c) for c in raw] if isinstance(raw, list) else [str(raw)]

    check = spec.get("check")
    creates = spec.get("creates")
    binary = spec.get("which")
    cwd = resolve_user_path(str(spec["cwd"]), ctx.config) if spec.get("cwd") else None
    timeout = resolve_timeout(ctx, spec)
    name = str(spec.get("name") or f"shell:{_display(cmds[0])}")

    probe = None
    if check:

        def probe() -> bool:
            return capture(ctx, str(check), timeout=timeout, cwd=cwd).returncode == 0

    elif creates:
        target = resolve_user_path(str(creates), ctx.config)

        def probe() -> bool:
            return target.exists()

    elif binary:

        def probe() -> bool:
            return which(ctx, str(binary)) is not None

    def apply() -> bool:
        return execute_all(ctx, cmds, timeout=timeout, cwd=cwd)

    return [make_step(spec, name, apply, probe)]
