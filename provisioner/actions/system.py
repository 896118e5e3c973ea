# -*- coding: utf-8 -*-
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Tuple

from rich.markup import escape

from ..context import Context
from ..engine import Step
from ..utils.paths import resolve_user_path
from . import items, make_step, register, require
from .shell import capture, execute, resolve_timeout


# ===================== dotfiles =====================


def _read_lines(path: Path) -> List[str]:
    if not path.exists():
        return []
    return path.read_text(encoding="utf-8").splitlines()


@register("line_in_file")
def line_in_file(ctx: Context, spec: Dict[str, Any]) -> List[Step]:
    """
    params:
      path: str            (~ раскрывается относительно paths.home)
      lines: [str, ...]    (дописываются те, которых ещё нет)
      header?: str         (комментарий перед блоком, например "# asdf initialization")
    """
    path = resolve_user_path(str(require(spec, "path")), ctx.config)
    lines = items(spec, "lines")
    header = spec.get("header")

    def missing() -> List[str]:
        have = set(_read_lines(path))
        return [ln for ln in lines if ln not in have]

    def probe() -> bool:
        return not missing()

    def apply() -> bool:
        todo = missing()
        if not todo:
            return True
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            existing = path.read_text(encoding="utf-8") if path.exists() else ""
            chunk: List[str] = []
            if existing and not existing.endswith("\n"):
                chunk.append("")
            if header and len(todo) == len(lines):
                # заголовок только перед новым блоком, не перед дописанным хвостом
                chunk.extend(["", str(header)])
            chunk.extend(todo)
            with path.open("a", encoding="utf-8") as f:
                f.write("\n".join(chunk) + "\n")
        except OSError as e:
            ctx.console.print(f"[red]cannot write {escape(str(path))}:[/] {escape(str(e))}")
            return False
        return True

    return [make_step(spec, str(spec.get("name") or f"line_in_file:{path}"), apply, probe)]


# ===================== macOS defaults =====================


def _defaults_arg(value: Any) -> Tuple[str, str]:
    """
    Тип для `defaults write` по значению из YAML.
    Явный тип: {type: float, value: 9999}.
    """
    if isinstance(value, dict):
        kind = str(value.get("type") or "string")
        raw = value.get("value")
        if kind == "bool":
            return "-bool", "true" if _truthy(raw) else "false"
        return f"-{kind}", str(raw)
    if isinstance(value, bool):
        return "-bool", "true" if value else "false"
    if isinstance(value, int):
        return "-int", str(value)
    if isinstance(value, float):
        return "-float", repr(value)
    return "-string", str(value)


def _truthy(raw: Any) -> bool:
    return str(raw).strip().lower() in ("1", "true", "yes")


def _defaults_equal(flag: str, expected: str, current: str) -> bool:
    current = current.strip()
    if flag == "-bool":
        return _truthy(current) == _truthy(expected)
    if flag in ("-int", "-float"):
        try:
            return float(current) == float(expected)
        except ValueError:
            return False
    return current == expected


@register("defaults")
def macos_defaults(ctx: Context, spec: Dict[str, Any]) -> List[Step]:
    """
    params:
      domain: str                 (com.apple.dock)
      values: {key: value, ...}   (bool/int/float/str или {type, value})
      restart?: str               (процесс для killall, если что-то поменялось)
    """
    domain = str(require(spec, "domain"))
    values = require(spec, "values")
    if not isinstance(values, dict):
        raise ValueError("defaults: 'values' must be a mapping")
    restart = spec.get("restart")
    timeout = resolve_timeout(ctx, spec)
    changed: List[str] = []
    pending: List[str] = []

    out: List[Step] = []
    for key, value in values.items():
        flag, arg = _defaults_arg(value)

        def probe(key: str = str(key), flag: str = flag, arg: str = arg) -> bool:
            pending.append(key)
            proc = capture(ctx, ["defaults", "read", domain, key], timeout=timeout)
            if proc.returncode == 0 and _defaults_equal(flag, arg, proc.stdout):
                pending.remove(key)
                return True
            return False

        def apply(key: str = str(key), flag: str = flag, arg: str = arg) -> bool:
            ok = execute(ctx, ["defaults", "write", domain, key, flag, arg], timeout=timeout)
            if ok:
                changed.append(key)
            return ok

        out.append(make_step(spec, f"defaults:{domain}:{key}", apply, probe))

    if restart:

        def restart_probe() -> bool:
            # перезапуск нужен только если в этом прогоне что-то записали
            # (в dry-run: если что-то записали бы)
            return not (pending if ctx.dry_run else changed)

        def restart_apply() -> bool:
            if not execute(ctx, ["killall", str(restart)], timeout=timeout):
                ctx.console.print(f"[yellow]killall {escape(str(restart))} failed, restart manually[/]")
            changed.clear()
            pending.clear()
            return True

        out.append(make_step(spec, f"restart:{restart}", restart_apply, restart_probe))
    return out


# ===================== git / shell =====================


@register("git_config")
def git_config(ctx: Context, spec: Dict[str, Any]) -> List[Step]:
    """
    params:
      values: {key: value, ...}  (user.name, user.email, ...)
    Значение пишется только если ключ ещё не задан: чужую настройку не трогаем.
    Пустые значения (не заполненные в профиле) пропускаются.
    """
    values = require(spec, "values")
    if not isinstance(values, dict):
        raise ValueError("git_config: 'values' must be a mapping")
    timeout = resolve_timeout(ctx, spec)

    out: List[Step] = []
    for key, value in values.items():
        if value is None or str(value) == "":
            continue

        def probe(key: str = str(key)) -> bool:
            proc = capture(ctx, ["git", "config", "--global", "--get", key], timeout=timeout)
            return proc.returncode == 0 and bool(proc.stdout.strip())

        def apply(key: str = str(key), value: str = str(value)) -> bool:
            return execute(ctx, ["git", "config", "--global", key, value], timeout=timeout)

        out.append(make_step(spec, f"git-config:{key}", apply, probe))
    return out


@register("login_shell")
def login_shell(ctx: Context, spec: Dict[str, Any]) -> List[Step]:
    """
    params:
      shell: str  (/bin/zsh)
    """
    shell = str(require(spec, "shell"))
    timeout = resolve_timeout(ctx, spec)

    def probe() -> bool:
        return ctx.env.get("SHELL") == shell

    def apply() -> bool:
        return execute(ctx, ["chsh", "-s", shell], timeout=timeout)

    return [make_step(spec, str(spec.get("name") or f"login-shell:{shell}"), apply, probe)]


@register("git_clone")
def git_clone(ctx: Context, spec: Dict[str, Any]) -> List[Step]:
    """
    params:
      repo: str
      dest: str     (~ раскрывается относительно paths.home)
      depth?: int
    """
    repo = str(require(spec, "repo"))
    dest = resolve_user_path(str(require(spec, "dest")), ctx.config)
    depth = spec.get("depth")
    timeout = resolve_timeout(ctx, spec)

    def probe() -> bool:
        return dest.exists()

    def apply() -> bool:
        argv = ["git", "clone"] + (["--depth", str(int(depth))] if depth else [])
        return execute(ctx, [*argv, repo, str(dest)], timeout=timeout)

    return [make_step(spec, str(spec.get("name") or f"git-clone:{dest.name}"), apply, probe)]
