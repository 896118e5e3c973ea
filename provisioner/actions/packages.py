# -*- coding: utf-8 -*-
from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Dict, List

from ..context import Context
from ..engine import Step
from . import items, make_step, register
from .shell import capture, execute, resolve_timeout

Argv = List[str]


def _per_item(
    ctx: Context,
    spec: Dict[str, Any],
    key: str,
    prefix: str,
    probe_argv: Callable[[str], Argv],
    apply_argv: Callable[[str], Argv],
) -> List[Step]:
    """
    Один шаг на элемент списка: проба "exit 0 → уже установлено", apply ставит.
    Порядок элементов сохраняется.
    """
    timeout = resolve_timeout(ctx, spec)
    out: List[Step] = []
    for item in items(spec, key):

        def probe(item: str = item) -> bool:
            return capture(ctx, probe_argv(item), timeout=timeout).returncode == 0

        def apply(item: str = item) -> bool:
            return execute(ctx, apply_argv(item), timeout=timeout)

        out.append(make_step(spec, f"{prefix}:{item}", apply, probe))
    return out


@register("brew")
def brew_formulae(ctx: Context, spec: Dict[str, Any]) -> List[Step]:
    """
    params:
      packages: [str, ...]  (формулы Homebrew)
    """
    return _per_item(
        ctx,
        spec,
        "packages",
        "brew",
        lambda p: ["brew", "ls", "--versions", p],
        lambda p: ["brew", "install", p],
    )


@register("cask")
def brew_casks(ctx: Context, spec: Dict[str, Any]) -> List[Step]:
    """
    params:
      apps: [str, ...]  (десктопные приложения через brew --cask)
    """
    return _per_item(
        ctx,
        spec,
        "apps",
        "cask",
        lambda a: ["brew", "list", "--cask", a],
        lambda a: ["brew", "install", "--cask", a],
    )


@register("gem")
def ruby_gems(ctx: Context, spec: Dict[str, Any]) -> List[Step]:
    """
    params:
      gems: [str, ...]
    """
    return _per_item(
        ctx,
        spec,
        "gems",
        "gem",
        lambda g: ["gem", "list", "-i", f"^{g}$"],
        lambda g: ["gem", "install", g],
    )


@register("pip")
def pip_packages(ctx: Context, spec: Dict[str, Any]) -> List[Step]:
    """
    params:
      packages: [str, ...]
      python?: str   (интерпретатор, по умолчанию python)
      upgrade?: bool (ставить с --upgrade; проба тогда не используется)
    """
    python = str(spec.get("python") or "python")
    upgrade = bool(spec.get("upgrade", False))
    install = [python, "-m", "pip", "install"] + (["--upgrade"] if upgrade else [])

    steps = _per_item(
        ctx,
        spec,
        "packages",
        "pip",
        lambda p: [python, "-m", "pip", "show", p],
        lambda p: [*install, p],
    )
    if upgrade:
        # апгрейд всегда идёт в сеть, «уже сделано» тут не определить
        steps = [replace(s, probe=None) for s in steps]
    return steps
