# -*- coding: utf-8 -*-
from __future__ import annotations

from typing import Any, Dict, List

from ..context import Context
from ..engine import Step
from ..utils.paths import resolve_user_path
from . import make_step, register, require
from .shell import capture, execute, execute_all, resolve_timeout


def _tokens(output: str) -> List[str]:
    # `asdf list` помечает текущую версию звёздочкой: " *3.2.0"
    return [t.lstrip("*") for t in output.split()]


def _plugins(ctx: Context, timeout: float | None) -> List[str]:
    proc = capture(ctx, ["asdf", "plugin", "list"], timeout=timeout)
    if proc.returncode != 0:
        return []
    return [line.split()[0] for line in proc.stdout.splitlines() if line.strip()]


@register("asdf_plugin")
def asdf_plugin(ctx: Context, spec: Dict[str, Any]) -> List[Step]:
    """
    params:
      plugin: str
      url?: str
      post?: [str, ...]  (команды после добавления, например импорт ключей nodejs)
    """
    plugin = str(require(spec, "plugin"))
    url = spec.get("url")
    post = [str(c) for c in (spec.get("post") or [])]
    timeout = resolve_timeout(ctx, spec)

    def probe() -> bool:
        return plugin in _plugins(ctx, timeout)

    def apply() -> bool:
        argv = ["asdf", "plugin", "add", plugin] + ([str(url)] if url else [])
        if not execute(ctx, argv, timeout=timeout):
            return False
        return execute_all(ctx, list(post), timeout=timeout)

    return [make_step(spec, str(spec.get("name") or f"asdf-plugin:{plugin}"), apply, probe)]


@register("asdf_install")
def asdf_install(ctx: Context, spec: Dict[str, Any]) -> List[Step]:
    """
    params:
      plugin: str
      version: str
    """
    plugin = str(require(spec, "plugin"))
    version = str(require(spec, "version"))
    timeout = resolve_timeout(ctx, spec)

    def probe() -> bool:
        proc = capture(ctx, ["asdf", "list", plugin], timeout=timeout)
        return proc.returncode == 0 and version in _tokens(proc.stdout)

    def apply() -> bool:
        return execute(ctx, ["asdf", "install", plugin, version], timeout=timeout)

    name = str(spec.get("name") or f"asdf-install:{plugin}@{version}")
    return [make_step(spec, name, apply, probe)]


@register("asdf_global")
def asdf_global(ctx: Context, spec: Dict[str, Any]) -> List[Step]:
    """
    params:
      plugin: str
      version: str
      command?: [str, ...]  (для asdf >= 0.16: ["asdf", "set", "-u", plugin, version])
    """
    plugin = str(require(spec, "plugin"))
    version = str(require(spec, "version"))
    command = [str(c) for c in (spec.get("command") or ["asdf", "global", plugin, version])]
    timeout = resolve_timeout(ctx, spec)
    # из домашнего каталога видна глобальная версия, а не .tool-versions проекта
    home = resolve_user_path("~", ctx.config)

    def probe() -> bool:
        proc = capture(ctx, ["asdf", "current", plugin], timeout=timeout, cwd=home)
        return proc.returncode == 0 and version in _tokens(proc.stdout)

    def apply() -> bool:
        return execute(ctx, command, timeout=timeout)

    name = str(spec.get("name") or f"asdf-global:{plugin}@{version}")
    return [make_step(spec, name, apply, probe)]
