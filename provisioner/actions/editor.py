# -*- coding: utf-8 -*-
from __future__ import annotations

from typing import Any, Dict, List

from ..context import Context
from ..engine import Step
from . import items, make_step, register
from .shell import capture, execute, resolve_timeout


@register("vscode_extension")
def vscode_extensions(ctx: Context, spec: Dict[str, Any]) -> List[Step]:
    """
    params:
      extensions: [str, ...]  (идентификаторы publisher.name)
      editor?: str            (code | code-insiders | cursor ..., по умолчанию code)

    Нет бинарника редактора → проба недоступна, установка падает,
    но по умолчанию шаги best-effort и прогон идёт дальше.
    """
    editor = str(spec.get("editor") or "code")
    timeout = resolve_timeout(ctx, spec)
    installed: Dict[str, List[str]] = {}

    def listed() -> List[str]:
        # один вызов --list-extensions на весь список; кэш живёт только до первой установки
        if "ids" not in installed:
            proc = capture(ctx, [editor, "--list-extensions"], timeout=timeout)
            if proc.returncode != 0:
                raise RuntimeError(f"{editor} --list-extensions exited {proc.returncode}")
            installed["ids"] = [x.strip().lower() for x in proc.stdout.splitlines()]
        return installed["ids"]

    out: List[Step] = []
    for ext in items(spec, "extensions"):

        def probe(ext: str = ext) -> bool:
            return ext.lower() in listed()

        def apply(ext: str = ext) -> bool:
            installed.pop("ids", None)
            return execute(ctx, [editor, "--install-extension", ext], timeout=timeout)

        out.append(make_step(spec, f"{editor}:{ext}", apply, probe))
    return out
