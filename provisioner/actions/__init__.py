# -*- coding: utf-8 -*-
from __future__ import annotations

from typing import Any, Callable, Dict, List

from ..context import Context
from ..engine import Apply, Probe, Step

Builder = Callable[[Context, Dict[str, Any]], List[Step]]

REGISTRY: Dict[str, Builder] = {}

# kind-ы, ошибка которых по умолчанию не роняет прогон
BEST_EFFORT_KINDS = {"vscode_extension"}


def register(name: str):
    def deco(func: Builder):
        REGISTRY[name] = func
        return func

    return deco


def require(spec: Dict[str, Any], key: str) -> Any:
    val = spec.get(key)
    if val is None or val == "" or val == []:
        raise ValueError(f"{spec.get('kind')}: '{key}' is required")
    return val


def items(spec: Dict[str, Any], key: str) -> List[str]:
    """Параметр-список: допускает и одиночное значение, и список."""
    val = require(spec, key)
    if isinstance(val, (list, tuple)):
        return [str(v) for v in val]
    return [str(val)]


def make_step(
    spec: Dict[str, Any],
    name: str,
    apply: Apply,
    probe: Probe | None = None,
) -> Step:
    """Собирает engine.Step, подхватывая общие ключи: fatal/announce/success/fail."""
    kind = str(spec.get("kind") or "custom")
    fatal = spec.get("fatal")
    if fatal is None:
        fatal = kind not in BEST_EFFORT_KINDS
    return Step(
        name=name,
        apply=apply,
        probe=probe,
        fatal=bool(fatal),
        kind=kind,
        announce=spec.get("announce"),
        success=spec.get("success"),
        fail=spec.get("fail"),
    )


def build_steps(ctx: Context, specs: List[Dict[str, Any]]) -> List[Step]:
    """Компилирует список шагов сценария в плоский упорядоченный список engine.Step."""
    out: List[Step] = []
    for idx, spec in enumerate(specs, 1):
        kind = spec.get("kind")
        fn = REGISTRY.get(str(kind))
        if not fn:
            raise KeyError(f"Unknown step kind: {kind} (step #{idx})")
        out.extend(fn(ctx, spec))

    seen: Dict[str, int] = {}
    for st in out:
        seen[st.name] = seen.get(st.name, 0) + 1
    dupes = sorted(n for n, c in seen.items() if c > 1)
    if dupes:
        raise ValueError(f"Duplicate step names: {dupes}")
    return out


# важно: импортируем модули, чтобы kind-ы зарегистрировались
from . import shell  # noqa: E402,F401
from . import packages  # noqa: E402,F401
from . import runtimes  # noqa: E402,F401
from . import editor  # noqa: E402,F401
from . import system  # noqa: E402,F401
