# -*- coding: utf-8 -*-
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, cast
import json
import os
import re

import yaml
from jinja2 import Environment, StrictUndefined
from jinja2.exceptions import UndefinedError

from .utils.paths import ensure_paths_in_config


# ---------- базовые utils ----------


def _deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """
    Иммутабельный глубинный мердж: значения из b перекрывают a.
    Списки не склеиваются, а заменяются целиком (steps профиля не дописываются к сценарию).
    """
    out = dict(a)
    for k, v in b.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


_bool_map = {"true": True, "false": False, "yes": True, "no": False}


def _parse_scalar(value: str) -> Any:
    """
    Парсит скаляр CLI-оверрайда:
    - true/false/yes/no -> bool
    - int/float
    - JSON ([], {}, "str"), если похоже
    - иначе строка как есть
    """
    s = value.strip()
    low = s.lower()
    if low in _bool_map:
        return _bool_map[low]
    if re.fullmatch(r"-?\d+", s):
        return int(s)
    if re.fullmatch(r"-?\d+\.\d+", s):
        return float(s)
    if (
        (s.startswith("{") and s.endswith("}"))
        or (s.startswith("[") and s.endswith("]"))
        or (s.startswith('"') and s.endswith('"'))
    ):
        try:
            return json.loads(s)
        except json.JSONDecodeError:
            pass
    return s


def parse_overrides(pairs: List[str]) -> Dict[str, Any]:
    """
    ["settings.vars.ruby_version=3.3.0", "settings.defaults.timeout=20m"]
    -> {"settings": {"vars": {"ruby_version": "3.3.0"}, "defaults": {"timeout": "20m"}}}
    """
    root: Dict[str, Any] = {}
    for p in pairs:
        if "=" not in p:
            raise ValueError(f"Override must be key=value, got: {p}")
        key, raw = p.split("=", 1)
        keys = [k for k in key.strip().split(".") if k]
        if not keys:
            raise ValueError(f"Override has empty key: {p}")
        val = _parse_scalar(raw)
        cur = root
        for k in keys[:-1]:
            nxt = cur.setdefault(k, {})
            if not isinstance(nxt, dict):
                raise ValueError(f"Override path collides at {k} in {p}")
            cur = nxt
        cur[keys[-1]] = val
    return root


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"YAML root must be a mapping: {path}")
        return data


def validate_scenario(
    doc: Dict[str, Any], known_kinds: Optional[Iterable[str]] = None
) -> List[str]:
    """
    Структурная проверка до сборки шагов. Параметры конкретных kind-ов
    проверяют сами билдеры.
    """
    errors: List[str] = []
    kinds = set(known_kinds) if known_kinds is not None else None

    if doc.get("version") != 1:
        errors.append("version must be 1")
    steps = doc.get("steps")
    if not isinstance(steps, list) or not steps:
        errors.append("steps must be a non-empty list")
        return errors

    for i, st in enumerate(steps, 1):
        if not isinstance(st, dict):
            errors.append(f"step #{i} must be a mapping")
            continue
        kind = st.get("kind")
        if not kind:
            errors.append(f"step #{i} missing 'kind'")
        elif kinds is not None and kind not in kinds:
            errors.append(f"step #{i} has unknown kind {kind!r}")
        if "fatal" in st and not isinstance(st["fatal"], bool):
            errors.append(f"step #{i} 'fatal' must be true/false")
    return errors


# ---------- загрузка набора конфигов ----------


def resolve_paths(
    project_root: Path,
    scenario: str,
    profile: str | None,
) -> Tuple[Path, Path | None, Path]:
    """
    Возвращает (defaults.yaml, profile.yaml?, scenario.yaml).
    scenario: путь или имя в каталоге scenarios/
    """
    defaults = project_root / "configs" / "defaults.yaml"
    prof = (
        project_root / "configs" / "profiles" / f"{profile}.yaml" if profile else None
    )

    s = Path(scenario)
    if not s.suffix:
        s = project_root / "scenarios" / f"{s.name}.yaml"
    if not s.is_absolute():
        s = (project_root / s).resolve()

    return defaults, prof, s


def _render_templates(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """
    Рендерит Jinja2-шаблоны в строковых значениях.
    Доступны: переменные settings.vars, paths, profile и env (окружение процесса).
    """
    vars_ = dict((cfg.get("settings") or {}).get("vars") or {})
    vars_.setdefault("paths", cfg.get("paths") or {})
    vars_.setdefault("profile", cfg.get("profile") or {})
    vars_.setdefault("env", dict(os.environ))
    env = Environment(undefined=StrictUndefined)

    def _walk(x: Any) -> Any:
        if isinstance(x, str) and "{{" in x:
            try:
                return env.from_string(x).render(**vars_)
            except UndefinedError as e:
                raise ValueError(f"Template error in {x!r}: {e}") from e
        if isinstance(x, dict):
            return {k: _walk(v) for k, v in x.items()}
        if isinstance(x, list):
            return [_walk(i) for i in x]
        return x

    rendered = _walk(cfg)
    if not isinstance(rendered, dict):
        raise TypeError("Rendered config must be a mapping")
    return cast(Dict[str, Any], rendered)


def load_config(
    project_root: Path,
    scenario: str,
    profile: str | None,
    overrides: List[str],
) -> Dict[str, Any]:
    """
    Загружает defaults → profile → scenario → CLI overrides,
    дописывает paths.*, затем рендерит шаблоны Jinja2.
    """
    defaults_p, profile_p, scenario_p = resolve_paths(project_root, scenario, profile)

    result: Dict[str, Any] = {}

    if defaults_p.exists():
        result = _deep_merge(result, load_yaml(defaults_p))

    if profile_p is not None:
        if not profile_p.exists():
            raise FileNotFoundError(f"Profile not found: {profile_p}")
        result = _deep_merge(result, load_yaml(profile_p))

    if not scenario_p.exists():
        raise FileNotFoundError(f"Scenario not found: {scenario_p}")
    result = _deep_merge(result, load_yaml(scenario_p))

    if overrides:
        result = _deep_merge(result, parse_overrides(overrides))

    ensure_paths_in_config(result, project_root, scenario_p, profile)
    return _render_templates(result)
