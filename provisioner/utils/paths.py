# -*- coding: utf-8 -*-
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict


def ensure_paths_in_config(
    cfg: Dict[str, Any],
    project_root: Path,
    scenario_path: Path,
    profile_name: str | None,
) -> None:
    """
    Заполняет cfg.paths: project_root, home, scenario_file, scenario_dir.
    home можно переопределить в конфиге (удобно для тестов и чужих машин).
    Также добавляет cfg.profile.name для шаблонов Jinja2.
    """
    paths = cfg.setdefault("paths", {})

    paths.setdefault("project_root", str(project_root))
    paths.setdefault("home", str(Path.home()))
    paths["scenario_file"] = str(scenario_path)
    paths["scenario_dir"] = str(scenario_path.parent)

    if profile_name:
        cfg.setdefault("profile", {})["name"] = profile_name


def resolve_user_path(p: str, cfg: Dict[str, Any]) -> Path:
    """
    Резолвит путь файла для шагов вроде line_in_file / git_clone:
      - '~/...'         → относительно paths.home
      - '$VAR/...'      → переменные окружения раскрываются
      - абсолютный путь → как есть
      - 'foo/bar'       → относительно paths.home
    """
    home = Path(str((cfg.get("paths") or {}).get("home") or Path.home()))
    s = os.path.expandvars(str(p))

    if s == "~":
        return home
    if s.startswith("~/"):
        return home / s[2:]

    q = Path(s)
    if q.is_absolute():
        return q
    return home / q
