# -*- coding: utf-8 -*-
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rich.console import Console

from .utils.timeparse import parse_duration


@dataclass
class Context:
    """
    Один прогон сценария: смерженный конфиг, консоль, флаг dry_run
    и окружение, в котором запускаются все внешние команды.
    """

    config: Dict[str, Any]
    console: Console
    dry_run: bool = False
    env: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(
        cls, config: Dict[str, Any], console: Console, *, dry_run: bool = False
    ) -> "Context":
        settings = config.get("settings") or {}
        env = dict(os.environ)
        env.update({str(k): str(v) for k, v in (settings.get("env") or {}).items()})

        extra: List[str] = [
            os.path.expanduser(str(p)) for p in (settings.get("path_prepend") or [])
        ]
        if extra:
            env["PATH"] = os.pathsep.join([*extra, env.get("PATH", "")])

        return cls(config=config, console=console, dry_run=dry_run, env=env)

    def default_timeout(self) -> Optional[float]:
        defaults = (self.config.get("settings") or {}).get("defaults") or {}
        return parse_duration(defaults.get("timeout"))
