from __future__ import annotations

_UNITS = (("ms", 0.001), ("s", 1.0), ("m", 60.0), ("h", 3600.0))


def parse_duration(text: str | int | float | None) -> float | None:
    """
    Преобразует '400ms', '2s', '1m', '1h' в секунды (float).
    Число возвращается как float, None и пустая строка дают None.
    """
    if text is None:
        return None
    if isinstance(text, bool):
        raise ValueError(f"Invalid duration: {text!r}")
    if isinstance(text, (int, float)):
        return float(text)
    s = str(text).strip().lower()
    if not s:
        return None
    # 'ms' раньше 's', иначе '400ms' распарсится как '400m' + 's'
    for suffix, factor in _UNITS:
        if s.endswith(suffix):
            try:
                return float(s[: -len(suffix)]) * factor
            except ValueError:
                raise ValueError(f"Invalid duration: {text!r}") from None
    try:
        return float(s)
    except ValueError:
        raise ValueError(f"Invalid duration: {text!r}") from None
