from __future__ import annotations

from typing import Any, Optional

OK = "OK"
WARNING = "WARNING"
ERROR = "ERROR"


def check_line(label: str, status: str, detail: Optional[str] = None) -> str:
    suffix = f" ({detail})" if detail else ""
    return f"{label}: {status}{suffix}"


def field_line(name: str, value: Any, provenance: Optional[str] = None, width: int = 16) -> str:
    shown = "-" if value is None or value == "" else str(value)
    if provenance:
        return f"{name:<{width}} {shown}  [{provenance}]"
    return f"{name:<{width}} {shown}"
