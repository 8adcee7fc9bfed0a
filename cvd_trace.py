# cvd_trace.py
# Auditable rule trace shared by the engines: a plain list of
# {"rule", "value", "effect"} dicts owned by the caller.

from typing import Any, Dict, List, Optional

Trace = List[Dict[str, Any]]


def add_trace(trace: Optional[Trace], rule: str, value: Any = None, effect: str = "") -> None:
    if trace is None:
        return
    trace.append({"rule": rule, "value": value, "effect": effect})
