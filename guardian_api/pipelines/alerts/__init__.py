"""Pipeline de ALERTAS - clasificación, generación y ciclo de vida."""

from .alert_rules import RULES, AlertDecision, classify
from .generator import AlertGenerator
from .lifecycle import AlertLifecycleManager

__all__ = [
    "RULES",
    "AlertDecision",
    "classify",
    "AlertGenerator",
    "AlertLifecycleManager",
]
