"""Módulo de endpoints HTTP.

Adaptadores finos sobre el pipeline: health/ready/metrics y alertas.
"""

from .health import router as health_router
from .alerts import router as alerts_router

__all__ = ["health_router", "alerts_router"]
