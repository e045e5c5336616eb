from .tracker import FRESHNESS_SECONDS, STALE_SECONDS, LivenessTracker, derive_status

__all__ = ["FRESHNESS_SECONDS", "STALE_SECONDS", "LivenessTracker", "derive_status"]
