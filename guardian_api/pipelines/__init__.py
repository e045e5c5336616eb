"""Pipelines - eventos, alertas y liveness."""
