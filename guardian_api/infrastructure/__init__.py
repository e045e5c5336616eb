"""Infraestructura: persistencia relacional."""
