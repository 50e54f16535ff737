"""Liveness and dependency health checks."""
