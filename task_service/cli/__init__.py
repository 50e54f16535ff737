"""Operator CLI for task-service."""
