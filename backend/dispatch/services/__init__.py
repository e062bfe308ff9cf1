"""Scheduling services: rule expansion, constraint resolution, generation and lifecycles."""
