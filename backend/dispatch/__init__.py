"""Recurring plan occurrence engine for field-service dispatch."""
