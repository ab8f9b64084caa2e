"""Metric definitions, registry and exposition."""
