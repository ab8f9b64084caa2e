"""Metric output formats."""
