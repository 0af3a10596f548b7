"""Cadence - asyncio job scheduling, pooled connections and workflow execution."""

__version__ = "0.1.0"
