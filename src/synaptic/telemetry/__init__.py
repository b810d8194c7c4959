"""Telemetry for graph execution and checkpointing."""
