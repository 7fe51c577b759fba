"""Logging, configuration and error helpers shared across vibex."""
