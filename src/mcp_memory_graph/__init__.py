"""MCP Memory Graph: scoped memories linked by typed, weighted relations."""

__version__ = "0.1.0"
