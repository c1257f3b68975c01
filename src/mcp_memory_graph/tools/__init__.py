"""MCP tool handlers rendering manager results as text."""
