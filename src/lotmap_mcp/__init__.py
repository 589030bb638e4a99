"""Map-plotted property listing manager exposed as MCP tools."""
