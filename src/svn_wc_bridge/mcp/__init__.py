"""MCP server exposing the working-copy engine over stdio."""
