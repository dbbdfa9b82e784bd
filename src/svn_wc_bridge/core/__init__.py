"""Core working-copy engine shared between the MCP server and library callers."""

from .async_utils import run_sync
from .client import SvnClient

__all__ = ["SvnClient", "run_sync"]
