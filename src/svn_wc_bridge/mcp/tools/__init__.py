"""MCP tool handlers for working-copy operations.

This package wraps the core SvnClient with async handlers and structured
error responses.
"""

from .diff import DIFF_SPECS, DIFF_TOOLS
from .errors import build_error_response, translate_svn_error
from .operations import OPERATION_SPECS, OPERATION_TOOLS
from .registry import ToolRegistry, ToolSpec, load_permissions_file
from .status import STATUS_SPECS, STATUS_TOOLS
from .working_copy import WORKING_COPY_SPECS, WORKING_COPY_TOOLS

ALL_SPECS: list[ToolSpec] = (
    STATUS_SPECS + DIFF_SPECS + OPERATION_SPECS + WORKING_COPY_SPECS
)

__all__ = [
    "build_error_response",
    "translate_svn_error",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    "load_permissions_file",
    # Spec lists
    "ALL_SPECS",
    "STATUS_SPECS",
    "DIFF_SPECS",
    "OPERATION_SPECS",
    "WORKING_COPY_SPECS",
    # Tool lists
    "STATUS_TOOLS",
    "DIFF_TOOLS",
    "OPERATION_TOOLS",
    "WORKING_COPY_TOOLS",
]
