"""svn-wc-bridge: Subversion working-copy status and diff reconciliation."""

__version__ = "0.3.0"
