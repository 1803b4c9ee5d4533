"""Approval-gated plan execution service."""

__version__ = "1.0.0"
