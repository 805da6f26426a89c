"""
Pipeline exceptions shared by repositories and services.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for import and analytics pipeline failures."""


class ValidationError(PipelineError):
    """Raised when input is malformed or incomplete. Never retried as-is."""


class NotFoundError(ValidationError):
    """Raised when a referenced job, batch or entity does not exist."""


class StoreError(PipelineError):
    """Raised on transient store faults. Eligible for redelivery."""


class DuplicateError(PipelineError):
    """Raised when a creation-only write finds the key already recorded."""
