"""
Exception taxonomy for the classification pipeline.

Collaborators raise these; the orchestrator (lookups) and the advisory client
(advisory failures) are the only places that catch and convert them.
"""

from __future__ import annotations


class ScanError(Exception):
    """Base class for pipeline errors."""


class LookupNotFound(ScanError):
    """The food database has no product for the code."""

    def __init__(self, code: str):
        super().__init__(f"Product {code} not found")
        self.code = code


class LookupTransportError(ScanError):
    """Network or HTTP failure while fetching a product."""

    def __init__(self, code: str, reason: str):
        super().__init__(f"Lookup for {code} failed: {reason}")
        self.code = code
        self.reason = reason


class AdvisoryUnavailable(ScanError):
    """The advisory reply could not be obtained or parsed."""

    def __init__(self, reason: str, detail: str = ""):
        super().__init__(f"{reason}: {detail}" if detail else reason)
        self.reason = reason
        self.detail = detail
