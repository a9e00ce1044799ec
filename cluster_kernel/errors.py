"""
Cluster Kernel — Registry Errors

Raised by the query / reset layer and the request handlers.
Placement itself never raises these.
"""

from __future__ import annotations


class RegistryError(Exception):
    """Base exception for registry operations."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(RegistryError):
    """A required request field is missing or empty."""

    status_code = 400


class NotFoundError(RegistryError):
    """Unknown school code or cluster number."""

    status_code = 404


class SchoolNotFoundError(NotFoundError):
    def __init__(self, school_code: str) -> None:
        self.school_code = school_code
        super().__init__("School not found")


class ClusterNotFoundError(NotFoundError):
    def __init__(self, cluster_name: str) -> None:
        self.cluster_name = cluster_name
        super().__init__("Cluster not found")
