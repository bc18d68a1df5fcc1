"""Exceptions partagées par les services et le coeur."""
from dataclasses import dataclass
from typing import List


class SeedSweepError(Exception):
    """Base exception."""


class IntegrationDisabledError(SeedSweepError):
    """Raised when an integration is disabled or not configured."""

    def __init__(self, service: str, reason: str = "integration not enabled"):
        self.service = service
        self.reason = reason
        super().__init__(f"{service}: {reason}")


class ServiceError(SeedSweepError):
    """Transport failure talking to an external service."""

    def __init__(self, service: str, operation: str, cause: Exception):
        self.service = service
        self.operation = operation
        self.cause = cause
        super().__init__(f"Error during '{operation}' on {service}: {cause}")


class MediaItemNotFoundError(SeedSweepError, LookupError):
    def __init__(self, media_id: int):
        self.media_id = media_id
        super().__init__(f"media item not found: {media_id}")


class DeletionInProgressError(SeedSweepError):
    def __init__(self, media_id: int):
        self.media_id = media_id
        super().__init__(f"deletion already in progress for media item {media_id}")


@dataclass
class StepFailure:
    """Échec d'une étape de suppression (non fatal)."""
    step: str
    message: str

    def __str__(self) -> str:
        return f"{self.step}: {self.message}"


class DeletionError(SeedSweepError):
    """The item was removed locally but some downstream steps failed."""

    def __init__(self, media_id: int, failures: List[StepFailure], title: str = ""):
        self.media_id = media_id
        self.title = title
        self.failures = list(failures)
        joined = "; ".join(str(f) for f in self.failures)
        super().__init__(f"deletion of media item {media_id} completed with errors: {joined}")
