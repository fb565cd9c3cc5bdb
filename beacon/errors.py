"""Exception taxonomy shared by the Beacon API and its collaborators."""
from __future__ import annotations


class BeaconError(Exception):
    """Base error. ``status_code`` is the HTTP status the API renders it as."""
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__doc__ or self.__class__.__name__)


class MissingFields(BeaconError):
    """Website and email are required."""
    status_code = 400


class InvalidIdentity(BeaconError):
    """Invalid website URL."""
    status_code = 400


class InvalidEmailFormat(BeaconError):
    """Invalid email. Please enter a real email address."""
    status_code = 400


class UnreachableEmailDomain(BeaconError):
    """That email domain cannot receive email. Please use a real email."""
    status_code = 400


class CacheStorageError(BeaconError):
    """Report storage is unavailable."""
    status_code = 500


class ReportNotFound(BeaconError):
    """Report not found."""
    status_code = 404


# Non-fatal: raised and caught inside the best-effort side channels.

class RecommendationInputInvalid(BeaconError):
    """Score is not a finite number."""


class NotificationSinkUnavailable(BeaconError):
    """Email delivery is not configured."""


class LeadWriteFailure(BeaconError):
    """Lead could not be stored."""


class EventWriteFailure(BeaconError):
    """Event could not be stored."""
