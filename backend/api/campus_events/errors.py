from __future__ import annotations


class ApprovalError(Exception):
    """Base class for errors reported synchronously to the caller."""

    status_code = 400


class InvalidInput(ApprovalError):
    """Missing reason/response text or a malformed draft."""

    status_code = 400


class Unauthorized(ApprovalError):
    """Actor or role does not match what the event's current status allows."""

    status_code = 403


class Conflict(ApprovalError):
    """The event changed since it was read; re-read and retry."""

    status_code = 409


class ScheduleConflict(Conflict):
    """The requested location is already booked by an approved event."""


class NotFound(ApprovalError):
    status_code = 404


class Unauthenticated(ApprovalError):
    """No acting user could be resolved for the request."""

    status_code = 401
