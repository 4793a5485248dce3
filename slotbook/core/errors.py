"""Domain errors raised by the slot services.

Each error carries a stable ``kind`` and the HTTP status the routes answer
with, so transports never need to inspect messages.
"""

from fastapi import status


class SchedulingError(Exception):
    kind = 'internal_error'
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict[str, str]:
        return {'kind': self.kind, 'message': self.message}


class InvalidInputError(SchedulingError):
    kind = 'validation_error'
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(SchedulingError):
    kind = 'conflict'
    status_code = status.HTTP_409_CONFLICT


class AlreadyTakenError(ConflictError):
    kind = 'already_taken'


class NotFoundError(SchedulingError):
    kind = 'not_found'
    status_code = status.HTTP_404_NOT_FOUND


class InvalidReferenceError(SchedulingError):
    kind = 'invalid_reference'
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidStateError(SchedulingError):
    kind = 'invalid_state'
    status_code = status.HTTP_409_CONFLICT


class NotReservedError(InvalidStateError):
    kind = 'not_reserved'


class AlreadyCancelledError(InvalidStateError):
    kind = 'already_cancelled'


class StorageError(SchedulingError):
    kind = 'internal_error'
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
