class ReservationError(Exception):
    """Base for every refusal raised by the reservation engine."""

    status_code = 400

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        data = {"error": self.message}
        data.update({k: v for k, v in self.details.items() if v is not None})
        return data


class ValidationError(ReservationError):
    status_code = 400


class AuthenticationError(ReservationError):
    status_code = 401


class NotFoundError(ReservationError):
    status_code = 404


class AuthorizationError(ReservationError):
    status_code = 403


class ConflictError(ReservationError):
    status_code = 409

    def __init__(self, message: str, conflict_type=None, conflict_id=None, **details):
        super().__init__(message, conflict_type=conflict_type, conflict_id=conflict_id, **details)
        self.conflict_type = conflict_type
        self.conflict_id = conflict_id


class StateError(ReservationError):
    status_code = 400


class StorageError(ReservationError):
    status_code = 500
