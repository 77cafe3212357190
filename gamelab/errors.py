"""Error taxonomy for session and round operations.

Every error that reaches the HTTP layer derives from ``GameError`` and
carries the status code it is rendered with. ``EvaluationAbortedError`` is
internal: the service logs it and never lets it reach a client.
"""


class GameError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message, 'type': type(self).__name__}


class ValidationError(GameError):
    status_code = 400


class InvalidRoleError(ValidationError):
    """A player tried to act in a slot their role does not allow."""


class PermissionDeniedError(GameError):
    status_code = 403


class NotFoundError(GameError):
    status_code = 404


class InvalidStateError(GameError):
    status_code = 409


class EvaluationAbortedError(GameError):
    """Round evaluation was attempted with an incomplete decision set."""

    status_code = 500
