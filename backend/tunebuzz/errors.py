"""Error taxonomy shared by the lobby and game services.

Services raise these; the HTTP blueprints and Socket.IO handlers translate
them into JSON error responses or ``socketError`` room notifications.
"""


class GameError(Exception):
    status_code = 500
    code = 'error'

    def __init__(self, message=None):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class NotFound(GameError):
    status_code = 404
    code = 'not_found'


class Conflict(GameError):
    status_code = 409
    code = 'conflict'


class Forbidden(GameError):
    status_code = 403
    code = 'forbidden'


class Stale(Forbidden):
    """The requester already belongs to the lobby it asked to join."""
    status_code = 409
    code = 'stale'


class Rejected(Forbidden):
    """A lobby join that was refused; ``reason`` says why."""
    status_code = 409
    code = 'rejected'

    def __init__(self, reason, message=None):
        super().__init__(message or f'join rejected: {reason}')
        self.reason = reason

    def to_dict(self):
        payload = super().to_dict()
        payload['reason'] = self.reason
        return payload


class InvalidInput(GameError):
    status_code = 400
    code = 'invalid_input'


class GameOver(GameError):
    status_code = 409
    code = 'game_over'


class StoreUnavailable(GameError):
    status_code = 503
    code = 'store_unavailable'


class VersionConflict(Exception):
    """Conditional store write lost to a concurrent writer."""
