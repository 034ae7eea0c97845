"""Domain exceptions raised by the service layer and rendered by the API."""

from typing import Optional


class BetpoolError(Exception):
    """Base domain exception carrying the HTTP status it maps to."""

    status_code = 500
    kind = "Internal"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class Unauthenticated(BetpoolError):
    """No credential, or an invalid one."""

    status_code = 401
    kind = "Unauthenticated"


class Forbidden(BetpoolError):
    """Valid credential but insufficient role, inactive account or no access."""

    status_code = 403
    kind = "Forbidden"


class NotFound(BetpoolError):
    """Bet, option, user or assignee absent."""

    status_code = 404
    kind = "NotFound"


class InvalidInput(BetpoolError):
    """Malformed request body or parameters."""

    status_code = 400
    kind = "InvalidInput"


class InvalidState(BetpoolError):
    """Operation not legal for the bet's current status or visibility."""

    status_code = 400
    kind = "InvalidState"


class InvalidOption(BetpoolError):
    """Option id or text does not belong to the bet."""

    status_code = 400
    kind = "InvalidOption"


class Conflict(BetpoolError):
    """Duplicate participation or fully redundant assignee list."""

    status_code = 409
    kind = "Conflict"
