"""
Wager rejections. Every error here is a recoverable, user-visible condition:
the request is refused and no balance or history has been touched.
"""


class WagerError(Exception):
    code = "wager_error"
    status_code = 400

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class NotAuthenticated(WagerError):
    """Login required"""
    code = "not_authenticated"
    status_code = 401


class InvalidSelection(WagerError):
    """Malformed or out-of-range wager parameters"""
    code = "invalid_selection"
    status_code = 422


class InsufficientFunds(WagerError):
    """Insufficient balance"""
    code = "insufficient_funds"
    status_code = 400


class AlreadySettled(WagerError):
    """Wager already settled"""
    code = "already_settled"
    status_code = 409


class NotFound(WagerError):
    """Unknown wager"""
    code = "not_found"
    status_code = 404
