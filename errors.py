"""
=============================================================================
ERRORS.PY — Domain errors
=============================================================================
The core never raises HTTPException. It raises these, and main.py turns them
into HTTP responses:

  ValidationError       → 400
  PermissionDeniedError → 403
  NotFoundError         → 404
"""


class StreaklyError(Exception):
    """Base class for every domain error"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StreaklyError):
    """Malformed input to challenge, task or progress creation"""
    status_code = 400


class NotFoundError(StreaklyError):
    """A referenced challenge/task/progress/badge/user does not exist"""
    status_code = 404

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.entity_id = entity_id


class PermissionDeniedError(StreaklyError):
    """The resource exists but belongs to someone else"""
    status_code = 403
