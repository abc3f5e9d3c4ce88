# chaintrack/errors.py
"""
Domain error taxonomy.

Every error is recoverable at the call site. Routes never catch them: the
handler registered in ``main.py`` renders them as JSON with the status code
declared on the class.
"""
from typing import Any, Dict


class ChainTrackError(Exception):
    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "error": type(self).__name__, "context": self.context}


# Malformed input: empty serial, non-positive quantity, mismatched selection
class ValidationError(ChainTrackError):
    status_code = 422


# Entity is not in the state the operation requires
class PreconditionError(ChainTrackError):
    status_code = 409

    def __init__(self, message: str, *, entity: str = None, entity_id: Any = None,
                 expected: Any = None, actual: Any = None, **context: Any):
        if entity is not None:
            context["entity"] = entity
        if entity_id is not None:
            context["id"] = entity_id
        if expected is not None:
            context["expected"] = expected
        if actual is not None:
            context["actual"] = actual
        super().__init__(message, **context)


# Optimistic version check failed on flush/commit
class ConcurrencyError(PreconditionError):
    pass


class InsufficientStockError(ChainTrackError):
    status_code = 409


class NotFoundError(ChainTrackError):
    status_code = 404


class AuthorizationError(ChainTrackError):
    status_code = 403
