class CompetitionError(Exception):
    """Base class for errors surfaced to the people using the app."""


class ValidationError(CompetitionError):
    def __init__(self, field: str, code: str, message: str = None):
        self.field = field
        self.code = code
        self.message = message or f"Invalid value for '{field}'"
        super().__init__(self.message)
    
    def to_dict(self) -> dict:
        return {
            'error': self.message,
            'field': self.field,
            'code': self.code
        }


class NotFoundError(CompetitionError):
    def __init__(self, entity: str, entity_id: str, message: str = None):
        self.entity = entity
        self.entity_id = entity_id
        self.message = message or f"{entity.capitalize()} '{entity_id}' not found"
        super().__init__(self.message)


class PersistenceError(CompetitionError):
    def __init__(self, operation: str, reason: str = None):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Persistence failure during {operation}" + (f": {reason}" if reason else ""))


class UploadError(CompetitionError):
    def __init__(self, message: str, too_large: bool = False):
        self.message = message
        self.too_large = too_large
        super().__init__(message)
