class StudioError(Exception):
    """Base class for programme studio failures."""


class ValidationError(StudioError):
    """A requested operation cannot run on the document as it stands."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EntityNotFound(StudioError, KeyError):
    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id

    def __str__(self):
        return self.args[0]
