from typing import List, NamedTuple


class FieldError(NamedTuple):
    field: str
    message: str


class ValidationFailed(Exception):
    """Business validation failure carrying every offending field."""

    def __init__(self, errors: List[FieldError], message: str = "Validation failed"):
        super().__init__(message)
        self.errors = list(errors)
        self.message = message

    def as_list(self):
        return [{"field": e.field, "message": e.message} for e in self.errors]


class WorkflowActionError(Exception):
    """A workflow step that the stage table or the caller's permissions do not allow."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
