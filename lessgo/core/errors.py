from dataclasses import dataclass
from typing import List


class LessGoError(Exception):
    pass


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def __str__(self) -> str:
        return self.message


class ValidationError(LessGoError):
    """A user-correctable problem with a single field."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class DraftValidationError(ValidationError):
    """Every outstanding problem of a draft, reported at once."""

    def __init__(self, errors: List[FieldError]):
        first = errors[0] if errors else FieldError("draft", "Draft is incomplete")
        super().__init__(first.field, first.message)
        self.errors = list(errors)

    @property
    def fields(self) -> List[str]:
        return [e.field for e in self.errors]


class PersistenceError(LessGoError):
    pass


class MigrationError(LessGoError):
    pass


class ChatError(LessGoError):
    pass
