from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator
import logging

from sqlalchemy.exc import SQLAlchemyError

from app.core.extensions import db

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


class ValidationError(ValueError):
    """Local input rejection, raised before anything reaches the store."""

    def __init__(self, errors: list[FieldError]):
        self.errors = list(errors)
        super().__init__("; ".join(error.message for error in self.errors) or "Datos inválidos")

    def by_field(self) -> dict[str, str]:
        fields: dict[str, str] = {}
        for error in self.errors:
            fields.setdefault(error.field, error.message)
        return fields


class RemoteError(RuntimeError):
    """Anything the store or the auth service reports. Only the message is kept."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


@contextmanager
def remote_call(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        db.session.rollback()
        message = str(getattr(exc, "orig", None) or exc)
        logger.error("Store call failed", extra={"operation": operation, "error": message})
        raise RemoteError(message) from exc
