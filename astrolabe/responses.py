"""JSON envelope helpers shared by the read API.

Every response body has the shape ``{"status": "ok" | "error", "data"?,
"message"?, "meta"?}``.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from astrolabe.schemas.api import PageMeta

QueryModel = TypeVar("QueryModel", bound=BaseModel)

INVALID_DATA_MESSAGE = "The given data was invalid."
SERVER_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."

_LOC_PREFIXES = ("query", "path", "body")


class ApiError(Exception):
    """An error the read API turns into an error envelope."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.meta = meta


class NotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND


class ApiValidationError(ApiError):
    """Invalid request input, with messages grouped by field."""

    status_code = 422

    def __init__(self, errors: Mapping[str, list[str]]) -> None:
        super().__init__(INVALID_DATA_MESSAGE, meta={"errors": dict(errors)})
        self.errors = dict(errors)

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> ApiValidationError:
        return cls(field_errors(exc.errors(include_url=False)))


def field_errors(errors: list[dict[str, Any]]) -> dict[str, list[str]]:
    """Group pydantic error dicts into ``{field: [message, ...]}``."""
    grouped: dict[str, list[str]] = {}
    for error in errors:
        loc = [
            str(part) for part in error.get("loc", ()) if part not in _LOC_PREFIXES
        ]
        field = ".".join(loc) or "request"
        message = str(error.get("msg", "is invalid"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        grouped.setdefault(field, []).append(message)
    return grouped


def api_response(
    data: Any = None,
    *,
    status_code: int = status.HTTP_200_OK,
    meta: dict[str, Any] | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {"status": "ok", "data": jsonable_encoder(data)}
    if meta:
        body["meta"] = jsonable_encoder(meta)
    return JSONResponse(body, status_code=status_code)


def error_response(
    message: str,
    status_code: int,
    meta: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {"status": "error", "message": message}
    if meta:
        body["meta"] = jsonable_encoder(meta)
    return JSONResponse(body, status_code=status_code, headers=headers)


def api_error_response(exc: ApiError) -> JSONResponse:
    return error_response(exc.message, exc.status_code, exc.meta)


def server_error_response() -> JSONResponse:
    return error_response(
        SERVER_ERROR_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR
    )


def validated_query(model: type[QueryModel]) -> Callable[[Request], QueryModel]:
    """Build a dependency that validates the query string against ``model``.

    FastAPI's own query validation would answer with its ``detail`` list;
    this keeps the error in the envelope format.
    """

    def dependency(request: Request) -> QueryModel:
        try:
            return model.model_validate(dict(request.query_params))
        except ValidationError as exc:
            raise ApiValidationError.from_pydantic(exc) from exc

    dependency.__name__ = f"validated_{model.__name__}"
    return dependency


def paginate(
    db: Session,
    stmt: Select,
    *,
    page: int,
    per_page: int,
    schema: type[BaseModel],
) -> tuple[list[BaseModel], PageMeta]:
    """Run one page of ``stmt`` and count the full result."""
    counted = stmt.order_by(None).subquery()
    total = db.scalar(select(func.count()).select_from(counted))
    total = total or 0
    rows = db.scalars(stmt.limit(per_page).offset((page - 1) * per_page)).all()
    meta = PageMeta(
        page=page,
        per_page=per_page,
        total=total,
        last_page=max(1, math.ceil(total / per_page)),
    )
    return [schema.model_validate(row) for row in rows], meta
