"""Standardized JSON response envelope helpers."""


from typing import Generic, TypeVar

from fastapi import Response
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from querypager.core.pagination import PageMeta
from querypager.services.export import ExportFile
from querypager.services.pagination import PageResult

T = TypeVar("T")

FETCHED_MESSAGE = "Data fetched successfully"


class DataResponse(BaseModel, Generic[T]):
    """Single-item response envelope: `{ data: {...} }`"""

    data: T

    model_config = {
        "populate_by_name": True,
        "alias_generator": to_camel,
    }


class ListResponse(BaseModel, Generic[T]):
    """Paginated list body: `{ data: [...], meta: {...} }`"""

    data: list[T]
    meta: PageMeta


class PaginatedResponse(BaseModel, Generic[T]):
    """Paginated list envelope: `{ success, message, data: { data: [...], meta: {...} } }`"""

    success: bool = True
    message: str = FETCHED_MESSAGE
    data: ListResponse[T]


def download(file: ExportFile) -> Response:
    """Send an export as an attachment."""
    return Response(
        content=file.content,
        media_type=file.media_type,
        headers={"Content-Disposition": f'attachment; filename="{file.filename}"'},
    )


def paginated_response(result: PageResult | ExportFile) -> dict | Response:
    """Wrap a pipeline result: a download for exports, the JSON envelope otherwise."""
    if isinstance(result, ExportFile):
        return download(result)
    return {
        "success": True,
        "message": FETCHED_MESSAGE,
        "data": result.to_dict(),
    }
