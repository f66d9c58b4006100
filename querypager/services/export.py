"""Spreadsheet export of a materialized result set.

Headings and row mapping must agree: when neither is configured both come
from the first row's dict form, so rows of a different shape are written
as-is and may not line up with the headings.
"""

from __future__ import annotations

import io
import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from querypager.core.config import settings
from querypager.core.exceptions import ExportError

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass(frozen=True)
class ExportFile:
    """A finished spreadsheet ready to be sent as a download."""

    content: bytes
    filename: str
    media_type: str = XLSX_MEDIA_TYPE


def export_filename(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{settings.export_filename_prefix}-{now.strftime('%Y%m%d%H%M%S')}.xlsx"


def _cell_value(value: Any) -> Any:
    # openpyxl rejects containers and timezone-aware datetimes
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    if value is None or isinstance(value, (str, int, float, bool, datetime)):
        return value
    return str(value)


class PaginationExport:
    """Rows -> headings + mapped rows -> xlsx bytes."""

    def __init__(
        self,
        rows: Sequence[Any],
        represent: Callable[[Any], dict[str, Any]],
        headings: Sequence[str] | None = None,
        mapper: Callable[[Any], Sequence[Any]] | None = None,
    ):
        self._rows = rows
        self._represent = represent
        self._headings = headings
        self._mapper = mapper

    def headings(self) -> list[str]:
        if self._headings is not None:
            return list(self._headings)
        if not self._rows:
            return []
        return list(self._represent(self._rows[0]).keys())

    def map(self, row: Any) -> list[Any]:
        if self._mapper is not None:
            return list(self._mapper(row))
        return list(self._represent(row).values())

    def build_workbook(self) -> Workbook:
        wb = Workbook()
        ws = wb.active
        ws.title = "Export"

        headings = self.headings()
        ws.append(headings)
        for cell in ws[1]:
            cell.font = Font(bold=True)

        width = len(headings)
        for row in self._rows:
            values = [_cell_value(v) for v in self.map(row)]
            width = max(width, len(values))
            ws.append(values)

        for col in range(1, width + 1):
            ws.column_dimensions[get_column_letter(col)].auto_size = True
        return wb

    def to_bytes(self) -> bytes:
        try:
            wb = self.build_workbook()
            output = io.BytesIO()
            wb.save(output)
        except (TypeError, ValueError) as exc:
            raise ExportError(f"Failed to build spreadsheet: {exc}") from exc
        return output.getvalue()

    def to_file(self) -> ExportFile:
        content = self.to_bytes()
        filename = export_filename()
        logger.debug("Built %s (%d rows, %d bytes)", filename, len(self._rows), len(content))
        return ExportFile(content=content, filename=filename)
