from __future__ import annotations

import csv
import enum
import io
import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Literal

from fastapi import Response
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

ExportFormat = Literal["csv", "json", "xlsx"]

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
JSON_MEDIA_TYPE = "application/json"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADER_FILL = PatternFill(fill_type="solid", fgColor="1E3A5F")
ZEBRA_FILL = PatternFill(fill_type="solid", fgColor="F5F8FB")
HEADER_FONT = Font(bold=True, color="FFFFFF")
THIN_SIDE = Side(style="thin", color="D5E2EC")
THIN_BORDER = Border(left=THIN_SIDE, right=THIN_SIDE, top=THIN_SIDE, bottom=THIN_SIDE)


@dataclass(frozen=True)
class ExportColumn:
    key: str
    header: str


@dataclass
class ExportBundle:
    """Fully materialised export: every format renders the same rows, so row counts always agree."""

    name: str
    columns: list[ExportColumn]
    rows: list[dict[str, Any]]
    filters: dict[str, Any] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.rows)


def _plain(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ";".join(str(item) for item in value)
    return value


def _cell_text(value: Any) -> str:
    value = _plain(value)
    if value is None:
        return ""
    return str(value)


def _to_excel_value(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    if isinstance(value, date):
        return value
    return _plain(value)


def render_csv(bundle: ExportBundle) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([column.header for column in bundle.columns])
    for row in bundle.rows:
        writer.writerow([_cell_text(row.get(column.key)) for column in bundle.columns])
    return buffer.getvalue()


def render_json(bundle: ExportBundle, *, exported_at: datetime | None = None) -> dict[str, Any]:
    exported_at = exported_at or datetime.now(timezone.utc)
    return {
        "status": "success",
        "data": [
            {column.key: _plain(row.get(column.key)) for column in bundle.columns}
            for row in bundle.rows
        ],
        "meta": {
            "total": bundle.total,
            "exportedAt": exported_at.isoformat(),
            **{key: _plain(value) for key, value in bundle.filters.items() if value is not None},
        },
    }


def _style_header(ws: Worksheet, row: int = 1) -> None:
    for cell in ws[row]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.border = THIN_BORDER


def _auto_width(ws: Worksheet) -> None:
    for column_cells in ws.iter_cols(min_row=1, max_row=ws.max_row, min_col=1, max_col=ws.max_column):
        max_len = 0
        col_letter = get_column_letter(column_cells[0].column)
        for cell in column_cells:
            value = "" if cell.value is None else str(cell.value)
            max_len = max(max_len, len(value))
        ws.column_dimensions[col_letter].width = min(max_len + 2, 45)


def render_xlsx(bundle: ExportBundle) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = bundle.name[:31] or "Export"
    ws.append([column.header for column in bundle.columns])
    _style_header(ws)

    for index, row in enumerate(bundle.rows, start=2):
        ws.append([_to_excel_value(row.get(column.key)) for column in bundle.columns])
        for cell in ws[index]:
            cell.border = THIN_BORDER
            if index % 2 == 1:
                cell.fill = ZEBRA_FILL

    ws.freeze_panes = "A2"
    _auto_width(ws)

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def build_export_response(bundle: ExportBundle, export_format: ExportFormat) -> Response:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    filename = f"{bundle.name}-{stamp}.{export_format}"
    headers = {
        "Content-Disposition": f'attachment; filename="{filename}"',
        "X-Total-Count": str(bundle.total),
    }

    if export_format == "json":
        content = json.dumps(render_json(bundle), default=str, ensure_ascii=False)
        return Response(content=content, media_type=JSON_MEDIA_TYPE, headers=headers)
    if export_format == "xlsx":
        return Response(content=render_xlsx(bundle), media_type=XLSX_MEDIA_TYPE, headers=headers)
    return Response(content=render_csv(bundle), media_type=CSV_MEDIA_TYPE, headers=headers)
