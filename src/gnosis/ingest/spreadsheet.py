"""Spreadsheet decoder — one text line per row, per sheet, via openpyxl."""

from __future__ import annotations

from io import BytesIO

import openpyxl

from gnosis.ingest.base import BaseDecoder


class SpreadsheetDecoder(BaseDecoder):
    """Serialise every sheet of an .xlsx workbook as text.

    Output per sheet::

        Sheet: <name>
        cell, cell, cell
        ...

    Cached formula values are used (``data_only=True``). Empty cells render
    as empty strings, trailing empty cells and fully empty rows are dropped.
    """

    extensions = frozenset({"xlsx"})

    def _decode(self, data: bytes) -> str:
        workbook = openpyxl.load_workbook(BytesIO(data), read_only=True, data_only=True)
        try:
            lines: list[str] = []
            for sheet in workbook.worksheets:
                lines.append(f"Sheet: {sheet.title}")
                for row in sheet.iter_rows(values_only=True):
                    cells = [_format_cell(v) for v in row]
                    while cells and cells[-1] == "":
                        cells.pop()
                    if cells:
                        lines.append(", ".join(cells))
            return "\n".join(lines) + "\n" if lines else ""
        finally:
            workbook.close()


def _format_cell(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
