"""
Spreadsheet export service (CSV / XLSX) for codes, tickets and reports
"""

import io
from typing import Dict, List, Optional, Tuple

import pandas as pd

from app.utils.responses import bad_request

EXPORT_FORMATS = ["csv", "xlsx"]
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class ExportService:
    """Service for building spreadsheet downloads"""

    @staticmethod
    def normalize_format(value: Optional[str]) -> str:
        fmt = (value or "csv").strip().lower()
        if fmt not in EXPORT_FORMATS:
            bad_request("format debe ser csv o xlsx")
        return fmt

    @staticmethod
    def to_csv(rows: List[Dict], columns: Optional[List[str]] = None) -> bytes:
        df = pd.DataFrame(rows, columns=columns)
        # BOM so spreadsheet apps detect UTF-8 accents
        return df.to_csv(index=False).encode("utf-8-sig")

    @staticmethod
    def to_xlsx(sheets: Dict[str, Tuple[List[Dict], Optional[List[str]]]]) -> bytes:
        """One sheet per entry; sheet names are cut to Excel's 31 chars"""
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            for name, (rows, columns) in sheets.items():
                df = pd.DataFrame(rows, columns=columns)
                df.to_excel(writer, index=False, sheet_name=name[:31])
        return buffer.getvalue()

    @staticmethod
    def build(
        fmt: str,
        filename: str,
        rows: List[Dict],
        columns: Optional[List[str]] = None,
        sheet_name: str = "Datos",
        extra_sheets: Optional[Dict[str, Tuple[List[Dict], Optional[List[str]]]]] = None,
    ) -> Tuple[bytes, str, str]:
        """Returns (content, media_type, filename with extension)"""
        fmt = ExportService.normalize_format(fmt)
        if fmt == "xlsx":
            sheets = {sheet_name: (rows, columns)}
            sheets.update(extra_sheets or {})
            return ExportService.to_xlsx(sheets), XLSX_MEDIA_TYPE, f"{filename}.xlsx"
        return ExportService.to_csv(rows, columns), "text/csv; charset=utf-8", f"{filename}.csv"
