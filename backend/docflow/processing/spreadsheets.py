"""Workbook reading for spreadsheet documents (one page per worksheet)."""

from __future__ import annotations

import asyncio
import io
import logging

import pandas as pd

logger = logging.getLogger(__name__)


class WorkbookReader:
    """
    Opens XLS/XLSX bytes with pandas and renders each worksheet as text.

    pandas picks the engine from the file signature: openpyxl for OOXML,
    xlrd for legacy BIFF workbooks.
    """

    async def read_sheets(self, workbook_bytes: bytes) -> list[tuple[str, str]]:
        """Return ``(sheet_name, text)`` for every worksheet, in workbook order."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read_sync, workbook_bytes)

    def _read_sync(self, workbook_bytes: bytes) -> list[tuple[str, str]]:
        sheets: list[tuple[str, str]] = []
        with pd.ExcelFile(io.BytesIO(workbook_bytes)) as workbook:
            for sheet_name in workbook.sheet_names:
                frame = workbook.parse(sheet_name, header=None, dtype=str).fillna("")
                body = frame.to_csv(index=False, header=False).strip()
                text = f"{sheet_name}\n{body}" if body else str(sheet_name)
                sheets.append((str(sheet_name), text))

        logger.info("Workbook | sheets=%d", len(sheets))
        return sheets
