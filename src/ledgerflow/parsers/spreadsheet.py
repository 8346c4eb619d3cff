"""
Workbook decoding on top of openpyxl.

Cells are exposed with a zero-based (row, col) lookup and a small set of
value kinds. Date cells are handed back as serial numbers; converting them
is left to the institution parser.
"""

import logging
import zipfile
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from io import BytesIO
from typing import Dict, List, Optional, Tuple, Union

from openpyxl import load_workbook
from openpyxl.utils.datetime import to_excel
from openpyxl.utils.exceptions import InvalidFileException

from ledgerflow.core.exceptions import SpreadsheetDecodeError

logger = logging.getLogger(__name__)


class CellKind(Enum):
    STRING = "string"
    NUMBER = "number"
    DATE_SERIAL = "date_serial"


@dataclass(frozen=True)
class Cell:
    """A typed, non-empty cell."""

    kind: CellKind
    value: Union[str, float]

    @property
    def text(self) -> str:
        if self.kind == CellKind.STRING:
            return self.value
        if float(self.value).is_integer():
            return str(int(self.value))
        return str(self.value)


class Sheet:
    """Materialized cell grid of one worksheet."""

    def __init__(self, name: str, cells: Dict[Tuple[int, int], Cell]):
        self.name = name
        self._cells = cells
        # Used range, zero-based and inclusive; -1 when the sheet is empty
        self.max_row = max((r for r, _ in cells), default=-1)
        self.max_col = max((c for _, c in cells), default=-1)

    def cell(self, row: int, col: int) -> Optional[Cell]:
        """Get the cell at (row, col), None when blank or out of range."""
        return self._cells.get((row, col))

    def row_values(self, row: int) -> List[Optional[Cell]]:
        return [self.cell(row, col) for col in range(self.max_col + 1)]

    def __repr__(self) -> str:
        return f"Sheet({self.name!r}, rows={self.max_row + 1}, cols={self.max_col + 1})"


class Workbook:
    """Read-only view of a workbook's sheets."""

    def __init__(self, sheets: Dict[str, Sheet]):
        self._sheets = sheets

    @property
    def sheet_names(self) -> List[str]:
        return list(self._sheets)

    def sheet(self, name: str) -> Sheet:
        try:
            return self._sheets[name]
        except KeyError:
            raise KeyError(f"No sheet named {name!r}") from None


def _to_cell(value) -> Optional[Cell]:
    if value is None:
        return None
    if isinstance(value, bool):
        return Cell(CellKind.NUMBER, float(value))
    if isinstance(value, (datetime, date)):
        return Cell(CellKind.DATE_SERIAL, float(to_excel(value)))
    if isinstance(value, (int, float)):
        return Cell(CellKind.NUMBER, float(value))

    text = str(value)
    if not text.strip():
        return None
    return Cell(CellKind.STRING, text)


def open_workbook(raw: bytes) -> Workbook:
    """
    Open workbook bytes.

    Args:
        raw: .xlsx file content

    Returns:
        Workbook with every sheet materialized

    Raises:
        SpreadsheetDecodeError: If the bytes are not a readable workbook
    """
    try:
        wb = load_workbook(BytesIO(raw), data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise SpreadsheetDecodeError(f"Cannot open workbook: {e}") from e

    sheets = {}
    try:
        for ws in wb.worksheets:
            cells = {}
            for r, row in enumerate(ws.iter_rows(values_only=True)):
                for c, value in enumerate(row):
                    cell = _to_cell(value)
                    if cell is not None:
                        cells[(r, c)] = cell
            sheets[ws.title] = Sheet(ws.title, cells)
            logger.debug(f"Loaded sheet {ws.title!r} with {len(cells)} cells")
    finally:
        wb.close()

    return Workbook(sheets)
