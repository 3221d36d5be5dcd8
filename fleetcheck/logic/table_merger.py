"""Table responses: free-form rows and template-predefined rows.

Free-form tables own their rows: the user adds and removes them and only
declared columns survive a merge. Predefined tables take row identity and
the `query` text from the template; only the response and remarks columns
are editable, and deleting a row resets it to the template default.

`needs_attention` marks rows whose response differs from the no-issue value
(`"Yes"`); how that is presented is up to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from fleetcheck.logic.errors import TableEditError
from fleetcheck.models.checklist import DisplayRow
from fleetcheck.models.template import TableColumn, TableStructure

logger = logging.getLogger(__name__)

NO_ISSUE_VALUE = "Yes"
QUERY_COLUMN = "query"
REMARKS_COLUMN = "remarks"

DEFAULT_COLUMNS: List[TableColumn] = [
    TableColumn(id="description", label="Description", type="text", required=True),
    TableColumn(id="value", label="Value", type="text", required=False),
]

DEFAULT_PREDEFINED_COLUMNS: List[TableColumn] = [
    TableColumn(id=QUERY_COLUMN, label="Query", type="text", required=True),
    TableColumn(id="response", label="Response", type="yes_no", required=True),
    TableColumn(id=REMARKS_COLUMN, label="Remarks", type="text", required=False),
]

ColumnLike = Union[TableColumn, Mapping[str, Any]]


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _columns(columns: Optional[Sequence[ColumnLike]], predefined: bool) -> List[TableColumn]:
    fallback = DEFAULT_PREDEFINED_COLUMNS if predefined else DEFAULT_COLUMNS
    out = []
    for c in columns or []:
        col = c if isinstance(c, TableColumn) else TableColumn.model_validate(dict(c))
        if col.key:
            out.append(col)
    return out or list(fallback)


def is_response_column(column: TableColumn) -> bool:
    return column.key == "response" or column.type in ("yes_no", "yes_no_na")


def needs_attention(value: Any) -> bool:
    return not _blank(value) and str(value).strip() != NO_ISSUE_VALUE


class DynamicTable:
    """One table item's layout plus the edit operations allowed on it."""

    def __init__(
        self,
        columns: Optional[Sequence[ColumnLike]] = None,
        predefined_rows: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> None:
        self.predefined_rows: Optional[List[Dict[str, Any]]] = (
            [dict(r) for r in predefined_rows] if isinstance(predefined_rows, (list, tuple)) else None
        )
        self.columns = _columns(columns, self.predefined_rows is not None)
        response_cols = [c.key for c in self.columns if is_response_column(c)]
        self.response_column: Optional[str] = response_cols[0] if response_cols else None

    @classmethod
    def from_structure(cls, structure: Optional[TableStructure]) -> "DynamicTable":
        if structure is None:
            return cls()
        return cls(structure.columns, structure.predefined_rows)

    @property
    def predefined(self) -> bool:
        return self.predefined_rows is not None

    @property
    def column_ids(self) -> List[str]:
        return [c.key for c in self.columns]

    def _row_default(self, index: int) -> Dict[str, Any]:
        template_row = self.predefined_rows[index] if self.predefined_rows else {}
        values = dict(template_row)
        if self.response_column and _blank(values.get(self.response_column)):
            values[self.response_column] = NO_ISSUE_VALUE
        return values

    def _display(self, row_id: str, values: Dict[str, Any], predefined: bool) -> DisplayRow:
        flag = needs_attention(values.get(self.response_column)) if self.response_column else False
        return DisplayRow(row_id=row_id, predefined=predefined, values=values, needs_attention=flag)

    def merge(self, stored_rows: Optional[Sequence[Mapping[str, Any]]] = None) -> List[DisplayRow]:
        stored = [r for r in (stored_rows or []) if isinstance(r, Mapping)]
        if self.predefined_rows is not None:
            rows = []
            for index, template_row in enumerate(self.predefined_rows):
                values = self._row_default(index)
                if index < len(stored):
                    overlay = {k: v for k, v in stored[index].items() if not str(k).startswith("_") and v is not None}
                    values.update(overlay)
                if QUERY_COLUMN in template_row:
                    values[QUERY_COLUMN] = template_row[QUERY_COLUMN]
                rows.append(self._display(f"predefined_row_{index}", values, True))
            if len(stored) > len(self.predefined_rows):
                logger.warning(
                    "table_merge_extra_rows_dropped predefined=%s stored=%s",
                    len(self.predefined_rows),
                    len(stored),
                )
            return rows

        ids = self.column_ids
        rows = []
        for row in stored:
            values = {k: row[k] for k in ids if k in row and not _blank(row[k])}
            if values:
                rows.append(self._display(f"row_{len(rows)}", values, False))
        return rows

    def _check_index(self, rows: Sequence[DisplayRow], index: int) -> None:
        if index < 0 or index >= len(rows):
            raise TableEditError(f"row index {index} out of range")

    def delete_row(self, rows: Sequence[DisplayRow], index: int) -> List[DisplayRow]:
        self._check_index(rows, index)
        if not self.predefined:
            kept = [r for i, r in enumerate(rows) if i != index]
            return [self._display(f"row_{i}", dict(r.values), False) for i, r in enumerate(kept)]
        out = list(rows)
        values = dict(out[index].values)
        default = self._row_default(index)
        if self.response_column:
            values[self.response_column] = default.get(self.response_column)
        values[REMARKS_COLUMN] = ""
        out[index] = self._display(out[index].row_id, values, True)
        return out

    def update_cell(self, rows: Sequence[DisplayRow], index: int, column_id: str, value: Any) -> List[DisplayRow]:
        self._check_index(rows, index)
        if column_id not in self.column_ids:
            raise TableEditError(f"unknown column {column_id}")
        row = rows[index]
        if row.predefined and column_id == QUERY_COLUMN:
            raise TableEditError("the query of a predefined row is read-only")
        out = list(rows)
        values = dict(row.values)
        values[column_id] = value
        out[index] = self._display(row.row_id, values, row.predefined)
        return out

    def add_row(self, rows: Sequence[DisplayRow], values: Mapping[str, Any]) -> List[DisplayRow]:
        if self.predefined:
            raise TableEditError("rows cannot be added to a predefined table")
        missing = [c.label or c.key for c in self.columns if c.required and _blank(values.get(c.key))]
        if missing:
            raise TableEditError(f"required fields missing: {', '.join(missing)}")
        clean = {k: values[k] for k in self.column_ids if k in values and not _blank(values[k])}
        return list(rows) + [self._display(f"row_{len(rows)}", clean, False)]

    def to_table_data(self, rows: Sequence[DisplayRow]) -> List[Dict[str, Any]]:
        """Wire rows for persistence."""
        ids = self.column_ids
        if self.predefined_rows is not None:
            out = []
            for index, row in enumerate(rows):
                clean = {k: row.values[k] for k in ids if row.values.get(k) is not None}
                if index < len(self.predefined_rows) and QUERY_COLUMN in self.predefined_rows[index]:
                    clean[QUERY_COLUMN] = self.predefined_rows[index][QUERY_COLUMN]
                elif QUERY_COLUMN in row.values:
                    clean[QUERY_COLUMN] = row.values[QUERY_COLUMN]
                out.append(clean)
            return out
        out = []
        for row in rows:
            clean = {k: row.values[k] for k in ids if not _blank(row.values.get(k))}
            if clean:
                out.append(clean)
        return out


def merge_table(
    columns: Optional[Sequence[ColumnLike]],
    predefined_rows: Optional[Sequence[Mapping[str, Any]]],
    stored_rows: Optional[Sequence[Mapping[str, Any]]],
) -> List[DisplayRow]:
    return DynamicTable(columns, predefined_rows).merge(stored_rows)


__all__ = [
    "NO_ISSUE_VALUE",
    "DEFAULT_COLUMNS",
    "DEFAULT_PREDEFINED_COLUMNS",
    "DynamicTable",
    "is_response_column",
    "merge_table",
    "needs_attention",
]
