"""Turn raw result rows into lists or keyed collections of rows, partial rows or scalars."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence, Union

from .models import Row


@dataclass(frozen=True, slots=True)
class Single:
    """One named column."""

    name: str


@dataclass(frozen=True, slots=True)
class Multiple:
    """Several named columns, in caller order."""

    names: tuple[str, ...]


Columns = Union[Single, Multiple, None]
ColumnsArg = Union[str, Sequence[str], Single, Multiple, None]
Records = Union[list[Any], dict[str, Any]]


def as_columns(value: ColumnsArg) -> Columns:
    """Normalize a public ``key_field``/``key_value`` argument.

    ``"id"`` becomes ``Single("id")``, ``["id", "name"]`` becomes
    ``Multiple(("id", "name"))``, and ``None``, ``""`` or an empty sequence
    mean no selection.
    """

    if value is None or isinstance(value, (Single, Multiple)):
        return value
    if isinstance(value, str):
        return Single(value) if value else None
    names = tuple(value)
    return Multiple(names) if names else None


def to_row(record: Mapping[str, Any]) -> Row:
    """Copy a driver record into a plain ordered dict."""

    return dict(record.items())


def composite_key(row: Mapping[str, Any], columns: Single | Multiple) -> str:
    """Concatenate the key columns' text with no separator.

    Missing and NULL columns contribute an empty string. Different rows can
    collide when one value is a prefix of another (``"ab" + "c"`` vs
    ``"a" + "bc"``).
    """

    names = (columns.name,) if isinstance(columns, Single) else columns.names
    parts = []
    for name in names:
        value = row.get(name)
        parts.append("" if value is None else str(value))
    return "".join(parts)


class ResultShaper:
    """Shape rows according to an optional key selection and value selection."""

    def __init__(self, key_field: ColumnsArg = None, key_value: ColumnsArg = None) -> None:
        self.key_field = as_columns(key_field)
        self.key_value = as_columns(key_value)

    @property
    def keyed(self) -> bool:
        return self.key_field is not None

    def new_collection(self) -> Records:
        """Empty container matching the output shape."""

        return {} if self.keyed else []

    def shape(self, rows: Iterable[Mapping[str, Any]], into: Records | None = None) -> Records:
        """Shape ``rows`` in order, appending to ``into`` when given.

        Keyed output overwrites earlier entries that share a composite key.
        """

        records = self.new_collection() if into is None else into
        key_field = self.key_field
        for record in rows:
            row = to_row(record)
            value = self.value_for(row)
            if key_field is None:
                records.append(value)  # type: ignore[union-attr]
            else:
                records[composite_key(row, key_field)] = value  # type: ignore[index]
        return records

    def value_for(self, row: Row) -> Any:
        """Full row, one column's value, or a partial row."""

        key_value = self.key_value
        if key_value is None:
            return row
        if isinstance(key_value, Single):
            return row.get(key_value.name)
        return {name: row.get(name) for name in key_value.names}


__all__ = [
    "Columns",
    "ColumnsArg",
    "Multiple",
    "Records",
    "ResultShaper",
    "Single",
    "as_columns",
    "composite_key",
    "to_row",
]
