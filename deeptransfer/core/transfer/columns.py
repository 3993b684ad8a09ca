from __future__ import annotations

import json
from typing import Any, Iterable, List

from deeptransfer.core.catalog.models import TECHNICAL_FIELDS, Catalog, ElementDescriptor

from .resolver import lookup_entity

CSV_DELIMITER = ";"
CSV_LINE_TERMINATOR = "\n"

_QUOTE_TRIGGERS = (CSV_DELIMITER, "\n", "\r")


def _is_flat_column(el: ElementDescriptor) -> bool:
    if el.is_association or el.is_composition or el.is_structured:
        return False
    if el.virtual or el.technical:
        return False
    return el.name not in TECHNICAL_FIELDS


def flat_columns(catalog: Catalog, entity_name: str) -> List[str]:
    """Scalar, non-structural, non-technical fields of an entity in declared order."""
    entity = lookup_entity(catalog, entity_name)
    return [el.name for el in entity.elements if _is_flat_column(el)]


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def escape_csv(value: Any) -> str:
    if value is None:
        return ""
    s = _stringify(value)
    if '"' in s:
        s = s.replace('"', '""')
    if any(t in s for t in _QUOTE_TRIGGERS):
        s = f'"{s}"'
    return s


def csv_line(values: Iterable[Any]) -> str:
    return CSV_DELIMITER.join(escape_csv(v) for v in values) + CSV_LINE_TERMINATOR


def csv_header(columns: Iterable[str]) -> str:
    return CSV_DELIMITER.join(columns) + CSV_LINE_TERMINATOR
