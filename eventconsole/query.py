from typing import Any, Dict, Iterator, List, Literal, Optional, Sequence
from pydantic import BaseModel, ConfigDict, Field
from .constants import (
    INTEGRAL_TYPES,
    NUMERIC_TYPES,
    OPERATORS,
    PAGE_SIZE,
    TIME_RANGE_MIN_MS,
    TIMESTAMP_FIELD,
)

Operator = Literal[
    "equals", "not_equals", "less_than", "less_equal",
    "greater_than", "greater_equal", "contains", "between",
]
SortOrder = Literal["asc", "desc"]
InputMode = Literal["numeric", "text"]


class FilterValidationError(Exception):
    pass


class FieldMapping(BaseModel):
    field: str
    type: str = "STRING"

    @property
    def numeric(self) -> bool:
        return self.type.upper() in NUMERIC_TYPES

    @property
    def integral(self) -> bool:
        return self.type.upper() in INTEGRAL_TYPES


class Filter(BaseModel):
    """One predicate as it goes over the wire."""
    model_config = ConfigDict(populate_by_name=True)

    field: str
    operator: str
    value: Any = None
    from_: Any = Field(default=None, alias="from")
    to: Any = None
    duration: Optional[str] = None

    def wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Sort(BaseModel):
    field: str = TIMESTAMP_FIELD
    order: SortOrder = "desc"


class Query(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    opcode: Literal["query"] = "query"
    table: str
    filters: List[Filter] = Field(default_factory=list)
    sort: Sort = Field(default_factory=Sort)
    from_: int = Field(default=0, ge=0, alias="from")
    limit: int = PAGE_SIZE

    def wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TimeRange(BaseModel):
    from_ms: int = 0
    to_ms: int = 0

    @property
    def is_set(self) -> bool:
        # sub-second windows count as "no range"
        return self.to_ms - self.from_ms > TIME_RANGE_MIN_MS

    def to_filter(self) -> Filter:
        return Filter(field=TIMESTAMP_FIELD, operator="between", from_=self.from_ms, to=self.to_ms)


class FilterRow(BaseModel):
    id: int
    field_index: int
    operator: Operator = "equals"
    value: Any = ""
    between_value: Any = ""
    input_mode: InputMode = "text"
    between_enabled: bool = False


def _resolve(fields: Sequence[FieldMapping], index: int) -> FieldMapping:
    if index < 0 or index >= len(fields):
        raise FilterValidationError(f"Field index {index} does not resolve in the current field list")
    return fields[index]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def coerce_value(raw: Any, mapping: FieldMapping) -> Any:
    if _is_blank(raw):
        raise FilterValidationError(f"A value is required for '{mapping.field}'")
    if not mapping.numeric:
        return str(raw)
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return raw
    text = str(raw).strip()
    try:
        return int(text)
    except ValueError:
        pass
    if mapping.integral:
        raise FilterValidationError(f"'{mapping.field}' expects a whole number, got {raw!r}")
    try:
        return float(text)
    except ValueError:
        raise FilterValidationError(f"'{mapping.field}' expects a number, got {raw!r}")


class FilterRowSet:
    """Keyed collection of the rows currently shown in the query form.

    Ids come from a session-wide counter so a deleted row's id is never handed
    out again.
    """

    def __init__(self) -> None:
        self._rows: Dict[int, FilterRow] = {}
        self._next_id = 0

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[FilterRow]:
        return iter(list(self._rows.values()))

    def __contains__(self, row_id: int) -> bool:
        return row_id in self._rows

    @property
    def ids(self) -> List[int]:
        return list(self._rows)

    def get(self, row_id: int) -> Optional[FilterRow]:
        return self._rows.get(row_id)

    def add(self, fields: Sequence[FieldMapping], field_index: int = 0) -> FilterRow:
        mapping = _resolve(fields, field_index)
        row = FilterRow(
            id=self._next_id,
            field_index=field_index,
            input_mode="numeric" if mapping.numeric else "text",
        )
        self._rows[row.id] = row
        self._next_id += 1
        return row

    def remove(self, row_id: int) -> None:
        self._rows.pop(row_id, None)

    def clear(self) -> None:
        self._rows.clear()

    def _require(self, row_id: int) -> FilterRow:
        row = self._rows.get(row_id)
        if row is None:
            raise FilterValidationError(f"No filter row with id {row_id}")
        return row

    def set_field(self, row_id: int, fields: Sequence[FieldMapping], field_index: int) -> FilterRow:
        row = self._require(row_id)
        mapping = _resolve(fields, field_index)
        row.field_index = field_index
        row.input_mode = "numeric" if mapping.numeric else "text"
        row.value = ""
        return row

    def set_operator(self, row_id: int, operator: str) -> FilterRow:
        if operator not in OPERATORS:
            raise FilterValidationError(f"Unsupported operator: {operator}")
        row = self._require(row_id)
        row.operator = operator
        row.between_enabled = operator == "between"
        row.between_value = ""
        return row

    def set_value(self, row_id: int, value: Any, between_value: Any = None) -> FilterRow:
        row = self._require(row_id)
        row.value = value
        if between_value is not None:
            if not row.between_enabled:
                raise FilterValidationError("Second value is only accepted for 'between'")
            row.between_value = between_value
        return row

    def to_filters(self, fields: Sequence[FieldMapping]) -> List[Filter]:
        out: List[Filter] = []
        for row in self:
            mapping = _resolve(fields, row.field_index)
            value = coerce_value(row.value, mapping)
            if row.operator == "between":
                upper = coerce_value(row.between_value, mapping)
                out.append(Filter(field=mapping.field, operator="between", from_=value, to=upper))
            else:
                out.append(Filter(field=mapping.field, operator=row.operator, value=value))
        return out


def build_request(
    table: str,
    rows: FilterRowSet,
    fields: Sequence[FieldMapping],
    time_range: Optional[TimeRange] = None,
    sort_order: SortOrder = "desc",
    offset: int = 0,
) -> Query:
    filters = rows.to_filters(fields)
    if time_range is not None and time_range.is_set:
        filters.append(time_range.to_filter())
    return Query(
        table=table,
        filters=filters,
        sort=Sort(order=sort_order),
        from_=offset,
        limit=PAGE_SIZE,
    )
