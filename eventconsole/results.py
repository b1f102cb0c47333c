from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import pandas as pd
from .constants import DATA_PREFIX, EXCLUDED_COLUMNS


def flatten(document: Any, prefix: str = "", sep: str = ".") -> Dict[str, Any]:
    """Flatten nested mappings and lists into dotted-path keys.

    Lists are indexed (``tags.0``); empty containers are kept as their own value.
    """
    out: Dict[str, Any] = {}
    if isinstance(document, Mapping):
        items = [(str(k), v) for k, v in document.items()]
    elif isinstance(document, (list, tuple)):
        items = [(str(i), v) for i, v in enumerate(document)]
    else:
        out[prefix] = document
        return out

    if not items and prefix:
        out[prefix] = document
        return out

    for key, value in items:
        path = f"{prefix}{sep}{key}" if prefix else key
        if isinstance(value, (Mapping, list, tuple)):
            out.update(flatten(value, path, sep))
        else:
            out[path] = value
    return out


def display_name(column: str) -> str:
    if column.startswith(DATA_PREFIX):
        return column[len(DATA_PREFIX):]
    return column


def display_names(columns: Sequence[str]) -> Dict[str, str]:
    """Map each column to its header, keeping the full path where stripping
    the ``data.`` prefix would clash with another column."""
    raw = set(columns)
    names: Dict[str, str] = {}
    for column in columns:
        short = display_name(column)
        names[column] = column if short != column and short in raw else short
    return names


def derive_columns(flat_rows: Iterable[Mapping[str, Any]], selection: Optional[Iterable[str]] = None) -> List[str]:
    seen: Dict[str, None] = {}
    for flat in flat_rows:
        for key in flat:
            if key in EXCLUDED_COLUMNS:
                continue
            seen.setdefault(key, None)
    columns = list(seen)
    if selection is not None:
        keep = set(selection)
        names = display_names(columns)
        columns = [c for c in columns if names[c] in keep]
    return columns


def materialize_rows(flat_rows: Iterable[Mapping[str, Any]], columns: Sequence[str]) -> List[List[Any]]:
    return [[flat.get(c, "") for c in columns] for flat in flat_rows]


class ResultSet:
    """Documents accumulated for one browse query plus the column chooser state."""

    def __init__(self) -> None:
        self.documents: List[Any] = []
        self._flat: List[Dict[str, Any]] = []
        self.columns: List[str] = []
        self._selection: Optional[List[str]] = None

    def __len__(self) -> int:
        return len(self.documents)

    @property
    def empty(self) -> bool:
        return not self.documents

    def clear(self) -> None:
        self.documents = []
        self._flat = []
        self.columns = []
        self._selection = None

    def ingest(self, documents: Optional[Sequence[Any]]) -> bool:
        if not documents:
            return False
        page = list(documents)
        flat_page = [flatten(d) for d in page]
        if self.empty:
            self.documents = page
            self._flat = flat_page
        else:
            self.documents.extend(page)
            self._flat.extend(flat_page)
        self.columns = derive_columns(self._flat)
        return True

    @property
    def display_columns(self) -> List[str]:
        names = display_names(self.columns)
        return [names[c] for c in self.columns]

    @property
    def selection_edited(self) -> bool:
        return self._selection is not None

    @property
    def selected_columns(self) -> List[str]:
        if self._selection is None:
            return self.display_columns
        keep = set(self._selection)
        return [name for name in self.display_columns if name in keep]

    @property
    def all_selected(self) -> bool:
        return len(self.selected_columns) == len(self.columns)

    def select_columns(self, names: Iterable[str]) -> List[str]:
        known = set(self.display_columns)
        self._selection = [n for n in names if n in known]
        return self.selected_columns

    def select_all(self) -> None:
        self._selection = None

    def search_columns(self, text: str) -> List[str]:
        return [name for name in self.display_columns if text in name]

    def visible_columns(self) -> List[str]:
        if self._selection is None:
            return list(self.columns)
        return derive_columns(self._flat, self._selection)

    def table(self) -> Tuple[List[str], List[List[Any]]]:
        columns = self.visible_columns()
        names = display_names(self.columns)
        return [names[c] for c in columns], materialize_rows(self._flat, columns)

    def to_dataframe(self) -> pd.DataFrame:
        headers, rows = self.table()
        return pd.DataFrame(rows, columns=headers)
