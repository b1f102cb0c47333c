from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .query import FieldMapping, FilterRowSet, Query, SortOrder, TimeRange, build_request
from .results import ResultSet
from .telemetry import log_event


@dataclass(frozen=True)
class QueryTicket:
    table: str
    generation: int
    offset: int


@dataclass(frozen=True)
class PendingQuery:
    ticket: QueryTicket
    query: Query


class BrowseSession:
    """State of the browse pane for one selected table.

    ``select_table`` swaps the table, field list, filter rows and results in
    one step and bumps the generation, so any response still in flight for the
    old table is dropped when it lands.
    """

    def __init__(self) -> None:
        self.table: str = ""
        self.fields: List[FieldMapping] = []
        self.rows = FilterRowSet()
        self.results = ResultSet()
        self.time_range = TimeRange()
        self.sort_order: SortOrder = "desc"
        self.generation = 0

    def select_table(self, table: str, fields: List[FieldMapping]) -> None:
        self.table = table
        self.fields = list(fields)
        self.rows = FilterRowSet()
        self.results = ResultSet()
        self.generation += 1

    def clear(self) -> None:
        self.table = ""
        self.fields = []
        self.rows = FilterRowSet()
        self.results = ResultSet()
        self.generation += 1

    def add_filter_row(self, field_index: int = 0):
        return self.rows.add(self.fields, field_index)

    def remove_filter_row(self, row_id: int) -> None:
        self.rows.remove(row_id)

    def set_time_range(self, from_ms: int, to_ms: int) -> None:
        self.time_range = TimeRange(from_ms=from_ms, to_ms=to_ms)

    def prepare_query(self, reset: bool) -> PendingQuery:
        # validation happens before any state changes so a bad row leaves results intact
        offset = 0 if reset else len(self.results)
        query = build_request(
            self.table, self.rows, self.fields, self.time_range, self.sort_order, offset
        )
        if reset:
            self.results = ResultSet()
            self.generation += 1
        ticket = QueryTicket(table=self.table, generation=self.generation, offset=offset)
        return PendingQuery(ticket=ticket, query=query)

    def is_current(self, ticket: QueryTicket) -> bool:
        # a page only lands at the offset it was requested for
        return (
            ticket.table == self.table
            and ticket.generation == self.generation
            and ticket.offset == len(self.results)
        )

    def ingest(self, ticket: QueryTicket, response: Optional[Dict[str, Any]]) -> bool:
        if not self.is_current(ticket):
            log_event(
                "stale_response",
                table=ticket.table,
                generation=ticket.generation,
                current_table=self.table,
                current_generation=self.generation,
                offset=ticket.offset,
                accumulated=len(self.results),
            )
            return False
        documents = (response or {}).get("documents")
        return self.results.ingest(documents)

    def run_query(self, client, reset: bool = True) -> bool:
        pending = self.prepare_query(reset)
        response = client.query(pending.query)
        return self.ingest(pending.ticket, response)

    def load_more(self, client) -> bool:
        return self.run_query(client, reset=False)
