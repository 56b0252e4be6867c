import asyncio
import copy
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from app.core.exceptions import NotFoundError, TransactionAborted
from app.services.store import OPERATORS, DocumentStore, Filter, Transaction, check_filters, new_document_id


class MemoryTransaction(Transaction):
    def __init__(self, store: "MemoryStore"):
        super().__init__()
        self._store = store
        # What this transaction saw; re-checked at commit
        self.read_queries: List[Tuple[str, List[Filter], Dict[str, Dict[str, Any]]]] = []
        self.read_docs: List[Tuple[str, str, Optional[Dict[str, Any]]]] = []

    async def query(self, collection: str, filters: List[Filter]) -> List[Dict[str, Any]]:
        rows = await self._store.query(collection, filters)
        self.read_queries.append((collection, list(filters), {row["id"]: row for row in rows}))
        return copy.deepcopy(rows)

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        record = await self._store.get(collection, doc_id)
        self.read_docs.append((collection, doc_id, record))
        return copy.deepcopy(record)


class MemoryStore(DocumentStore):
    """
    In-process document store with optimistic transactions.

    At commit the transaction's queries and gets are replayed under the lock;
    if any of them would now return something different, the attempt is
    aborted. Writes elsewhere in the collection never abort it.
    Reads yield to the event loop like a network round-trip would.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self._lock = asyncio.Lock()

    def _match(self, collection: str, filters: List[Filter]) -> List[Dict[str, Any]]:
        return [
            copy.deepcopy(record)
            for record in self._collections[collection].values()
            if all(
                field in record and OPERATORS[op](record[field], value)
                for field, op, value in filters
            )
        ]

    def _lookup(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        record = self._collections[collection].get(doc_id)
        return copy.deepcopy(record) if record is not None else None

    async def query(self, collection: str, filters: List[Filter]) -> List[Dict[str, Any]]:
        check_filters(filters)
        await asyncio.sleep(0)
        return self._match(collection, filters)

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        return self._lookup(collection, doc_id)

    async def insert(self, collection: str, record: Dict[str, Any]) -> str:
        doc_id = record.get("id") or new_document_id()
        async with self._lock:
            self._collections[collection][doc_id] = copy.deepcopy({**record, "id": doc_id})
        return doc_id

    async def update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> None:
        async with self._lock:
            self._apply_update(collection, doc_id, partial)

    def _apply_update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> None:
        record = self._collections[collection].get(doc_id)
        if record is None:
            raise NotFoundError(doc_id)
        record.update(copy.deepcopy(partial))

    def _is_stale(self, txn: MemoryTransaction) -> bool:
        for collection, filters, seen in txn.read_queries:
            current = {row["id"]: row for row in self._match(collection, filters)}
            if current != seen:
                return True
        for collection, doc_id, seen in txn.read_docs:
            if self._lookup(collection, doc_id) != seen:
                return True
        return False

    def begin(self) -> MemoryTransaction:
        return MemoryTransaction(self)

    async def _commit(self, txn: MemoryTransaction) -> None:
        async with self._lock:
            if self._is_stale(txn):
                raise TransactionAborted("records read by this transaction changed before commit")

            for collection, doc_id, _ in txn.updates:
                if doc_id not in self._collections[collection]:
                    raise NotFoundError(doc_id)

            for collection, record in txn.inserts:
                self._collections[collection][record["id"]] = copy.deepcopy(record)
            for collection, doc_id, partial in txn.updates:
                self._apply_update(collection, doc_id, partial)
