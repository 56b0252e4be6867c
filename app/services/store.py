"""
Document-store interface the booking core talks to.

Two implementations exist: MemoryStore (single process, default) and the
Supabase-backed DBService. Both share the optimistic run_atomic loop below:
the callback runs against a Transaction that buffers its writes, and the
backend's _commit either applies them or raises TransactionAborted when a
concurrent commit got there first, in which case the callback is re-run.
"""
import operator
import uuid
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from app.core.config import settings
from app.core.exceptions import PersistenceError, TransactionAborted
from app.core.logger import logger

Filter = Tuple[str, str, Any]
T = TypeVar("T")

OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
}


def new_document_id() -> str:
    return str(uuid.uuid4())


def check_filters(filters: List[Filter]) -> None:
    for field, op, _ in filters:
        if op not in OPERATORS:
            raise ValueError(f"Unsupported filter operator '{op}' on field '{field}'")


class Transaction(ABC):
    """Reads go straight to the store; writes are buffered until commit."""

    def __init__(self):
        self.inserts: List[Tuple[str, Dict[str, Any]]] = []
        self.updates: List[Tuple[str, str, Dict[str, Any]]] = []

    @abstractmethod
    async def query(self, collection: str, filters: List[Filter]) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    def insert(self, collection: str, record: Dict[str, Any]) -> str:
        doc_id = record.get("id") or new_document_id()
        self.inserts.append((collection, {**record, "id": doc_id}))
        return doc_id

    def update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> None:
        self.updates.append((collection, doc_id, dict(partial)))


class DocumentStore(ABC):
    @abstractmethod
    async def query(self, collection: str, filters: List[Filter]) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def insert(self, collection: str, record: Dict[str, Any]) -> str:
        ...

    @abstractmethod
    async def update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def begin(self) -> Transaction:
        ...

    @abstractmethod
    async def _commit(self, txn: Transaction) -> None:
        ...

    async def run_atomic(
        self,
        fn: Callable[[Transaction], Awaitable[T]],
        max_attempts: Optional[int] = None,
    ) -> T:
        """
        Runs fn(txn) and commits its buffered writes only if fn returns.
        Exceptions raised by fn propagate untouched and nothing is written.
        """
        attempts = max_attempts or settings.TRANSACTION_MAX_ATTEMPTS

        for attempt in range(1, attempts + 1):
            txn = self.begin()
            result = await fn(txn)
            try:
                await self._commit(txn)
            except TransactionAborted:
                logger.warning(f"🔁 Transaction lost a race (attempt {attempt}/{attempts}), retrying")
                continue
            return result

        logger.error(f"❌ Transaction gave up after {attempts} attempts")
        raise PersistenceError(f"Transaction aborted after {attempts} attempts")


_store: Optional[DocumentStore] = None


def get_store() -> DocumentStore:
    """Returns the process-wide store selected by STORAGE_BACKEND."""
    global _store
    if _store is None:
        backend = settings.STORAGE_BACKEND.lower()
        if backend == "supabase":
            from app.services.db_service import db_service
            _store = db_service
        elif backend == "memory":
            from app.services.memory_store import MemoryStore
            _store = MemoryStore()
        else:
            raise ValueError(f"Unknown STORAGE_BACKEND '{settings.STORAGE_BACKEND}'")
        logger.info(f"🗄️ Using '{backend}' storage backend")
    return _store
