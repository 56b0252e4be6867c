from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError
from supabase import create_async_client, AsyncClient

from app.core.config import settings
from app.core.exceptions import NotFoundError, PersistenceError, TransactionAborted
from app.core.logger import logger
from app.services.store import DocumentStore, Filter, Transaction, check_filters, new_document_id

# PostgreSQL unique_violation, raised by the partial unique index on scheduled slots
UNIQUE_VIOLATION = "23505"

POSTGREST_OPERATORS = {
    "==": "eq",
    ">=": "gte",
    "<=": "lte",
    ">": "gt",
    "<": "lt",
}


class SupabaseTransaction(Transaction):
    def __init__(self, store: "DBService"):
        super().__init__()
        self._store = store

    async def query(self, collection: str, filters: List[Filter]) -> List[Dict[str, Any]]:
        return await self._store.query(collection, filters)

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return await self._store.get(collection, doc_id)


class DBService(DocumentStore):
    """
    Supabase (PostgREST) backed store.

    PostgREST has no client-side transactions, so commits rely on the
    database to reject a second scheduled row for the same slot
    (see supabase/schema.sql). That rejection aborts the attempt and
    run_atomic re-reads, which then sees the winning booking.
    Buffered writes are applied in order; callers keep to one write per
    transaction.
    """
    _instance = None
    _client: AsyncClient = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(DBService, cls).__new__(cls)
            # Async client is created lazily in get_client()
        return cls._instance

    async def get_client(self) -> AsyncClient:
        if not self._client:
            if not (settings.SUPABASE_URL and settings.SUPABASE_KEY):
                logger.error("❌ Supabase credentials missing")
                raise PersistenceError("Supabase credentials are not configured")
            try:
                self._client = await create_async_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
                logger.info("✅ Supabase Async client initialized")
            except Exception as e:
                logger.error(f"❌ Failed to initialize Supabase Async: {e}")
                raise PersistenceError("Could not connect to Supabase") from e
        return self._client

    async def _execute(self, request, action: str, abort_on_conflict: bool = False):
        try:
            return await request.execute()
        except APIError as e:
            if abort_on_conflict and e.code == UNIQUE_VIOLATION:
                raise TransactionAborted(f"{action}: {e.message}") from e
            logger.error(f"❌ DB Error ({action}): {e.message}")
            raise PersistenceError(f"{action} failed: {e.message}") from e
        except Exception as e:
            logger.error(f"❌ DB Error ({action}): {e}")
            raise PersistenceError(f"{action} failed") from e

    async def query(self, collection: str, filters: List[Filter]) -> List[Dict[str, Any]]:
        check_filters(filters)
        client = await self.get_client()

        request = client.table(collection).select("*")
        for field, op, value in filters:
            request = getattr(request, POSTGREST_OPERATORS[op])(field, value)

        response = await self._execute(request, f"query {collection}")
        return response.data or []

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        rows = await self.query(collection, [("id", "==", doc_id)])
        return rows[0] if rows else None

    async def insert(self, collection: str, record: Dict[str, Any], abort_on_conflict: bool = False) -> str:
        client = await self.get_client()
        record = {**record, "id": record.get("id") or new_document_id()}

        response = await self._execute(
            client.table(collection).insert(record),
            f"insert {collection}",
            abort_on_conflict=abort_on_conflict,
        )
        if not response.data:
            raise PersistenceError(f"insert {collection} returned no row")
        return response.data[0]["id"]

    async def update(self, collection: str, doc_id: str, partial: Dict[str, Any], abort_on_conflict: bool = False) -> None:
        client = await self.get_client()

        response = await self._execute(
            client.table(collection).update(partial).eq("id", doc_id),
            f"update {collection}",
            abort_on_conflict=abort_on_conflict,
        )
        if not response.data:
            raise NotFoundError(doc_id)

    def begin(self) -> SupabaseTransaction:
        return SupabaseTransaction(self)

    async def _commit(self, txn: SupabaseTransaction) -> None:
        for collection, record in txn.inserts:
            await self.insert(collection, record, abort_on_conflict=True)
        for collection, doc_id, partial in txn.updates:
            await self.update(collection, doc_id, partial, abort_on_conflict=True)


db_service = DBService()
