"""CRUD and query operations over the store, in domain values.

Reads never raise: a failing query is logged and degrades to "no data".
Writes raise ``PersistenceError`` so explicit user actions can report and
retry; every write is keyed by id, so retrying one never duplicates data.
"""
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Type, TypeVar, Union

import pydantic
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lessgo.core.database import Store
from lessgo.core.errors import PersistenceError
from lessgo.core.log import get_logger
from lessgo.models.chat import Chat as ChatModel
from lessgo.models.listing import Listing as ListingModel
from lessgo.schemas.draft import DraftListing
from lessgo.schemas.listing import Listing
from lessgo.schemas.message import Chat, Message
from lessgo.schemas.user import User
from lessgo.services.converters import EntityMapper, mapper_for
from lessgo.services.queries import QueryFilter, Sort

logger = get_logger("lessgo.persistence")

T = TypeVar("T")
Predicate = Union[QueryFilter, Sequence, None]
Change = Callable[[T], Optional[T]]

DEFAULT_SORTS: Dict[type, Sort] = {
    Listing: Sort("created_at", descending=True),
    User: Sort("display_name"),
    Message: Sort("timestamp"),
    Chat: Sort("updated_at", descending=True),
    DraftListing: Sort("updated_at", descending=True),
}

_CONVERSION_ERRORS = (pydantic.ValidationError, ValueError, TypeError)


def _find(db: Session, mapper: EntityMapper, entity_id: str):
    return db.query(mapper.model).filter(mapper.key_column == entity_id).first()


class Transaction:
    """Writes that commit together or not at all.

    Obtained from ``PersistenceEngine.transaction()``; each call behaves like
    the engine method of the same name but shares one session.
    """

    def __init__(self, db: Session):
        self.db = db

    def insert(self, entity: T) -> T:
        """Insert-only write. A record that already exists is returned untouched."""
        mapper = mapper_for(type(entity))
        record = _find(self.db, mapper, mapper.key(entity))
        if record is None:
            record = mapper.to_record(entity)
            self.db.add(record)
            self.db.flush()
        return mapper.to_domain(record)

    def upsert(self, entity: T) -> T:
        """Update the record with ``entity.id`` in place, or insert it."""
        mapper = mapper_for(type(entity))
        record = _find(self.db, mapper, mapper.key(entity))
        if record is None:
            record = mapper.to_record(entity)
            self.db.add(record)
        else:
            mapper.to_record(entity, record)
        self.db.flush()
        return mapper.to_domain(record)

    def modify(self, entity_type: Type[T], entity_id: str, change: Change) -> Optional[T]:
        """Read-modify-write of one entity.

        ``change`` receives the current value and may mutate it in place or
        return a replacement. Returns the stored result, or None if missing.
        """
        mapper = mapper_for(entity_type)
        record = _find(self.db, mapper, entity_id)
        if record is None:
            return None
        current = mapper.to_domain(record)
        updated = change(current)
        if updated is None:
            updated = current
        mapper.to_record(updated, record)
        self.db.flush()
        return mapper.to_domain(record)


class PersistenceEngine:
    def __init__(self, store: Store):
        self.store = store

    # ---------------------------
    # helpers
    # ---------------------------
    @staticmethod
    def _where(mapper: EntityMapper, predicate: Predicate) -> list:
        if predicate is None:
            return []
        if isinstance(predicate, QueryFilter):
            return predicate.clauses(mapper.model)
        return list(predicate)

    def _convert_all(self, mapper: EntityMapper, records) -> list:
        out = []
        for record in records:
            try:
                out.append(mapper.to_domain(record))
            except _CONVERSION_ERRORS as e:
                logger.error("Skipping unreadable %s %s: %s", mapper.model.__tablename__, record.id, e)
        return out

    # ---------------------------
    # writes
    # ---------------------------
    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Group several writes into one commit; any failure rolls all of them back."""
        try:
            with self.store.session() as db:
                yield Transaction(db)
        except SQLAlchemyError as e:
            logger.error("Error committing transaction: %s", e)
            raise PersistenceError("Could not complete the write") from e

    def upsert(self, entity: T) -> T:
        key = mapper_for(type(entity)).key(entity)
        try:
            with self.store.session() as db:
                return Transaction(db).upsert(entity)
        except SQLAlchemyError as e:
            logger.error("Error saving %s %s: %s", type(entity).__name__, key, e)
            raise PersistenceError(f"Could not save {type(entity).__name__} {key}") from e

    def insert(self, entity: T) -> T:
        key = mapper_for(type(entity)).key(entity)
        try:
            with self.store.session() as db:
                return Transaction(db).insert(entity)
        except SQLAlchemyError as e:
            logger.error("Error inserting %s %s: %s", type(entity).__name__, key, e)
            raise PersistenceError(f"Could not insert {type(entity).__name__} {key}") from e

    def update_existing(self, entity) -> bool:
        """Update-only write. Returns False, without writing, if the record is gone."""
        mapper = mapper_for(type(entity))
        try:
            with self.store.session() as db:
                record = _find(db, mapper, mapper.key(entity))
                if record is None:
                    logger.info("Skipping write to deleted %s %s", type(entity).__name__, mapper.key(entity))
                    return False
                mapper.to_record(entity, record)
                return True
        except SQLAlchemyError as e:
            logger.error("Error updating %s %s: %s", type(entity).__name__, mapper.key(entity), e)
            raise PersistenceError(f"Could not update {type(entity).__name__} {mapper.key(entity)}") from e

    def modify(self, entity_type: Type[T], entity_id: str, change: Change) -> Optional[T]:
        """Read-modify-write of one entity inside a single transaction."""
        try:
            with self.store.session() as db:
                return Transaction(db).modify(entity_type, entity_id, change)
        except SQLAlchemyError as e:
            logger.error("Error modifying %s %s: %s", entity_type.__name__, entity_id, e)
            raise PersistenceError(f"Could not update {entity_type.__name__} {entity_id}") from e

    def delete(self, entity) -> bool:
        return self.delete_by_id(type(entity), mapper_for(type(entity)).key(entity))

    def delete_by_id(self, entity_type: type, entity_id: str) -> bool:
        """Returns False if there was nothing to delete."""
        mapper = mapper_for(entity_type)
        try:
            with self.store.session() as db:
                record = _find(db, mapper, entity_id)
                if record is None:
                    return False
                db.delete(record)
                return True
        except SQLAlchemyError as e:
            logger.error("Error deleting %s %s: %s", entity_type.__name__, entity_id, e)
            raise PersistenceError(f"Could not delete {entity_type.__name__} {entity_id}") from e

    # ---------------------------
    # reads
    # ---------------------------
    def fetch_by_id(self, entity_type: Type[T], entity_id: str) -> Optional[T]:
        mapper = mapper_for(entity_type)
        try:
            with self.store.session() as db:
                record = _find(db, mapper, entity_id)
                if record is None:
                    return None
                return mapper.to_domain(record)
        except SQLAlchemyError as e:
            logger.error("Error finding %s %s: %s", entity_type.__name__, entity_id, e)
            return None
        except _CONVERSION_ERRORS as e:
            logger.error("Unreadable %s %s: %s", entity_type.__name__, entity_id, e)
            return None

    def fetch_all(self, entity_type: Type[T], sort: Optional[Sort] = None) -> List[T]:
        return self.fetch_filtered(entity_type, None, sort)

    def fetch_filtered(
        self,
        entity_type: Type[T],
        predicate: Predicate = None,
        sort: Optional[Sort] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[T]:
        mapper = mapper_for(entity_type)
        sort = sort or DEFAULT_SORTS[entity_type]
        try:
            where = self._where(mapper, predicate)
            order = sort.clauses(mapper.model)
            with self.store.session() as db:
                q = db.query(mapper.model)
                if where:
                    q = q.filter(*where)
                q = q.order_by(*order)
                if offset:
                    q = q.offset(offset)
                if limit is not None:
                    q = q.limit(limit)
                return self._convert_all(mapper, q.all())
        except (SQLAlchemyError, ValueError) as e:
            logger.error("Error fetching %s: %s", entity_type.__name__, e)
            return []

    def count(self, entity_type: type, predicate: Predicate = None) -> int:
        mapper = mapper_for(entity_type)
        try:
            where = self._where(mapper, predicate)
            with self.store.session() as db:
                q = db.query(func.count()).select_from(mapper.model)
                if where:
                    q = q.filter(*where)
                return q.scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Error counting %s: %s", entity_type.__name__, e)
            return 0

    # ---------------------------
    # relationship-aware reads
    # ---------------------------
    def listing_for_chat(self, chat_id: str) -> Optional[Listing]:
        mapper = mapper_for(Listing)
        try:
            with self.store.session() as db:
                records = (
                    db.query(ListingModel)
                    .join(ChatModel, ChatModel.listing_id == ListingModel.id)
                    .filter(ChatModel.id == chat_id)
                    .all()
                )
                found = self._convert_all(mapper, records)
        except SQLAlchemyError as e:
            logger.error("Error fetching listing for chat %s: %s", chat_id, e)
            return None
        return found[0] if found else None

    def listings_for_user(self, user_id: str) -> List[Listing]:
        mapper = mapper_for(Listing)
        try:
            with self.store.session() as db:
                records = (
                    db.query(ListingModel)
                    .filter(ListingModel.owner.has(id=user_id))
                    .order_by(*DEFAULT_SORTS[Listing].clauses(ListingModel))
                    .all()
                )
                return self._convert_all(mapper, records)
        except SQLAlchemyError as e:
            logger.error("Error fetching listings of user %s: %s", user_id, e)
            return []
