import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import create_engine, inspect, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import MANYTOONE, Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from lessgo.core.errors import LessGoError, PersistenceError
from lessgo.core.log import get_logger

Base = declarative_base()

logger = get_logger("lessgo.store")


def _merge_roots(objs):
    """Drop objects that a staged parent already reaches through merge cascade."""
    staged = {id(o) for o in objs}
    roots = []
    for obj in objs:
        state = inspect(obj)
        owned = False
        for rel in state.mapper.relationships:
            if rel.direction is not MANYTOONE:
                continue
            parent = state.attrs[rel.key].loaded_value
            if id(parent) in staged:
                owned = True
                break
        if not owned:
            roots.append(obj)
    return roots


def _adopt_stored_key(db: Session, obj) -> None:
    """Give a row keyed by a surrogate the stored key of the row with the same ``id``."""
    mapper = inspect(obj).mapper
    if "id" not in mapper.columns or len(mapper.primary_key) != 1:
        return
    pk = mapper.primary_key[0]
    attr = mapper.get_property_by_column(pk).key
    if attr == "id" or getattr(obj, attr) is not None or obj.id is None:
        return
    stored = db.scalar(select(pk).where(mapper.columns["id"] == obj.id))
    if stored is not None:
        setattr(obj, attr, stored)


class Store:
    """Handle on the on-device relational store.

    One store is opened per process and injected into every service. It is
    the single logical writer: ``session()`` is the primary context,
    ``batch()`` an isolated secondary one whose work is merged back on exit.
    """

    def __init__(self, url: str, echo: bool = False, allow_destructive_reset: bool = False):
        self.url = url
        self.echo = echo
        self.allow_destructive_reset = allow_destructive_reset
        self.engine: Optional[Engine] = None
        self._sessions: Optional[sessionmaker] = None
        # single logical writer: every context holds this for its lifetime
        self._lock = threading.RLock()

    # --- lifecycle ---
    @property
    def is_open(self) -> bool:
        return self.engine is not None

    @property
    def is_memory(self) -> bool:
        db = make_url(self.url).database
        return db in (None, "", ":memory:")

    def open(self) -> "Store":
        if self.engine is not None:
            return self

        from lessgo.core.migrations import run_migrations

        url = make_url(self.url)
        kwargs = {}
        # "check_same_thread" is ONLY for SQLite
        if url.get_backend_name() == "sqlite":
            kwargs["connect_args"] = {"check_same_thread": False}
            if self.is_memory:
                # one shared connection, otherwise every checkout sees an empty db
                kwargs["poolclass"] = StaticPool

        self.engine = create_engine(self.url, echo=self.echo, **kwargs)
        self._sessions = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )
        try:
            run_migrations(self, allow_destructive_reset=self.allow_destructive_reset)
        except Exception:
            self.close()
            raise
        logger.info("Store opened at %s", url.render_as_string(hide_password=True))
        return self

    def close(self) -> None:
        if self.engine is None:
            return
        self.engine.dispose()
        self.engine = None
        self._sessions = None
        logger.info("Store closed")

    def __enter__(self) -> "Store":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    # --- contexts ---
    def _factory(self) -> sessionmaker:
        if self._sessions is None:
            raise LessGoError("Store is not open")
        return self._sessions

    @contextmanager
    def session(self) -> Iterator[Session]:
        with self._lock:
            db: Session = self._factory()()
            try:
                yield db
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    @contextmanager
    def batch(self) -> Iterator[Session]:
        """Secondary context for seeding and bulk imports.

        Objects added or modified here are never flushed by this session;
        on a clean exit they are merged into the primary context, where the
        last write wins field by field. Set foreign keys by id rather than
        through relationship collections so each row is merged once.
        """
        with self._lock:
            scratch: Session = self._factory()()
            try:
                yield scratch
                staged = list(scratch.new) + list(scratch.dirty)
                roots = _merge_roots(staged)
                scratch.expunge_all()
                try:
                    with self.session() as primary:
                        for obj in staged:
                            _adopt_stored_key(primary, obj)
                        for obj in roots:
                            primary.merge(obj)
                except SQLAlchemyError as e:
                    logger.error("Error merging batch into the store: %s", e)
                    raise PersistenceError("Could not merge batch into the store") from e
                logger.info("Merged %d batch objects into the store", len(roots))
            finally:
                scratch.close()

    # --- destructive reset ---
    def reset(self) -> None:
        """Drop every table and recreate the schema. All local data is lost."""
        if self.engine is None:
            raise LessGoError("Store is not open")
        logger.warning("Resetting store %s: all local data will be deleted", self.url)
        Base.metadata.drop_all(bind=self.engine)
        if not self.is_memory and make_url(self.url).get_backend_name() == "sqlite":
            self.engine.dispose()
            self._remove_store_files()
        Base.metadata.create_all(bind=self.engine)

    def _remove_store_files(self) -> None:
        path = Path(make_url(self.url).database)
        for candidate in (path, Path(f"{path}-wal"), Path(f"{path}-shm")):
            if candidate.exists():
                candidate.unlink()
                logger.warning("Deleted store file %s", candidate)
