"""
Relational store handle for the learning path repositories.

One ``SqlStore`` wraps one SQLAlchemy engine. It is created at startup and passed
to every repository; sessions are checked out per operation (or per transaction)
and always closed, and any failure rolls the transaction back.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from infra.persistence.models import Base
from learning_paths.context import OperationContext, ensure_context
from learning_paths.errors import Conflict, DeadlineExceeded, PathError, StoreUnavailable
from learning_paths.repositories import Repositories

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@contextmanager
def translate_errors(operation: str, ctx: OperationContext) -> Iterator[None]:
    """Map driver errors onto the PathError taxonomy, chaining the driver exception."""
    try:
        yield
    except PathError:
        raise
    except IntegrityError as e:
        raise Conflict(f"{operation}: constraint violated ({e.orig})") from e
    except OperationalError as e:
        if ctx.expired():
            raise DeadlineExceeded(f"{operation} deadline exceeded") from e
        logger.error("store operational error operation=%s error=%s", operation, e)
        raise StoreUnavailable(f"{operation}: store unavailable") from e
    except SQLAlchemyError as e:
        logger.error("store error operation=%s error=%s", operation, e)
        raise StoreUnavailable(f"{operation}: store error") from e


class SqlStore:
    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = sessionmaker(
            bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
        )
        if engine.dialect.name == "sqlite" and not event.contains(
            engine, "connect", _enable_sqlite_foreign_keys
        ):
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)
        logger.info("learning path tables created url=%s", self.engine.url.render_as_string(hide_password=True))

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)
        logger.info("learning path tables dropped")

    def apply_deadline(self, session: Session, ctx: OperationContext) -> None:
        """Bound the remaining statements of the current transaction by the context deadline."""
        remaining = ctx.remaining()
        if remaining is None:
            return
        if self.engine.dialect.name == "postgresql":
            # SET LOCAL does not take bind parameters; the value is an int we computed.
            ms = max(1, int(remaining * 1000))
            session.execute(text(f"SET LOCAL statement_timeout = {ms}"))

    @contextmanager
    def session_scope(
        self, ctx: Optional[OperationContext] = None, operation: str = "store operation"
    ) -> Iterator[Session]:
        """Session for one unit of work: commit on success, rollback on any error, always close."""
        ctx = ensure_context(ctx)
        ctx.check(operation)
        session = self.session_factory()
        try:
            with translate_errors(operation, ctx):
                self.apply_deadline(session, ctx)
                yield session
                # Past the deadline we abort instead of committing.
                ctx.check(operation)
                session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def transaction(self, ctx: Optional[OperationContext] = None) -> Iterator[Repositories]:
        """Path and node repositories sharing one session; everything commits or nothing does."""
        from infra.persistence.sql_node_repository import SqlNodeRepository
        from infra.persistence.sql_path_repository import SqlPathRepository

        with self.session_scope(ctx, "transaction") as session:
            yield Repositories(
                paths=SqlPathRepository(self, session=session),
                nodes=SqlNodeRepository(self, session=session),
            )

    def repositories(self) -> Repositories:
        from infra.persistence.sql_node_repository import SqlNodeRepository
        from infra.persistence.sql_path_repository import SqlPathRepository

        return Repositories(paths=SqlPathRepository(self), nodes=SqlNodeRepository(self))


class SqlRepositoryBase:
    """Runs each call in its own session, or inside ``session`` when bound to a transaction."""

    def __init__(self, store: SqlStore, session: Optional[Session] = None):
        self.store = store
        self._session = session

    @contextmanager
    def _scope(self, operation: str, ctx: Optional[OperationContext]) -> Iterator[Session]:
        if self._session is None:
            with self.store.session_scope(ctx, operation) as session:
                yield session
            return
        ctx = ensure_context(ctx)
        ctx.check(operation)
        with translate_errors(operation, ctx):
            self.store.apply_deadline(self._session, ctx)
            yield self._session
            self._session.flush()
