"""CRUD facade over the SQLAlchemy session plus a change feed.

Mutations run inside :meth:`EntityStore.atomic`. When the unit of work
commits, the names of the collections it touched are published to the
subscribers registered with :meth:`EntityStore.subscribe`; a rolled back
unit of work publishes nothing.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from sqlalchemy import event, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from expiry_guard.core.constants import (
    COLLECTION_CONSUMPTION,
    COLLECTION_INVENTORY,
    COLLECTION_NOTIFICATIONS,
    COLLECTION_PRODUCTS,
)
from expiry_guard.core.errors import StoreError
from expiry_guard.models import ConsumptionRecord, InventoryBatch, Notification, Product

logger = logging.getLogger(__name__)

COLLECTION_MODELS = {
    COLLECTION_PRODUCTS: Product,
    COLLECTION_INVENTORY: InventoryBatch,
    COLLECTION_CONSUMPTION: ConsumptionRecord,
    COLLECTION_NOTIFICATIONS: Notification,
}
_TABLE_COLLECTIONS = {model.__tablename__: name for name, model in COLLECTION_MODELS.items()}

ALL_COLLECTIONS = "*"

ChangeCallback = Callable[[frozenset], None]


def _model_for(collection: str):
    try:
        return COLLECTION_MODELS[collection]
    except KeyError:
        raise ValueError("Unknown collection: {}".format(collection)) from None


class ChangeFeed:
    def __init__(self):
        self._subscribers: dict[str, list[ChangeCallback]] = {}
        self._lock = threading.Lock()

    def subscribe(self, collection: str, callback: ChangeCallback) -> Callable[[], None]:
        if collection != ALL_COLLECTIONS:
            _model_for(collection)
        with self._lock:
            self._subscribers.setdefault(collection, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(collection, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def publish(self, collections) -> None:
        changed = frozenset(collections)
        if not changed:
            return
        with self._lock:
            callbacks: list[ChangeCallback] = []
            for name in sorted(changed) + [ALL_COLLECTIONS]:
                for callback in self._subscribers.get(name, []):
                    if callback not in callbacks:
                        callbacks.append(callback)
        logger.debug("Publishing change to %s for %d subscriber(s).", sorted(changed), len(callbacks))
        for callback in callbacks:
            try:
                callback(changed)
            except Exception:
                # runs after commit; nothing raised here reaches the mutation
                logger.exception("Change subscriber failed for %s", sorted(changed))


class StoreSession:
    """Collection-level CRUD bound to one open transaction."""

    def __init__(self, session: Session):
        self.session = session
        self.touched: set[str] = set()
        event.listen(session, "before_flush", self._track_changes)

    def _track_changes(self, session, _flush_context, _instances) -> None:
        for obj in list(session.new) + list(session.dirty) + list(session.deleted):
            collection = _TABLE_COLLECTIONS.get(getattr(obj, "__tablename__", None))
            if collection:
                self.touched.add(collection)

    def get(self, collection: str, record_id):
        if record_id is None:
            return None
        return self.session.get(_model_for(collection), record_id)

    def put(self, collection: str, record):
        model = _model_for(collection)
        if not isinstance(record, model):
            raise TypeError("{} expects {} records".format(collection, model.__name__))
        if record not in self.session:
            if record.id is not None and self.session.get(model, record.id) is not None:
                record = self.session.merge(record)
            else:
                self.session.add(record)
        self.session.flush()
        return record.id

    def delete(self, collection: str, record_id) -> bool:
        record = self.get(collection, record_id)
        if record is None:
            return False
        self.session.delete(record)
        self.session.flush()
        return True

    def query(self, collection: str, field_name: str, predicate, *, order_by=None) -> list:
        model = _model_for(collection)
        if field_name not in model.__table__.columns:
            raise ValueError("{} has no field {}".format(collection, field_name))
        column = getattr(model, field_name)
        stmt = select(model).where(predicate(column))
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        return list(self.session.execute(stmt).scalars().all())

    def all(self, collection: str, *, order_by=None) -> list:
        stmt = select(_model_for(collection))
        if order_by is not None:
            stmt = stmt.order_by(*order_by) if isinstance(order_by, (list, tuple)) else stmt.order_by(order_by)
        return list(self.session.execute(stmt).scalars().all())


@dataclass
class StoreSnapshot:
    products: list = field(default_factory=list)
    batches: list = field(default_factory=list)
    consumption_records: list = field(default_factory=list)


class EntityStore:
    def __init__(self, session_factory=None, change_feed: Optional[ChangeFeed] = None):
        if session_factory is None:
            from expiry_guard.database.session import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory
        self.changes = change_feed or ChangeFeed()

    @contextmanager
    def atomic(self) -> Iterator[StoreSession]:
        db = self._session_factory()
        unit = StoreSession(db)
        try:
            yield unit
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError("Store transaction aborted: {}".format(exc)) from exc
        except BaseException:
            db.rollback()
            raise
        finally:
            db.close()
        self.changes.publish(unit.touched)

    @contextmanager
    def reading(self) -> Iterator[StoreSession]:
        db = self._session_factory()
        try:
            yield StoreSession(db)
        except SQLAlchemyError as exc:
            raise StoreError("Store read failed: {}".format(exc)) from exc
        finally:
            db.close()

    def subscribe(self, collection: str, callback: ChangeCallback) -> Callable[[], None]:
        return self.changes.subscribe(collection, callback)

    def snapshot(self) -> StoreSnapshot:
        with self.reading() as unit:
            return StoreSnapshot(
                products=unit.all(COLLECTION_PRODUCTS, order_by=(Product.created_at, Product.name)),
                batches=unit.all(
                    COLLECTION_INVENTORY,
                    order_by=(InventoryBatch.expiry_date, InventoryBatch.created_at),
                ),
                consumption_records=unit.all(
                    COLLECTION_CONSUMPTION, order_by=ConsumptionRecord.consumed_at
                ),
            )


__all__ = [
    "ALL_COLLECTIONS",
    "COLLECTION_MODELS",
    "ChangeFeed",
    "EntityStore",
    "StoreSession",
    "StoreSnapshot",
]
