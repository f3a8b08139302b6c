"""Generic data-access layer shared by every entity service."""

import logging
from typing import Generic, List, NoReturn, Type, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .database import SessionFactory, SessionLocal
from .errors import StoreError


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


def _handle_store_error(session: Session, exc: Exception) -> NoReturn:
    """Rollback the transaction and re-raise ``exc`` as a :class:`StoreError`."""
    session.rollback()
    logger.exception("store error", exc_info=exc)
    raise StoreError(str(exc)) from exc


class Repository(Generic[ModelT]):
    """CRUD operations for one mapped entity type.

    Each call opens its own session from ``session_factory`` and closes it
    before returning, so returned entities are detached snapshots.
    """

    model: Type[ModelT]

    def __init__(self, model: Type[ModelT], session_factory: SessionFactory = SessionLocal):
        self.model = model
        self.session_factory = session_factory

    def get_all(self) -> List[ModelT]:
        session: Session = self.session_factory()
        try:
            stmt = select(self.model).order_by(self.model.id)
            return list(session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            _handle_store_error(session, exc)
        finally:
            session.close()

    def get_by_id(self, entity_id: int) -> ModelT | None:
        session: Session = self.session_factory()
        try:
            return session.get(self.model, entity_id)
        except SQLAlchemyError as exc:
            _handle_store_error(session, exc)
        finally:
            session.close()

    def create(self, entity: ModelT) -> ModelT:
        session: Session = self.session_factory()
        try:
            session.add(entity)
            session.commit()
            logger.debug("created %s id=%s", self.model.__name__, entity.id)
            return entity
        except SQLAlchemyError as exc:
            _handle_store_error(session, exc)
        finally:
            session.close()

    def update(self, entity: ModelT) -> bool:
        """Persist the state of a detached ``entity``; False if its row is gone."""
        session: Session = self.session_factory()
        try:
            if session.get(self.model, entity.id) is None:
                return False
            session.merge(entity)
            session.commit()
            return True
        except SQLAlchemyError as exc:
            _handle_store_error(session, exc)
        finally:
            session.close()

    def delete(self, entity_id: int) -> bool:
        session: Session = self.session_factory()
        try:
            result = session.execute(delete(self.model).where(self.model.id == entity_id))
            session.commit()
            return result.rowcount > 0
        except SQLAlchemyError as exc:
            _handle_store_error(session, exc)
        finally:
            session.close()
