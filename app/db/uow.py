# app/db/uow.py
from __future__ import annotations

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from app.db.session import get_db

logger = logging.getLogger(__name__)


class UnitOfWork:
    """
    Transacción explícita sobre una Session.

    Uso:
        with uow:
            ...  # escrituras
    Al salir sin excepción hace commit; si algo falla hace rollback
    y deja que la excepción siga su camino.
    """

    def __init__(self, session: Session):
        self.session = session
        self._depth = 0

    def __enter__(self) -> "UnitOfWork":
        self._depth += 1
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._depth -= 1
        if self._depth > 0:
            # bloque anidado: el commit lo hace el bloque externo
            return
        if exc_type is not None:
            self.rollback()
            return
        self.commit()

    def commit(self) -> None:
        try:
            self.session.commit()
        except Exception:
            logger.warning("Commit failed, rolling back")
            self.session.rollback()
            raise

    def rollback(self) -> None:
        self.session.rollback()

    def flush(self) -> None:
        self.session.flush()


def get_uow(db: Session = Depends(get_db)) -> UnitOfWork:
    """Dependency: un UnitOfWork por request, sobre la misma Session de get_db."""
    return UnitOfWork(db)
