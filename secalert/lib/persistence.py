from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from secalert.lib.alerts import Alert, AlertStore
from secalert.lib.data import crud
from secalert.lib.data.db import session_factory


logger = logging.getLogger("secalert.persistence")


class SqlAlertStore(AlertStore):
    """
    Alert store backed by the ``alerts`` table.

    Removal is a logical delete: the row is kept with ``active = false`` and
    no longer returned by ``find``/``all``.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._sessions = session_factory(engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def add(self, alert: Alert) -> None:
        with self._sessions() as session:
            try:
                crud.insert_alert(session, alert)
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                logger.exception("Failed to store alert %s", alert.id)
                raise

    def find(self, alert_id: str) -> Optional[Alert]:
        with self._sessions() as session:
            row = crud.get_active_alert(session, alert_id)
        return crud.row_to_alert(row) if row is not None else None

    def update(self, alert: Alert) -> None:
        with self._sessions() as session:
            try:
                crud.update_alert(session, alert)
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                logger.exception("Failed to update alert %s", alert.id)
                raise

    def remove(self, alert_id: str) -> Optional[Alert]:
        with self._sessions() as session:
            try:
                row = crud.get_active_alert(session, alert_id)
                if row is None:
                    return None
                crud.deactivate_alert(session, alert_id)
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                logger.exception("Failed to deactivate alert %s", alert_id)
                raise
        return crud.row_to_alert(row)

    def all(self) -> List[Alert]:
        with self._sessions() as session:
            rows = crud.list_active_alerts(session)
        return [crud.row_to_alert(row) for row in rows]

    def close(self) -> None:
        self._engine.dispose()
