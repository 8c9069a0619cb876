"""Day-keyed snapshot storage for prediction payloads.

The analytics core only *produces* payloads.  Where they live is the
caller's choice, expressed through :class:`SnapshotStore`:

* :class:`InMemorySnapshotStore`: a dict, for tests and one-off scripts.
* :class:`SqlSnapshotStore`: one row per ``(kind, day)`` in the
  ``snapshots`` table (see :mod:`wager_engine.models`).

Both stores keep only the latest payload written for a day.  Payloads are
validated against a pydantic model before they are stored, and ``get``
returns an instance of that model.

Run tests with::

    pytest tests/test_snapshots.py -v
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, Mapping, Optional, Type, Union

from pydantic import BaseModel
from sqlalchemy.orm import sessionmaker

from wager_engine.models import Snapshot
from wager_engine.schemas import PredictionSnapshot

logger = logging.getLogger(__name__)

Payload = Union[BaseModel, Mapping[str, Any]]


class SnapshotStore(ABC):
    """Contract for day-keyed payload storage.

    Args:
        model: Pydantic model every payload must satisfy.
    """

    def __init__(self, model: Type[BaseModel] = PredictionSnapshot):
        self.model = model

    def _validate(self, payload: Payload) -> BaseModel:
        if isinstance(payload, self.model):
            return payload
        if isinstance(payload, BaseModel):
            payload = payload.model_dump()
        return self.model.model_validate(payload)

    @abstractmethod
    def get(self, day: date) -> Optional[BaseModel]:
        """Payload stored for ``day``, or ``None``."""

    @abstractmethod
    def put(self, day: date, payload: Payload) -> BaseModel:
        """Validate and store ``payload`` for ``day``, replacing any earlier one.

        Raises:
            pydantic.ValidationError: ``payload`` does not fit the model.
        """


class InMemorySnapshotStore(SnapshotStore):
    def __init__(self, model: Type[BaseModel] = PredictionSnapshot):
        super().__init__(model)
        self._items: Dict[date, BaseModel] = {}

    def get(self, day: date) -> Optional[BaseModel]:
        return self._items.get(day)

    def put(self, day: date, payload: Payload) -> BaseModel:
        validated = self._validate(payload)
        self._items[day] = validated
        return validated

    def days(self):
        return sorted(self._items)


class SqlSnapshotStore(SnapshotStore):
    """SQLAlchemy-backed store.

    Args:
        session_factory: ``sessionmaker`` bound to a database that has the
            ``snapshots`` table (see :func:`wager_engine.models.make_session_factory`).
        kind: Namespace for the rows, so several payload types share a table.
        model: Pydantic model for the payload.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        kind: str = "predictions",
        model: Type[BaseModel] = PredictionSnapshot,
    ):
        super().__init__(model)
        self.session_factory = session_factory
        self.kind = kind

    def get(self, day: date) -> Optional[BaseModel]:
        with self.session_factory() as session:
            row = (
                session.query(Snapshot)
                .filter(Snapshot.kind == self.kind, Snapshot.snapshot_date == day)
                .one_or_none()
            )
            if row is None:
                return None
            return self.model.model_validate(row.payload)

    def put(self, day: date, payload: Payload) -> BaseModel:
        validated = self._validate(payload)
        data = validated.model_dump(mode="json")
        with self.session_factory() as session:
            try:
                row = (
                    session.query(Snapshot)
                    .filter(Snapshot.kind == self.kind, Snapshot.snapshot_date == day)
                    .one_or_none()
                )
                if row is None:
                    session.add(Snapshot(kind=self.kind, snapshot_date=day, payload=data))
                else:
                    row.payload = data
                session.commit()
            except Exception:
                session.rollback()
                logger.exception("Failed to store %s snapshot for %s", self.kind, day)
                raise
        logger.info("Stored %s snapshot for %s", self.kind, day)
        return validated
