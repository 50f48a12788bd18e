"""
Caches en lecture (read-through) pour l'annuaire et les pointages du jour.

Remplace l'écoute temps réel de la base : chaque snapshot a un âge maximal
(SNAPSHOT_MAX_AGE_SECONDS). Au-delà, le prochain get() relit la base.
Les écritures faites par le moteur sont appliquées localement au snapshot
du jour pour que deux scans rapprochés se voient mutuellement.

Les accès se font depuis le threadpool FastAPI et le scheduler : verrou
threading.Lock sur chaque cache.
"""

import logging
import threading
import time
from datetime import date, datetime
from typing import Callable, Generic, List, Optional, TypeVar

from pointage.schemas.attendance import AttendanceSnapshot
from pointage.services.inference import as_utc

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotCache(Generic[T]):
    """Snapshot unique rechargé quand il dépasse max_age secondes ou après invalidate()."""

    def __init__(
        self,
        loader: Callable[[], T],
        max_age: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self._max_age = max_age
        self._clock = clock
        self._lock = threading.Lock()
        self._value: Optional[T] = None
        self._loaded_at: Optional[float] = None

    def _is_stale(self) -> bool:
        return self._loaded_at is None or self._clock() - self._loaded_at > self._max_age

    def get(self) -> T:
        with self._lock:
            if self._is_stale():
                self._reload()
            return self._value

    def refresh(self) -> T:
        with self._lock:
            self._reload()
            return self._value

    def invalidate(self) -> None:
        with self._lock:
            self._loaded_at = None

    def _reload(self) -> None:
        self._value = self._loader()
        self._loaded_at = self._clock()


class DayRecordsCache:
    """
    Pointages d'un jour calendaire.
    Rechargé si périmé ou si le jour demandé change (passage de minuit).
    """

    def __init__(
        self,
        loader: Callable[[date], List[AttendanceSnapshot]],
        max_age: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self._max_age = max_age
        self._clock = clock
        self._lock = threading.Lock()
        self._day: Optional[date] = None
        self._records: List[AttendanceSnapshot] = []
        self._loaded_at: Optional[float] = None

    def get(self, day: date) -> List[AttendanceSnapshot]:
        with self._lock:
            if (
                self._day != day
                or self._loaded_at is None
                or self._clock() - self._loaded_at > self._max_age
            ):
                self._reload(day)
            return list(self._records)

    def refresh(self, day: date) -> List[AttendanceSnapshot]:
        with self._lock:
            self._reload(day)
            return list(self._records)

    def invalidate(self) -> None:
        with self._lock:
            self._loaded_at = None

    def record_appended(self, record: AttendanceSnapshot) -> None:
        """Applique un pointage écrit avec succès au snapshot, s'il concerne le jour en cache."""
        with self._lock:
            if self._day is not None and as_utc(record.timestamp).date() == self._day:
                self._records.append(record)

    def _reload(self, day: date) -> None:
        self._records = list(self._loader(day))
        self._day = day
        self._loaded_at = self._clock()
        logger.debug("Snapshot des pointages du %s rechargé (%d)", day, len(self._records))


def utc_day(now: datetime) -> date:
    """Jour calendaire UTC d'un instant."""
    return as_utc(now).date()
