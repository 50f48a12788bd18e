"""
Traitement des scans de badge et état du scanner affiché à l'opérateur.

handle_scan() est la frontière d'un scan : il ne lève jamais. Chaque scan
produit exactement un pointage ou exactement une erreur signalée.

Sérialisation par employé : un asyncio.Lock par employé (FIFO), pris entre
la lecture du snapshot du jour et l'écriture. Deux scans simultanés d'un même
employé ne peuvent donc pas lire le même « dernier pointage » et écrire deux
fois la même action. Le verrou est local au processus : plusieurs workers
partageant la même base ne sont pas coordonnés. Le verrou d'un employé
supprimé est retiré par forget_employee().

Mode capture de carte : armé depuis l'écran des employés, il capture la
prochaine carte inconnue de l'annuaire puis se désarme. Une carte déjà
attribuée pointe normalement pendant la capture. Sans carte capturée, le
mode se désarme seul après ENROLLMENT_TIMEOUT_SECONDS.
"""

import asyncio
import logging
import uuid
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from fastapi import Request
from starlette.concurrency import run_in_threadpool

from pointage.config import settings
from pointage.schemas.attendance import CHECK_IN, AttendanceSnapshot, NewAttendance
from pointage.schemas.employee import EmployeeSnapshot
from pointage.schemas.scanner import (
    CONNECTED,
    DISCONNECTED,
    ERROR,
    EnrollmentState,
    RecentScan,
    ScannerStatus,
    ScanResult,
)
from pointage.services import attendance_service, employee_service
from pointage.services.inference import (
    AmbiguousIdentity,
    InferenceError,
    PersistenceFailure,
    UnknownBadge,
    infer_and_record,
    resolve_badge,
)
from pointage.services.snapshot_cache import DayRecordsCache, SnapshotCache, utc_day

logger = logging.getLogger(__name__)

CONNECTION_MESSAGES = {
    CONNECTED: "Connecté",
    DISCONNECTED: "Déconnecté",
    ERROR: "Erreur de connexion",
}

CARD_TAKEN_MESSAGE = employee_service.CARD_TAKEN_MESSAGE


def success_message(employee: EmployeeSnapshot, action: str) -> str:
    verb = "pointé" if action == CHECK_IN else "dépointé"
    return f"L'employé {employee.full_name} a {verb} avec succès !"


def _card_in_directory(card_uid: str, employees: List[EmployeeSnapshot]) -> bool:
    return any(e.card_uid and e.card_uid.strip() == card_uid for e in employees)


class ScanProcessor:
    """
    Relie le lecteur RFID, le moteur d'inférence et la persistance.

    load_employees / load_day_records / append_record sont synchrones (SQLAlchemy)
    et exécutés dans le threadpool.
    """

    def __init__(
        self,
        load_employees: Callable[[], List[EmployeeSnapshot]],
        load_day_records: Callable[..., List[AttendanceSnapshot]],
        append_record: Callable[[NewAttendance], object],
        max_age: float = settings.SNAPSHOT_MAX_AGE_SECONDS,
        recent_limit: int = settings.RECENT_SCANS_LIMIT,
        enrollment_timeout: float = settings.ENROLLMENT_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.directory = SnapshotCache(load_employees, max_age)
        self.day_records = DayRecordsCache(load_day_records, max_age)
        self._append_record = append_record
        self._clock = clock

        self._locks: Dict[uuid.UUID, asyncio.Lock] = {}
        self._recent: deque = deque(maxlen=recent_limit)

        self.connection = DISCONNECTED
        self.status_message = CONNECTION_MESSAGES[DISCONNECTED]
        self.last_scan: Optional[ScanResult] = None

        self._enrollment_armed = False
        self._captured_uid: Optional[str] = None
        self._enrollment_message: Optional[str] = None
        self._enrollment_armed_at: Optional[datetime] = None
        self._enrollment_timeout = timedelta(seconds=enrollment_timeout)

    # ------------------------------------------------------------------
    # Connexion du lecteur
    # ------------------------------------------------------------------

    def set_connection(self, state: str) -> None:
        """Traduit un signal du lecteur (connected / disconnected / error) en message opérateur."""
        if state not in CONNECTION_MESSAGES:
            raise ValueError(f"État de connexion inconnu : {state}")
        self.connection = state
        self.status_message = CONNECTION_MESSAGES[state]
        logger.info("Lecteur RFID : %s", self.status_message)

    def get_status(self) -> ScannerStatus:
        return ScannerStatus(
            connection=self.connection,
            status=self.status_message,
            last_scan=self.last_scan,
            recent_scans=list(self._recent),
        )

    # ------------------------------------------------------------------
    # Mode capture de carte (enregistrement d'un employé)
    # ------------------------------------------------------------------

    def arm_enrollment(self) -> EnrollmentState:
        self._enrollment_armed = True
        self._enrollment_armed_at = self._clock()
        self._captured_uid = None
        self._enrollment_message = "En attente d'une carte..."
        return self.get_enrollment()

    def cancel_enrollment(self) -> EnrollmentState:
        self._enrollment_armed = False
        self._enrollment_armed_at = None
        self._enrollment_message = None
        return self.get_enrollment()

    def get_enrollment(self) -> EnrollmentState:
        self._expire_enrollment(self._clock())
        return EnrollmentState(
            armed=self._enrollment_armed,
            captured_uid=self._captured_uid,
            message=self._enrollment_message,
        )

    def _expire_enrollment(self, now: datetime) -> None:
        if not self._enrollment_armed or now - self._enrollment_armed_at < self._enrollment_timeout:
            return
        self._enrollment_armed = False
        self._enrollment_armed_at = None
        self._enrollment_message = "Délai de capture expiré : aucune carte scannée."
        logger.info("Mode capture de carte expiré")

    def _capture_card(self, card_uid: str, now: datetime) -> ScanResult:
        self._captured_uid = card_uid
        self._enrollment_armed = False
        self._enrollment_armed_at = None
        self._enrollment_message = f"Carte scannée: {card_uid}"
        logger.info("Carte %s capturée pour l'enregistrement d'un employé", card_uid)
        return ScanResult(
            card_uid=card_uid, outcome="card_captured", message=self._enrollment_message, scanned_at=now,
        )

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    def _lock_for(self, employee_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(employee_id)
        if lock is None:
            lock = self._locks[employee_id] = asyncio.Lock()
        return lock

    def _record(self, card_uid: str, employees: List[EmployeeSnapshot], now: datetime) -> NewAttendance:
        todays_records = self.day_records.get(utc_day(now))
        record = infer_and_record(card_uid, employees, todays_records, self._append_record, now)
        self.day_records.record_appended(record.to_snapshot())
        return record

    async def handle_scan(self, card_uid: str) -> ScanResult:
        """
        Traite un scan de bout en bout et renvoie son issue.
        Aucune exception ne sort de cette méthode.
        """
        card_uid = card_uid.strip()
        now = self._clock()
        employee: Optional[EmployeeSnapshot] = None

        try:
            employees = await run_in_threadpool(self.directory.get)

            self._expire_enrollment(now)
            known = _card_in_directory(card_uid, employees)

            if self._enrollment_armed and not known:
                result = self._capture_card(card_uid, now)
            else:
                if self._enrollment_armed:
                    # Carte déjà attribuée : elle pointe, la capture attend toujours une carte libre
                    self._enrollment_message = CARD_TAKEN_MESSAGE
                employee = resolve_badge(card_uid, employees)
                async with self._lock_for(employee.id):
                    # Horodatage pris sous le verrou : l'ordre des pointages suit l'ordre d'arrivée
                    now = self._clock()
                    record = await run_in_threadpool(self._record, card_uid, employees, now)
                result = ScanResult(
                    card_uid=card_uid,
                    outcome=record.action,
                    message=success_message(employee, record.action),
                    scanned_at=record.timestamp,
                    employee_id=employee.id,
                    employee_name=employee.full_name,
                    action=record.action,
                )
                logger.info("Carte %s : %s", card_uid, result.message)
        except UnknownBadge as exc:
            result = self._rejected(card_uid, "unknown_badge", exc, now)
        except AmbiguousIdentity as exc:
            result = self._rejected(card_uid, "ambiguous_identity", exc, now)
        except PersistenceFailure as exc:
            result = self._rejected(card_uid, "persistence_failure", exc, now, exc.employee)
        except InferenceError as exc:
            result = self._rejected(card_uid, "internal_error", exc, now, employee)
        except Exception as exc:
            logger.error("Erreur inattendue lors du scan de la carte %s : %s", card_uid, exc, exc_info=True)
            result = ScanResult(
                card_uid=card_uid,
                outcome="internal_error",
                message="Erreur lors du traitement du scan.",
                scanned_at=now,
                employee_id=employee.id if employee else None,
                employee_name=employee.full_name if employee else None,
            )

        self._publish(result)
        return result

    def _rejected(
        self,
        card_uid: str,
        outcome: str,
        exc: InferenceError,
        now: datetime,
        employee: Optional[EmployeeSnapshot] = None,
    ) -> ScanResult:
        logger.warning("Scan refusé (carte %s) : %s", card_uid, exc.status_message)
        return ScanResult(
            card_uid=card_uid,
            outcome=outcome,
            message=exc.status_message,
            scanned_at=now,
            employee_id=employee.id if employee else None,
            employee_name=employee.full_name if employee else None,
        )

    def _publish(self, result: ScanResult) -> None:
        """Met à jour le message opérateur et l'historique borné, que l'écriture ait réussi ou non."""
        self.status_message = result.message
        self.last_scan = result
        self._recent.appendleft(
            RecentScan(
                card_uid=result.card_uid,
                outcome=result.outcome,
                scanned_at=result.scanned_at,
                employee_name=result.employee_name,
            )
        )

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def refresh_snapshots(self) -> None:
        """Recharge l'annuaire et les pointages du jour (job planifié)."""
        self.directory.refresh()
        self.day_records.refresh(utc_day(self._clock()))

    def invalidate_directory(self) -> None:
        self.directory.invalidate()

    def invalidate_day(self) -> None:
        self.day_records.invalidate()

    def forget_employee(self, employee_id: uuid.UUID) -> None:
        """
        Oublie un employé supprimé : son verrou de sérialisation est retiré
        et les deux snapshots sont invalidés. Un scan en cours garde sa
        référence au verrou jusqu'à la fin de son écriture.
        """
        self._locks.pop(employee_id, None)
        self.invalidate_directory()
        self.invalidate_day()


def build_scan_processor(session_factory) -> ScanProcessor:
    """Crée un ScanProcessor branché sur la base (une session courte par opération)."""

    def load_employees() -> List[EmployeeSnapshot]:
        db = session_factory()
        try:
            return employee_service.load_employee_snapshots(db)
        finally:
            db.close()

    def load_day_records(day) -> List[AttendanceSnapshot]:
        db = session_factory()
        try:
            return attendance_service.load_day_records(db, day)
        finally:
            db.close()

    def append_record(entry: NewAttendance) -> None:
        db = session_factory()
        try:
            attendance_service.append_attendance(db, entry)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    return ScanProcessor(load_employees, load_day_records, append_record)


def get_scan_processor(request: Request) -> ScanProcessor:
    """Dépendance FastAPI : le ScanProcessor créé au démarrage de l'application."""
    return request.app.state.scan_processor
