"""
Moteur d'inférence entrée / sortie à partir d'un scan de badge RFID.

Règle :
- Le badge est résolu dans le snapshot de l'annuaire (UID comparé sans espaces)
- On prend le dernier pointage de l'employé pour le jour calendaire courant
- Aucun pointage aujourd'hui → check-in, sinon l'inverse de la dernière action

Le jour calendaire est la partie date de l'horodatage ISO-8601 en UTC, pas une
fenêtre glissante de 24h : un check-in à 23:59 puis un scan à 00:01 le
lendemain donnent deux check-in (remise à zéro quotidienne assumée).
Pas d'anti-rebond : chaque scan alterne l'état.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Sequence

from pointage.schemas.attendance import CHECK_IN, CHECK_OUT, AttendanceSnapshot, NewAttendance
from pointage.schemas.employee import EmployeeSnapshot

logger = logging.getLogger(__name__)

UNKNOWN_BADGE_MESSAGE = "Aucun employé trouvé avec cet UID de carte."


class InferenceError(Exception):
    """Échec d'un scan. status_message est le texte affiché à l'opérateur."""

    status_message = "Erreur lors du traitement du scan."

    def __init__(self, card_uid: str, message: Optional[str] = None):
        self.card_uid = card_uid
        if message is not None:
            self.status_message = message
        super().__init__(self.status_message)


class UnknownBadge(InferenceError):
    """Aucun employé ne porte cette carte. Aucun pointage écrit."""

    status_message = UNKNOWN_BADGE_MESSAGE


class AmbiguousIdentity(InferenceError):
    """Plusieurs employés partagent la même carte (défaut d'intégrité de l'annuaire)."""

    def __init__(self, card_uid: str, employees: Sequence[EmployeeSnapshot]):
        self.employees = list(employees)
        super().__init__(
            card_uid,
            f"La carte {card_uid} est associée à {len(self.employees)} employés : "
            "pointage refusé, corriger l'annuaire.",
        )


class PersistenceFailure(InferenceError):
    """L'ajout du pointage a échoué. Pas de nouvelle tentative : le scan est perdu."""

    def __init__(self, card_uid: str, employee: EmployeeSnapshot, record: NewAttendance):
        self.employee = employee
        self.record = record
        super().__init__(
            card_uid,
            f"Échec de l'enregistrement du pointage de {employee.full_name}.",
        )


def as_utc(ts: datetime) -> datetime:
    """Horodatage en UTC ; un datetime naïf est considéré comme déjà en UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def day_key(ts: datetime) -> str:
    """Jour calendaire d'un horodatage : 'YYYY-MM-DD' de sa forme ISO-8601 UTC."""
    return as_utc(ts).isoformat()[:10]


def opposite(action: str) -> str:
    return CHECK_OUT if action == CHECK_IN else CHECK_IN


def resolve_badge(card_uid: str, employees: Iterable[EmployeeSnapshot]) -> EmployeeSnapshot:
    """
    Retrouve l'employé associé à une carte.

    Lève UnknownBadge si aucune correspondance, AmbiguousIdentity si la carte
    correspond à plusieurs employés distincts (jamais de choix arbitraire).
    """
    uid = card_uid.strip()
    matches = {}
    if uid:
        for employee in employees:
            if employee.card_uid and employee.card_uid.strip() == uid:
                matches.setdefault(employee.id, employee)

    if not matches:
        raise UnknownBadge(uid)
    if len(matches) > 1:
        raise AmbiguousIdentity(uid, list(matches.values()))
    return next(iter(matches.values()))


def latest_record_of_day(
    employee_id: uuid.UUID,
    records: Iterable[AttendanceSnapshot],
    now: datetime,
) -> Optional[AttendanceSnapshot]:
    """
    Dernier pointage de l'employé sur le jour calendaire de `now`.
    À horodatage égal, le pointage le plus tard dans le snapshot l'emporte.
    """
    today = day_key(now)
    latest = None
    for record in records:
        if record.employee_id != employee_id or day_key(record.timestamp) != today:
            continue
        if latest is None or as_utc(record.timestamp) >= as_utc(latest.timestamp):
            latest = record
    return latest


def infer_action(
    employee_id: uuid.UUID,
    todays_records: Iterable[AttendanceSnapshot],
    now: datetime,
) -> str:
    """Premier scan du jour → check-in ; ensuite alternance avec la dernière action."""
    latest = latest_record_of_day(employee_id, todays_records, now)
    if latest is None:
        return CHECK_IN
    return opposite(latest.action)


def infer_and_record(
    card_uid: str,
    known_employees: Iterable[EmployeeSnapshot],
    todays_records: Iterable[AttendanceSnapshot],
    append: Callable[[NewAttendance], object],
    now: Optional[datetime] = None,
) -> NewAttendance:
    """
    Convertit un scan en pointage alterné et le transmet à `append`.

    1. Résout la carte (UnknownBadge / AmbiguousIdentity)
    2. Déduit l'action à partir du dernier pointage du jour
    3. Construit le pointage horodaté à `now` (UTC)
    4. Appelle `append` ; toute exception devient PersistenceFailure

    Retourne le pointage ajouté.
    """
    now = as_utc(now or datetime.now(timezone.utc))
    employee = resolve_badge(card_uid, known_employees)
    action = infer_action(employee.id, todays_records, now)

    record = NewAttendance(employee_id=employee.id, action=action, timestamp=now)
    try:
        append(record)
    except Exception as exc:
        logger.error(
            "Échec d'écriture du pointage %s pour l'employé %s : %s",
            action, employee.id, exc, exc_info=True,
        )
        raise PersistenceFailure(card_uid.strip(), employee, record) from exc

    return record
