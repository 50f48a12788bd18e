"""
Service métier pour les pointages : lecture du jour, ajout, saisie manuelle,
présences / absences et statistiques d'heures travaillées.

Les pointages sont append-only : aucune fonction de modification n'existe.
"""

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from pointage.models.attendance import AttendanceRecord
from pointage.models.employee import Employee
from pointage.schemas.attendance import (
    ABSENT,
    CHECK_IN,
    CHECK_OUT,
    AbsentEmployee,
    AttendanceResponse,
    AttendanceSnapshot,
    EmployeePresence,
    EmployeeStats,
    ManualAttendanceCreate,
    NewAttendance,
    PresenceSummary,
)
from pointage.services.inference import as_utc, day_key

logger = logging.getLogger(__name__)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Intervalle UTC [00:00, 00:00 du lendemain[ d'un jour calendaire."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def _day_records(db: Session, day: date) -> List[AttendanceRecord]:
    start, end = day_bounds(day)
    return db.execute(
        select(AttendanceRecord)
        .where(AttendanceRecord.timestamp >= start, AttendanceRecord.timestamp < end)
        .order_by(AttendanceRecord.timestamp, AttendanceRecord.created_at)
    ).scalars().all()


def load_day_records(db: Session, day: date) -> List[AttendanceSnapshot]:
    """Snapshot des pointages d'un jour, dans l'ordre chronologique puis d'insertion."""
    return [AttendanceSnapshot.model_validate(r) for r in _day_records(db, day)]


def append_attendance(db: Session, entry: NewAttendance) -> AttendanceRecord:
    """Ajoute un pointage. Toute erreur SQLAlchemy remonte à l'appelant."""
    record = AttendanceRecord(
        employee_id=entry.employee_id,
        action=entry.action,
        timestamp=entry.timestamp,
        is_manual=entry.is_manual,
    )
    db.add(record)
    db.commit()
    logger.info(
        "Pointage %s enregistré pour l'employé %s (%s)",
        entry.action, entry.employee_id, entry.timestamp.isoformat(),
    )
    return record


def create_manual_entry(db: Session, data: ManualAttendanceCreate) -> AttendanceResponse:
    """
    Saisie manuelle d'un pointage (is_manual=True).
    L'action est choisie par l'opérateur : aucune inférence, aucune vérification d'alternance.
    Lève ValueError si l'employé est introuvable.
    """
    employee = db.execute(select(Employee).where(Employee.id == data.employee_id)).scalar()
    if employee is None:
        raise ValueError(f"Employé {data.employee_id} introuvable.")

    entry = NewAttendance(
        employee_id=data.employee_id,
        action=data.action,
        timestamp=data.timestamp or datetime.now(timezone.utc),
        is_manual=True,
    )
    record = append_attendance(db, entry)
    db.refresh(record)
    return AttendanceResponse.model_validate(record)


def list_records(
    db: Session,
    day: Optional[date] = None,
    employee_id: Optional[uuid.UUID] = None,
) -> List[AttendanceResponse]:
    """Historique des pointages, du plus récent au plus ancien."""
    stmt = select(AttendanceRecord)
    if day is not None:
        start, end = day_bounds(day)
        stmt = stmt.where(AttendanceRecord.timestamp >= start, AttendanceRecord.timestamp < end)
    if employee_id is not None:
        stmt = stmt.where(AttendanceRecord.employee_id == employee_id)
    records = db.execute(
        stmt.order_by(AttendanceRecord.timestamp.desc(), AttendanceRecord.created_at.desc())
    ).scalars().all()
    return [AttendanceResponse.model_validate(r) for r in records]


def _latest_action_by_employee(records: Iterable[AttendanceRecord]) -> Dict[uuid.UUID, str]:
    # records triés chronologiquement : la dernière écriture gagne
    latest: Dict[uuid.UUID, str] = {}
    for record in records:
        latest[record.employee_id] = record.action
    return latest


def get_presence_board(db: Session, day: date) -> List[EmployeePresence]:
    """Pour chaque employé : dernière action du jour, ou Absent."""
    employees = db.execute(select(Employee).order_by(Employee.full_name)).scalars().all()
    latest = _latest_action_by_employee(_day_records(db, day))
    return [
        EmployeePresence(
            employee_id=e.id,
            full_name=e.full_name,
            department=e.department,
            status=latest.get(e.id, ABSENT),
        )
        for e in employees
    ]


def get_absent_employees(
    db: Session,
    day: date,
    department: Optional[str] = None,
) -> List[AbsentEmployee]:
    """Employés sans aucun pointage ce jour-là (entrée comme sortie)."""
    present_ids = {r.employee_id for r in _day_records(db, day)}
    stmt = select(Employee)
    if department:
        stmt = stmt.where(Employee.department == department)
    employees = db.execute(stmt.order_by(Employee.full_name)).scalars().all()
    return [
        AbsentEmployee(
            employee_id=e.id,
            full_name=e.full_name,
            department=e.department,
            card_uid=e.card_uid,
        )
        for e in employees
        if e.id not in present_ids
    ]


def get_presence_summary(db: Session, day: date) -> PresenceSummary:
    """Présents / absents du jour, effectif et nombre de présents par département."""
    employees = db.execute(select(Employee)).scalars().all()
    present_ids = {r.employee_id for r in _day_records(db, day)}

    headcount: Dict[str, int] = defaultdict(int)
    by_department: Dict[str, int] = defaultdict(int)
    present_count = 0
    for employee in employees:
        if employee.department:
            headcount[employee.department] += 1
        if employee.id in present_ids:
            present_count += 1
            if employee.department:
                by_department[employee.department] += 1

    return PresenceSummary(
        date=day,
        total_employees=len(employees),
        present_count=present_count,
        absent_count=len(employees) - present_count,
        employees_by_department=dict(headcount),
        presence_by_department=dict(by_department),
    )


def compute_work_hours(records: Iterable) -> float:
    """
    Heures travaillées : pour chaque jour, un check-in ouvre une période,
    le check-out suivant la ferme. Un check-in sans sortie n'est pas compté,
    un check-out sans entrée est ignoré.
    """
    by_day = defaultdict(list)
    for record in records:
        by_day[day_key(record.timestamp)].append(record)

    total = 0.0
    for daily in by_day.values():
        daily.sort(key=lambda r: as_utc(r.timestamp))
        check_in_at = None
        for record in daily:
            if record.action == CHECK_IN and check_in_at is None:
                check_in_at = as_utc(record.timestamp)
            elif record.action == CHECK_OUT and check_in_at is not None:
                total += (as_utc(record.timestamp) - check_in_at).total_seconds() / 3600
                check_in_at = None
    return total


def get_employee_stats(
    db: Session,
    employee_id: uuid.UUID,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> EmployeeStats:
    """
    Jours travaillés (jours distincts avec au moins un pointage) et heures cumulées
    sur la période [start, end] (bornes incluses, optionnelles).
    Lève ValueError si l'employé est introuvable.
    """
    employee = db.execute(select(Employee).where(Employee.id == employee_id)).scalar()
    if employee is None:
        raise ValueError(f"Employé {employee_id} introuvable.")

    stmt = select(AttendanceRecord).where(AttendanceRecord.employee_id == employee_id)
    if start is not None:
        stmt = stmt.where(AttendanceRecord.timestamp >= day_bounds(start)[0])
    if end is not None:
        stmt = stmt.where(AttendanceRecord.timestamp < day_bounds(end)[1])
    records = db.execute(stmt.order_by(AttendanceRecord.timestamp)).scalars().all()

    return EmployeeStats(
        employee_id=employee_id,
        start=start,
        end=end,
        days_worked=len({day_key(r.timestamp) for r in records}),
        total_work_hours=round(compute_work_hours(records), 2),
        records=[AttendanceResponse.model_validate(r) for r in records],
    )
