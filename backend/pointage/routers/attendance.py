"""
Router pour les pointages : historique, saisie manuelle, présences et absences.
"""

import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from pointage.database import get_db
from pointage.schemas.attendance import (
    AbsentEmployee,
    AttendanceResponse,
    EmployeePresence,
    ManualAttendanceCreate,
    PresenceSummary,
)
from pointage.services import attendance_service
from pointage.services.scan_service import ScanProcessor, get_scan_processor

router = APIRouter(prefix="/api/v1/attendance", tags=["Pointages"])


def _today() -> date:
    return datetime.now(timezone.utc).date()


@router.get("", response_model=List[AttendanceResponse], summary="Historique des pointages")
def list_records(
    day: Optional[date] = Query(None, alias="date"),
    employee_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
):
    """Pointages du plus récent au plus ancien, filtrables par jour et par employé."""
    return attendance_service.list_records(db, day=day, employee_id=employee_id)


@router.post(
    "/manual",
    response_model=AttendanceResponse,
    status_code=201,
    summary="Saisie manuelle d'un pointage",
)
def create_manual_entry(
    data: ManualAttendanceCreate,
    db: Session = Depends(get_db),
    processor: ScanProcessor = Depends(get_scan_processor),
):
    """
    Enregistre un pointage choisi par l'opérateur (badge oublié, correction…).
    Pas d'inférence : l'action fournie est écrite telle quelle avec is_manual=true.
    Retourne 404 si l'employé est introuvable.
    """
    try:
        record = attendance_service.create_manual_entry(db, data)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    processor.invalidate_day()
    return record


@router.get("/presence", response_model=List[EmployeePresence], summary="Statut du jour par employé")
def get_presence_board(day: Optional[date] = Query(None, alias="date"), db: Session = Depends(get_db)):
    """Dernière action du jour pour chaque employé (check-in / check-out) ou Absent."""
    return attendance_service.get_presence_board(db, day or _today())


@router.get("/absent", response_model=List[AbsentEmployee], summary="Employés absents")
def get_absent_employees(
    day: Optional[date] = Query(None, alias="date"),
    department: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Employés sans aucun pointage à la date demandée (défaut : aujourd'hui, UTC)."""
    return attendance_service.get_absent_employees(db, day or _today(), department=department)


@router.get("/summary", response_model=PresenceSummary, summary="Indicateurs de présence")
def get_presence_summary(day: Optional[date] = Query(None, alias="date"), db: Session = Depends(get_db)):
    """Présents, absents et présents par département pour une journée."""
    return attendance_service.get_presence_summary(db, day or _today())
