"""
Router pour l'annuaire des employés.
"""

import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from pointage.database import get_db
from pointage.schemas.attendance import EmployeeStats
from pointage.schemas.employee import (
    EmployeeCreate,
    EmployeeDeleteResult,
    EmployeeResponse,
    EmployeeUpdate,
)
from pointage.services import attendance_service, employee_service
from pointage.services.scan_service import ScanProcessor, get_scan_processor

router = APIRouter(prefix="/api/v1/employees", tags=["Employés"])


def _raise_http(e: ValueError):
    msg = str(e)
    if "introuvable" in msg:
        raise HTTPException(status_code=404, detail=msg)
    raise HTTPException(status_code=409, detail=msg)


@router.get("", response_model=List[EmployeeResponse], summary="Lister les employés")
def list_employees(
    department: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Liste les employés triés par nom. Filtres optionnels : département, recherche sur le nom."""
    return employee_service.list_employees(db, department=department, search=search)


@router.post("", response_model=EmployeeResponse, status_code=201, summary="Créer un employé")
def create_employee(
    data: EmployeeCreate,
    db: Session = Depends(get_db),
    processor: ScanProcessor = Depends(get_scan_processor),
):
    """
    Crée un employé avec sa carte RFID (capturée au préalable via /scanner/enrollment).
    Retourne 409 si la carte est déjà associée à un autre employé.
    """
    try:
        employee = employee_service.create_employee(db, data)
    except ValueError as e:
        _raise_http(e)
    processor.invalidate_directory()
    return employee


# Déclarée avant /{employee_id} : "recent" n'est pas un UUID
@router.get("/recent", response_model=List[EmployeeResponse], summary="Derniers employés ajoutés")
def list_recent_employees(limit: int = Query(5, ge=1, le=50), db: Session = Depends(get_db)):
    """Employés les plus récemment ajoutés, du plus récent au plus ancien."""
    return employee_service.list_recent_employees(db, limit=limit)


@router.get("/{employee_id}", response_model=EmployeeResponse, summary="Détail d'un employé")
def get_employee(employee_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        return employee_service.get_employee(db, employee_id)
    except ValueError as e:
        _raise_http(e)


@router.put("/{employee_id}", response_model=EmployeeResponse, summary="Modifier un employé")
def update_employee(
    employee_id: uuid.UUID,
    data: EmployeeUpdate,
    db: Session = Depends(get_db),
    processor: ScanProcessor = Depends(get_scan_processor),
):
    """Retourne 404 si l'employé est introuvable, 409 si la nouvelle carte est déjà prise."""
    try:
        employee = employee_service.update_employee(db, employee_id, data)
    except ValueError as e:
        _raise_http(e)
    processor.invalidate_directory()
    return employee


@router.delete("/{employee_id}", response_model=EmployeeDeleteResult, summary="Supprimer un employé")
def delete_employee(
    employee_id: uuid.UUID,
    db: Session = Depends(get_db),
    processor: ScanProcessor = Depends(get_scan_processor),
):
    """Supprime l'employé et tout son historique de pointage."""
    try:
        result = employee_service.delete_employee(db, employee_id)
    except ValueError as e:
        _raise_http(e)
    processor.forget_employee(employee_id)
    return result


@router.get("/{employee_id}/stats", response_model=EmployeeStats, summary="Statistiques de présence")
def get_employee_stats(
    employee_id: uuid.UUID,
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
):
    """Jours travaillés et heures cumulées sur la période [start, end] (bornes optionnelles)."""
    if start and end and start > end:
        raise HTTPException(status_code=400, detail="La date de début doit précéder la date de fin.")
    try:
        return attendance_service.get_employee_stats(db, employee_id, start, end)
    except ValueError as e:
        _raise_http(e)
