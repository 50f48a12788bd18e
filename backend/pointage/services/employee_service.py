"""
Service métier pour l'annuaire des employés.

L'unicité de la carte RFID est vérifiée ici, à la création et à la modification.
La suppression d'un employé supprime aussi tout son historique de pointage.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from pointage.models.attendance import AttendanceRecord
from pointage.models.employee import Employee
from pointage.schemas.employee import (
    EmployeeCreate,
    EmployeeDeleteResult,
    EmployeeResponse,
    EmployeeSnapshot,
    EmployeeUpdate,
)

logger = logging.getLogger(__name__)

CARD_TAKEN_MESSAGE = "Cette carte est déjà associée à un autre employé."


def is_card_available(
    db: Session,
    card_uid: str,
    exclude_employee_id: Optional[uuid.UUID] = None,
) -> bool:
    """Vrai si aucun autre employé ne porte déjà cette carte."""
    stmt = select(Employee).where(Employee.card_uid == card_uid.strip())
    if exclude_employee_id is not None:
        stmt = stmt.where(Employee.id != exclude_employee_id)
    return db.execute(stmt).scalar() is None


def list_employees(
    db: Session,
    department: Optional[str] = None,
    search: Optional[str] = None,
) -> List[EmployeeResponse]:
    """Liste les employés triés par nom, filtrables par département et par nom (insensible à la casse)."""
    stmt = select(Employee)
    if department:
        stmt = stmt.where(Employee.department == department)
    if search:
        stmt = stmt.where(Employee.full_name.ilike(f"%{search.strip()}%"))
    employees = db.execute(stmt.order_by(Employee.full_name)).scalars().all()
    return [EmployeeResponse.model_validate(e) for e in employees]


def list_recent_employees(db: Session, limit: int = 5) -> List[EmployeeResponse]:
    """Derniers employés ajoutés à l'annuaire (date d'ajout décroissante)."""
    stmt = select(Employee).order_by(Employee.date_added.desc(), Employee.full_name).limit(limit)
    employees = db.execute(stmt).scalars().all()
    return [EmployeeResponse.model_validate(e) for e in employees]


def _get_or_raise(db: Session, employee_id: uuid.UUID) -> Employee:
    employee = db.execute(select(Employee).where(Employee.id == employee_id)).scalar()
    if employee is None:
        raise ValueError(f"Employé {employee_id} introuvable.")
    return employee


def get_employee(db: Session, employee_id: uuid.UUID) -> EmployeeResponse:
    """Lève ValueError si l'employé est introuvable."""
    return EmployeeResponse.model_validate(_get_or_raise(db, employee_id))


def create_employee(db: Session, data: EmployeeCreate) -> EmployeeResponse:
    """
    Crée un employé avec sa carte RFID.
    Lève ValueError si la carte est déjà associée à un autre employé.
    """
    if not is_card_available(db, data.card_uid):
        raise ValueError(CARD_TAKEN_MESSAGE)

    employee = Employee(
        full_name=data.full_name,
        department=data.department,
        card_uid=data.card_uid,
        gender=data.gender,
        national_id=data.national_id,
    )
    db.add(employee)
    db.commit()
    db.refresh(employee)

    logger.info("Employé %s créé (carte %s)", employee.id, employee.card_uid)
    return EmployeeResponse.model_validate(employee)


def update_employee(db: Session, employee_id: uuid.UUID, data: EmployeeUpdate) -> EmployeeResponse:
    """
    Met à jour les champs fournis.
    Lève ValueError si l'employé est introuvable ou si la nouvelle carte est déjà prise.
    """
    employee = _get_or_raise(db, employee_id)
    changes = data.model_dump(exclude_unset=True)

    new_card = changes.get("card_uid")
    if new_card and new_card != employee.card_uid:
        if not is_card_available(db, new_card, exclude_employee_id=employee_id):
            raise ValueError(CARD_TAKEN_MESSAGE)

    for field, value in changes.items():
        setattr(employee, field, value)

    db.commit()
    db.refresh(employee)
    return EmployeeResponse.model_validate(employee)


def delete_employee(db: Session, employee_id: uuid.UUID) -> EmployeeDeleteResult:
    """
    Supprime l'employé et tous ses pointages.
    La suppression explicite des pointages précède celle de l'employé
    pour ne pas dépendre du ON DELETE CASCADE côté base.
    """
    employee = _get_or_raise(db, employee_id)

    result = db.execute(
        delete(AttendanceRecord).where(AttendanceRecord.employee_id == employee_id)
    )
    db.delete(employee)
    db.commit()

    deleted = result.rowcount or 0
    logger.info("Employé %s supprimé avec %d pointage(s)", employee_id, deleted)
    return EmployeeDeleteResult(employee_id=employee_id, deleted_records=deleted)


def load_employee_snapshots(db: Session) -> List[EmployeeSnapshot]:
    """Snapshot complet de l'annuaire pour le moteur de pointage."""
    employees = db.execute(select(Employee)).scalars().all()
    return [EmployeeSnapshot.model_validate(e) for e in employees]
