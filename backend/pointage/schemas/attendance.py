"""
Schémas Pydantic pour les pointages.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, field_validator

CHECK_IN = "check-in"
CHECK_OUT = "check-out"
ABSENT = "Absent"

Action = Literal["check-in", "check-out"]


class AttendanceSnapshot(BaseModel):
    """Pointage figé tel que lu dans le snapshot du jour (entrée du moteur d'inférence)."""
    employee_id: uuid.UUID
    action: Action
    timestamp: datetime

    model_config = {"from_attributes": True, "frozen": True}


class NewAttendance(BaseModel):
    """Pointage à ajouter : {employeeId, action, timestamp} (+ is_manual pour la saisie manuelle)."""
    employee_id: uuid.UUID
    action: Action
    timestamp: datetime
    is_manual: bool = False

    def to_snapshot(self) -> AttendanceSnapshot:
        return AttendanceSnapshot(
            employee_id=self.employee_id, action=self.action, timestamp=self.timestamp
        )


class ManualAttendanceCreate(BaseModel):
    """Saisie manuelle d'un pointage par un opérateur (ne passe pas par l'inférence)."""
    employee_id: uuid.UUID
    action: Action
    timestamp: Optional[datetime] = None  # défaut : maintenant

    @field_validator("timestamp")
    @classmethod
    def aware_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Un horodatage sans fuseau est interprété comme UTC
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class AttendanceResponse(BaseModel):
    """Pointage renvoyé par l'API."""
    id: uuid.UUID
    employee_id: uuid.UUID
    action: Action
    timestamp: datetime
    is_manual: bool = False

    model_config = {"from_attributes": True}


class EmployeePresence(BaseModel):
    """Statut du jour d'un employé : dernière action ou Absent."""
    employee_id: uuid.UUID
    full_name: str
    department: str
    status: Literal["check-in", "check-out", "Absent"]


class AbsentEmployee(BaseModel):
    """Employé sans aucun pointage à la date demandée."""
    employee_id: uuid.UUID
    full_name: str
    department: str
    card_uid: str


class PresenceSummary(BaseModel):
    """Indicateurs de présence d'une journée (tableau de bord)."""
    date: date
    total_employees: int
    present_count: int
    absent_count: int
    employees_by_department: Dict[str, int]
    presence_by_department: Dict[str, int]


class EmployeeStats(BaseModel):
    """Statistiques d'un employé sur une période (jours travaillés, heures cumulées)."""
    employee_id: uuid.UUID
    start: Optional[date]
    end: Optional[date]
    days_worked: int
    total_work_hours: float
    records: List[AttendanceResponse]
