"""
Schémas Pydantic pour l'annuaire des employés.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class EmployeeCreate(BaseModel):
    """Schéma de création d'un employé (POST /employees). La carte doit avoir été scannée."""
    full_name: str
    department: str
    card_uid: str
    gender: Optional[str] = None
    national_id: Optional[str] = None

    @field_validator("full_name", "department", "card_uid")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le champ ne peut pas être vide.")
        return v.strip()


class EmployeeUpdate(BaseModel):
    """Schéma de mise à jour partielle d'un employé (PUT /employees/{id})."""
    full_name: Optional[str] = None
    department: Optional[str] = None
    card_uid: Optional[str] = None
    gender: Optional[str] = None
    national_id: Optional[str] = None

    @field_validator("full_name", "department", "card_uid")
    @classmethod
    def not_empty(cls, v: Optional[str]) -> str:
        # Un champ omis n'est pas validé ; un null explicite est refusé
        if v is None or not v.strip():
            raise ValueError("Le champ ne peut pas être vide.")
        return v.strip()


class EmployeeResponse(BaseModel):
    """Schéma de réponse pour un employé."""
    id: uuid.UUID
    full_name: str
    department: str
    card_uid: str
    gender: Optional[str]
    national_id: Optional[str]
    date_added: Optional[datetime]

    model_config = {"from_attributes": True}


class EmployeeSnapshot(BaseModel):
    """Vue figée d'un employé, telle que lue dans l'annuaire au moment du scan."""
    id: uuid.UUID
    full_name: str
    department: str
    card_uid: str

    model_config = {"from_attributes": True, "frozen": True}


class EmployeeDeleteResult(BaseModel):
    """Rapport de suppression (l'historique de pointage est supprimé en cascade)."""
    employee_id: uuid.UUID
    deleted_records: int
