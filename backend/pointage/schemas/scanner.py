"""
Schémas Pydantic pour le scanner RFID : résultat d'un scan et état observable.
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, field_validator

CONNECTED = "connected"
DISCONNECTED = "disconnected"
ERROR = "error"

ConnectionState = Literal["connected", "disconnected", "error"]

# Résultats possibles d'un scan (un seul par scan)
ScanOutcome = Literal[
    "check-in",
    "check-out",
    "unknown_badge",
    "ambiguous_identity",
    "persistence_failure",
    "internal_error",
    "card_captured",
]


class ScanRequest(BaseModel):
    """Scan injecté via l'API (même traitement qu'un message du lecteur)."""
    card_uid: str

    @field_validator("card_uid")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("L'UID de carte ne peut pas être vide.")
        return v.strip()


class ScanResult(BaseModel):
    """Issue d'un scan : soit un pointage, soit une erreur signalée à l'opérateur."""
    card_uid: str
    outcome: ScanOutcome
    message: str
    scanned_at: datetime
    employee_id: Optional[uuid.UUID] = None
    employee_name: Optional[str] = None
    action: Optional[Literal["check-in", "check-out"]] = None

    @property
    def recorded(self) -> bool:
        return self.outcome in ("check-in", "check-out")


class RecentScan(BaseModel):
    """Entrée de l'historique des derniers scans (plus récent en premier)."""
    card_uid: str
    outcome: ScanOutcome
    scanned_at: datetime
    employee_name: Optional[str] = None


class ScannerStatus(BaseModel):
    """État affiché à l'opérateur : connexion + message du dernier évènement."""
    connection: ConnectionState
    status: str
    last_scan: Optional[ScanResult] = None
    recent_scans: List[RecentScan]


class EnrollmentState(BaseModel):
    """Mode capture de carte (enregistrement d'un nouvel employé)."""
    armed: bool
    captured_uid: Optional[str] = None
    message: Optional[str] = None
