"""
Modèle SQLAlchemy pour les pointages (entrée / sortie).

Append-only :
- action     : "check-in" ou "check-out"
- timestamp  : instant du scan (UTC, sérialisé en ISO-8601)
- is_manual  : True uniquement pour une saisie manuelle (hors inférence)
- created_at : ordre d'insertion, départage deux pointages simultanés
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import UUID

from pointage.database import Base


class AttendanceRecord(Base):
    """Pointage d'un employé, créé par un scan de badge ou une saisie manuelle."""
    __tablename__ = "attendance_records"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    employee_id = Column(
        UUID(as_uuid=True), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )

    action = Column(String(20), nullable=False)              # check-in, check-out
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    is_manual = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
