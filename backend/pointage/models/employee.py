"""
Modèle SQLAlchemy pour l'annuaire des employés.

card_uid n'est volontairement pas UNIQUE en base : l'unicité est une règle
de l'annuaire (employee_service), le moteur de pointage détecte lui-même
les doublons éventuels.
"""

import uuid
from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID

from pointage.database import Base


class Employee(Base):
    __tablename__ = "employees"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name = Column(String(200), nullable=False)
    gender = Column(String(20), nullable=True)
    department = Column(String(100), nullable=False)
    national_id = Column(String(50), nullable=True)          # CIN (optionnel)
    card_uid = Column(String(64), nullable=False, index=True)  # UID gravé dans la carte RFID

    date_added = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
