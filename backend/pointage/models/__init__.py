# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles
# (attendance_records.employee_id → employees.id).

from pointage.models.employee import Employee  # noqa: F401  doit précéder attendance
from pointage.models.attendance import AttendanceRecord  # noqa: F401
