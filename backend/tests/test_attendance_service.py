"""
Tests unitaires pour le service des pointages.
Couverture : lecture du jour, ajout, saisie manuelle, présences, absences,
indicateurs du jour et calcul des heures travaillées.
"""

import uuid
from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import pytest

from pointage.models.attendance import AttendanceRecord
from pointage.models.employee import Employee
from pointage.schemas.attendance import ManualAttendanceCreate, NewAttendance
from pointage.services.attendance_service import (
    append_attendance,
    compute_work_hours,
    create_manual_entry,
    day_bounds,
    get_absent_employees,
    get_employee_stats,
    get_presence_board,
    get_presence_summary,
    load_day_records,
)


# ----------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------

def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def make_employee(full_name="Salma Idrissi", department="IT", card_uid="A1B2"):
    e = MagicMock(spec=Employee)
    e.id = uuid.uuid4()
    e.full_name = full_name
    e.department = department
    e.card_uid = card_uid
    return e


def make_record(employee_id, action, ts, is_manual=False):
    r = MagicMock(spec=AttendanceRecord)
    r.id = uuid.uuid4()
    r.employee_id = employee_id
    r.action = action
    r.timestamp = ts
    r.is_manual = is_manual
    return r


def scalar_result(value):
    result = MagicMock()
    result.scalar.return_value = value
    return result


def scalars_result(values):
    result = MagicMock()
    result.scalars.return_value.all.return_value = values
    return result


# ----------------------------------------------------------------
# Lecture / ajout
# ----------------------------------------------------------------

def test_day_bounds():
    start, end = day_bounds(date(2024, 1, 1))
    assert start == utc(2024, 1, 1)
    assert end == utc(2024, 1, 2)


def test_load_day_records():
    eid = uuid.uuid4()
    db = MagicMock()
    db.execute.return_value = scalars_result([
        make_record(eid, "check-in", utc(2024, 1, 1, 8)),
        make_record(eid, "check-out", utc(2024, 1, 1, 17)),
    ])

    records = load_day_records(db, date(2024, 1, 1))

    assert [r.action for r in records] == ["check-in", "check-out"]
    assert records[0].employee_id == eid


def test_append_attendance():
    db = MagicMock()
    entry = NewAttendance(employee_id=uuid.uuid4(), action="check-in", timestamp=utc(2024, 1, 1, 8))

    record = append_attendance(db, entry)

    assert isinstance(record, AttendanceRecord)
    assert record.action == "check-in"
    assert record.is_manual is False
    db.add.assert_called_once_with(record)
    db.commit.assert_called_once()


def test_append_attendance_erreur_remonte():
    db = MagicMock()
    db.commit.side_effect = RuntimeError("permission refusée")
    entry = NewAttendance(employee_id=uuid.uuid4(), action="check-in", timestamp=utc(2024, 1, 1, 8))

    with pytest.raises(RuntimeError):
        append_attendance(db, entry)


# ----------------------------------------------------------------
# Saisie manuelle
# ----------------------------------------------------------------

class TestManualEntry:
    def test_saisie_manuelle(self):
        employee = make_employee()
        db = MagicMock()
        db.execute.return_value = scalar_result(employee)
        db.refresh.side_effect = lambda obj: setattr(obj, "id", uuid.uuid4())

        result = create_manual_entry(
            db,
            ManualAttendanceCreate(employee_id=employee.id, action="check-out", timestamp=utc(2024, 1, 1, 18)),
        )

        assert result.is_manual is True
        assert result.action == "check-out"
        assert result.employee_id == employee.id
        assert result.timestamp == utc(2024, 1, 1, 18)

    def test_horodatage_naif_interprete_utc(self):
        data = ManualAttendanceCreate(
            employee_id=uuid.uuid4(), action="check-in", timestamp=datetime(2024, 1, 1, 8, 0),
        )
        assert data.timestamp == utc(2024, 1, 1, 8)

    def test_employe_introuvable(self):
        db = MagicMock()
        db.execute.return_value = scalar_result(None)

        with pytest.raises(ValueError, match="introuvable"):
            create_manual_entry(db, ManualAttendanceCreate(employee_id=uuid.uuid4(), action="check-in"))

        db.add.assert_not_called()


# ----------------------------------------------------------------
# Présences / absences
# ----------------------------------------------------------------

class TestPresence:
    def setup_method(self):
        self.salma = make_employee("Salma Idrissi", "IT", "A1B2")
        self.yassine = make_employee("Yassine Amrani", "Finance", "C3D4")
        self.nora = make_employee("Nora Bennani", "IT", "E5F6")
        self.records = [
            make_record(self.salma.id, "check-in", utc(2024, 1, 1, 8)),
            make_record(self.yassine.id, "check-in", utc(2024, 1, 1, 9)),
            make_record(self.salma.id, "check-out", utc(2024, 1, 1, 12)),
        ]

    def test_tableau_de_presence(self):
        db = MagicMock()
        db.execute.side_effect = [
            scalars_result([self.nora, self.salma, self.yassine]),
            scalars_result(self.records),
        ]

        board = {p.full_name: p.status for p in get_presence_board(db, date(2024, 1, 1))}

        assert board == {
            "Nora Bennani": "Absent",
            "Salma Idrissi": "check-out",
            "Yassine Amrani": "check-in",
        }

    def test_absents(self):
        db = MagicMock()
        db.execute.side_effect = [
            scalars_result(self.records),
            scalars_result([self.nora, self.salma, self.yassine]),
        ]

        absents = get_absent_employees(db, date(2024, 1, 1))

        assert [a.full_name for a in absents] == ["Nora Bennani"]
        assert absents[0].card_uid == "E5F6"

    def test_indicateurs_du_jour(self):
        db = MagicMock()
        db.execute.side_effect = [
            scalars_result([self.salma, self.yassine, self.nora]),
            scalars_result(self.records),
        ]

        summary = get_presence_summary(db, date(2024, 1, 1))

        assert summary.total_employees == 3
        assert summary.present_count == 2
        assert summary.absent_count == 1
        assert summary.presence_by_department == {"IT": 1, "Finance": 1}
        assert summary.employees_by_department == {"IT": 2, "Finance": 1}

    def test_indicateurs_sans_pointage(self):
        db = MagicMock()
        db.execute.side_effect = [scalars_result([self.salma]), scalars_result([])]

        summary = get_presence_summary(db, date(2024, 1, 1))

        assert summary.present_count == 0
        assert summary.absent_count == 1
        assert summary.presence_by_department == {}
        assert summary.employees_by_department == {"IT": 1}


# ----------------------------------------------------------------
# Heures travaillées
# ----------------------------------------------------------------

class TestWorkHours:
    def test_une_periode(self):
        eid = uuid.uuid4()
        records = [
            make_record(eid, "check-in", utc(2024, 1, 1, 8)),
            make_record(eid, "check-out", utc(2024, 1, 1, 12, 30)),
        ]
        assert compute_work_hours(records) == pytest.approx(4.5)

    def test_plusieurs_periodes_et_jours(self):
        eid = uuid.uuid4()
        records = [
            make_record(eid, "check-out", utc(2024, 1, 1, 12)),
            make_record(eid, "check-in", utc(2024, 1, 1, 8)),
            make_record(eid, "check-in", utc(2024, 1, 1, 13)),
            make_record(eid, "check-out", utc(2024, 1, 1, 17)),
            make_record(eid, "check-in", utc(2024, 1, 2, 9)),
            make_record(eid, "check-out", utc(2024, 1, 2, 10)),
        ]
        assert compute_work_hours(records) == pytest.approx(9.0)

    def test_entree_sans_sortie_non_comptee(self):
        eid = uuid.uuid4()
        records = [make_record(eid, "check-in", utc(2024, 1, 1, 8))]
        assert compute_work_hours(records) == 0

    def test_periode_a_cheval_sur_minuit_non_comptee(self):
        """Chaque jour est calculé séparément : pas de période 23:00 → 01:00."""
        eid = uuid.uuid4()
        records = [
            make_record(eid, "check-in", utc(2024, 1, 1, 23)),
            make_record(eid, "check-out", utc(2024, 1, 2, 1)),
        ]
        assert compute_work_hours(records) == 0

    def test_statistiques_employe(self):
        employee = make_employee()
        records = [
            make_record(employee.id, "check-in", utc(2024, 1, 1, 8)),
            make_record(employee.id, "check-out", utc(2024, 1, 1, 16, 20)),
            make_record(employee.id, "check-in", utc(2024, 1, 3, 8)),
        ]
        db = MagicMock()
        db.execute.side_effect = [scalar_result(employee), scalars_result(records)]

        stats = get_employee_stats(db, employee.id, date(2024, 1, 1), date(2024, 1, 31))

        assert stats.days_worked == 2
        assert stats.total_work_hours == 8.33
        assert len(stats.records) == 3

    def test_statistiques_employe_introuvable(self):
        db = MagicMock()
        db.execute.return_value = scalar_result(None)
        with pytest.raises(ValueError, match="introuvable"):
            get_employee_stats(db, uuid.uuid4())
