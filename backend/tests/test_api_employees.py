"""
Tests d'intégration API pour l'annuaire des employés.
Endpoints : /api/v1/employees
"""

import uuid
from datetime import datetime, timezone
from unittest.mock import patch

from pointage.schemas.attendance import EmployeeStats
from pointage.schemas.employee import EmployeeDeleteResult, EmployeeResponse


# --- Helpers ---

def make_employee_response(**kwargs) -> EmployeeResponse:
    return EmployeeResponse(
        id=kwargs.get("id", uuid.uuid4()),
        full_name=kwargs.get("full_name", "Salma Idrissi"),
        department=kwargs.get("department", "IT"),
        card_uid=kwargs.get("card_uid", "A1B2"),
        gender=kwargs.get("gender", None),
        national_id=kwargs.get("national_id", None),
        date_added=kwargs.get("date_added", datetime.now(timezone.utc)),
    )


# ============================================================
# GET /api/v1/employees
# ============================================================

def test_lister_employes(client):
    with patch("pointage.routers.employees.employee_service.list_employees") as mock:
        mock.return_value = [make_employee_response(), make_employee_response(card_uid="C3D4")]
        response = client.get("/api/v1/employees", params={"department": "IT"})

    assert response.status_code == 200
    assert len(response.json()) == 2
    assert mock.call_args.kwargs["department"] == "IT"


# ============================================================
# GET /api/v1/employees/recent
# ============================================================

def test_derniers_employes_ajoutes(client):
    with patch("pointage.routers.employees.employee_service.list_recent_employees") as mock:
        mock.return_value = [
            make_employee_response(full_name="Yassine Amrani", date_added=datetime(2024, 3, 1, tzinfo=timezone.utc)),
            make_employee_response(date_added=datetime(2024, 1, 1, tzinfo=timezone.utc)),
        ]
        response = client.get("/api/v1/employees/recent", params={"limit": 2})

    assert response.status_code == 200
    assert [e["full_name"] for e in response.json()] == ["Yassine Amrani", "Salma Idrissi"]
    assert mock.call_args.kwargs["limit"] == 2


def test_derniers_employes_limite_par_defaut(client):
    with patch("pointage.routers.employees.employee_service.list_recent_employees") as mock:
        mock.return_value = []
        response = client.get("/api/v1/employees/recent")

    assert response.status_code == 200
    assert mock.call_args.kwargs["limit"] == 5


def test_derniers_employes_limite_invalide(client):
    response = client.get("/api/v1/employees/recent", params={"limit": 0})
    assert response.status_code == 422


# ============================================================
# POST /api/v1/employees
# ============================================================

def test_creer_employe(client, processor):
    with patch("pointage.routers.employees.employee_service.create_employee") as mock:
        mock.return_value = make_employee_response(card_uid="A1B2")
        response = client.post("/api/v1/employees", json={
            "full_name": "Salma Idrissi",
            "department": "IT",
            "card_uid": "A1B2",
        })

    assert response.status_code == 201
    assert response.json()["card_uid"] == "A1B2"
    processor.invalidate_directory.assert_called_once()


def test_creer_employe_carte_prise(client, processor):
    with patch("pointage.routers.employees.employee_service.create_employee") as mock:
        mock.side_effect = ValueError("Cette carte est déjà associée à un autre employé.")
        response = client.post("/api/v1/employees", json={
            "full_name": "Salma Idrissi",
            "department": "IT",
            "card_uid": "A1B2",
        })

    assert response.status_code == 409
    assert "déjà associée" in response.json()["detail"]
    processor.invalidate_directory.assert_not_called()


def test_creer_employe_sans_carte(client):
    response = client.post("/api/v1/employees", json={
        "full_name": "Salma Idrissi",
        "department": "IT",
        "card_uid": "   ",
    })
    assert response.status_code == 422


# ============================================================
# GET / PUT / DELETE /api/v1/employees/{id}
# ============================================================

def test_employe_introuvable(client):
    employee_id = uuid.uuid4()
    with patch("pointage.routers.employees.employee_service.get_employee") as mock:
        mock.side_effect = ValueError(f"Employé {employee_id} introuvable.")
        response = client.get(f"/api/v1/employees/{employee_id}")

    assert response.status_code == 404


def test_modifier_employe(client, processor):
    employee_id = uuid.uuid4()
    with patch("pointage.routers.employees.employee_service.update_employee") as mock:
        mock.return_value = make_employee_response(id=employee_id, department="Finance")
        response = client.put(f"/api/v1/employees/{employee_id}", json={"department": "Finance"})

    assert response.status_code == 200
    assert response.json()["department"] == "Finance"
    processor.invalidate_directory.assert_called_once()


def test_supprimer_employe(client, processor):
    employee_id = uuid.uuid4()
    with patch("pointage.routers.employees.employee_service.delete_employee") as mock:
        mock.return_value = EmployeeDeleteResult(employee_id=employee_id, deleted_records=12)
        response = client.delete(f"/api/v1/employees/{employee_id}")

    assert response.status_code == 200
    assert response.json()["deleted_records"] == 12
    processor.forget_employee.assert_called_once_with(employee_id)


def test_id_invalide(client):
    response = client.get("/api/v1/employees/pas-un-uuid")
    assert response.status_code == 422


# ============================================================
# GET /api/v1/employees/{id}/stats
# ============================================================

def test_statistiques(client):
    employee_id = uuid.uuid4()
    with patch("pointage.routers.employees.attendance_service.get_employee_stats") as mock:
        mock.return_value = EmployeeStats(
            employee_id=employee_id, start=None, end=None,
            days_worked=3, total_work_hours=24.5, records=[],
        )
        response = client.get(
            f"/api/v1/employees/{employee_id}/stats",
            params={"start": "2024-01-01", "end": "2024-01-31"},
        )

    assert response.status_code == 200
    assert response.json()["total_work_hours"] == 24.5


def test_statistiques_periode_inversee(client):
    response = client.get(
        f"/api/v1/employees/{uuid.uuid4()}/stats",
        params={"start": "2024-02-01", "end": "2024-01-01"},
    )
    assert response.status_code == 400
