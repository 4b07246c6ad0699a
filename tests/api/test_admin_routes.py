import asyncpg

from gmhs.backend.models.db_models import Role


def test_dashboard(client, mock_db):
    mock_db.count_users_by_role.return_value = {"ADMIN": 1, "TEACHER": 2, "PARENT": 3}
    for method in ("count_users", "count_students", "count_actions", "count_complaints"):
        getattr(mock_db, method).return_value = 0
    mock_db.get_class_distribution.return_value = []
    mock_db.get_action_timestamps.return_value = []

    response = client.get("/api/admin/dashboard")

    assert response.status_code == 200
    data = response.json()
    assert data["userStats"]["total"] == 6
    assert data["userStats"]["byRole"]["TEACHER"] == 2
    assert len(data["activityStats"]["dailyActivity"]) == 7
    assert data["systemHealth"]["activeTeachers"] == 2


def test_dashboard_database_failure(client, mock_db):
    mock_db.count_users_by_role.side_effect = Exception("db down")
    response = client.get("/api/admin/dashboard")
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to fetch dashboard statistics"


def test_teachers_overview(client, mock_db, make_user):
    mock_db.get_users_by_role.return_value = [make_user(Role.TEACHER)]

    response = client.get("/api/admin/teachers")

    assert response.status_code == 200
    data = response.json()
    assert data["summary"]["totalTeachers"] == 1
    assert data["teachers"][0]["statistics"]["complaintResolutionRate"] == 100.0


def test_manage_teacher_assign(client, mock_db, make_user):
    mock_db.get_user_by_id.return_value = make_user(Role.TEACHER, id="t")

    response = client.put("/api/admin/teachers/t", json={
        "action": "assignStudents", "data": {"studentIds": ["a", "b", "c"]}
    })

    assert response.status_code == 200
    assert response.json() == {"message": "3 students assigned successfully"}


def test_manage_teacher_invalid_action(client, mock_db, make_user):
    mock_db.get_user_by_id.return_value = make_user(Role.TEACHER)
    response = client.put("/api/admin/teachers/t", json={"action": "fire"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid action"


def test_reactivate_onto_a_taken_email(client, mock_db, make_user):
    mock_db.get_user_by_id.return_value = make_user(Role.TEACHER, id="t", email="deactivated_ada@school.test")
    mock_db.update_user_email.side_effect = asyncpg.UniqueViolationError("duplicate key value violates unique constraint")

    response = client.put("/api/admin/teachers/t", json={"action": "reactivate"})

    assert response.status_code == 409
    assert response.json()["detail"] == "User with this email already exists"


def test_manage_unknown_teacher(client):
    response = client.put("/api/admin/teachers/t", json={"action": "deactivate"})
    assert response.status_code == 404


def test_delete_teacher(client, mock_db, make_user):
    mock_db.get_user_by_id.return_value = make_user(Role.TEACHER, id="t")
    mock_db.delete_teacher.return_value = 2

    response = client.delete("/api/admin/teachers/t")

    assert response.status_code == 200
    assert response.json() == {"message": "Teacher deleted successfully", "studentsAffected": 2}


def test_complaints_overview(client, mock_db, make_complaint):
    mock_db.get_complaints.return_value = [make_complaint(teacher_id=None)]

    response = client.get("/api/admin/complaints")

    assert response.status_code == 200
    data = response.json()
    assert data["statistics"]["total"] == 1
    assert data["statistics"]["typeDistribution"] == {"HOMEWORK_ISSUES": 1}
    assert data["teacherPerformance"] == []
