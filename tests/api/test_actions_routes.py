from gmhs.backend.models.db_models import Role


def test_list_actions_without_filters(client, mock_db):
    response = client.get("/api/actions")
    assert response.status_code == 200
    assert response.json() == {"actions": []}
    mock_db.get_actions.assert_awaited_once_with(teacher_id=None, student_id=None)


def test_list_actions_by_student(client, mock_db, make_action, make_student, make_user):
    student = make_student()
    teacher = make_user(Role.TEACHER, id="teacher-1")
    mock_db.get_actions.return_value = [make_action(student.id)]
    mock_db.get_students_by_ids.return_value = [student]
    mock_db.get_users_by_ids.return_value = [teacher]

    response = client.get("/api/actions", params={"studentId": student.id})

    assert response.status_code == 200
    action = response.json()["actions"][0]
    assert action["student"]["className"] == student.class_name
    assert action["teacher"]["name"] == teacher.name
    mock_db.get_actions.assert_awaited_once_with(teacher_id=None, student_id=student.id)


def test_add_action(client, mock_db, make_user, make_student):
    teacher = make_user(Role.TEACHER)
    student = make_student(teacher_id=teacher.id)
    mock_db.get_user_by_id.return_value = teacher
    mock_db.get_student_by_id.return_value = student

    response = client.post("/api/actions", json={
        "description": "Presented a project", "teacherId": teacher.id, "studentId": student.id
    })

    assert response.status_code == 201
    assert response.json()["message"] == "Action added successfully"
    assert response.json()["action"]["description"] == "Presented a project"


def test_add_action_for_unknown_student(client, mock_db, make_user):
    mock_db.get_user_by_id.return_value = make_user(Role.TEACHER)
    response = client.post("/api/actions", json={"description": "x", "teacherId": "t", "studentId": "s"})
    assert response.status_code == 404
    assert response.json()["detail"] == "Student not found"


def test_add_action_with_blank_description(client):
    response = client.post("/api/actions", json={"description": "   ", "teacherId": "t", "studentId": "s"})
    assert response.status_code == 400
