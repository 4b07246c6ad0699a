from gmhs.backend.models.db_models import Role


def test_list_students_requires_teacher_id(client):
    """
    Scenario: the teacherId query parameter is missing.
    Expected: 400 with an explanatory message.
    """
    response = client.get("/api/students")
    assert response.status_code == 400
    assert response.json()["detail"] == "Teacher ID is required"


def test_list_students_unknown_teacher_is_empty(client):
    """Scenario: teacherId=abc matches nothing. Expected: 200 with an empty list."""
    response = client.get("/api/students", params={"teacherId": "abc"})
    assert response.status_code == 200
    assert response.json() == {"students": []}


def test_list_students_is_never_cached(client):
    response = client.get("/api/students", params={"teacherId": "abc"})
    assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert response.headers["pragma"] == "no-cache"
    assert response.headers["expires"] == "0"


def test_list_students_camel_case_body(client, mock_db, make_user, make_student, make_action):
    teacher = make_user(Role.TEACHER, id="teacher-1")
    parent = make_user(Role.PARENT, id="parent-1")
    student = make_student(class_name="7C")
    mock_db.get_students.return_value = [student]
    mock_db.get_users_by_ids.return_value = [teacher, parent]
    mock_db.get_actions_for_students.return_value = [make_action(student.id)]

    response = client.get("/api/students", params={"teacherId": teacher.id})

    assert response.status_code == 200
    body = response.json()["students"][0]
    assert body["className"] == "7C"
    assert body["parentId"] == "parent-1"
    assert body["parent"]["email"] == parent.email
    assert body["teacher"]["email"] is None
    assert len(body["actions"]) == 1


def test_create_student(client, mock_db, make_user):
    parent = make_user(Role.PARENT)
    teacher = make_user(Role.TEACHER)
    mock_db.get_user_by_id.side_effect = lambda user_id, role=None: parent if role == Role.PARENT else teacher

    response = client.post("/api/students", json={
        "name": "Ali", "className": "5A", "parentId": parent.id, "teacherId": teacher.id
    })

    assert response.status_code == 201
    assert response.json()["message"] == "Student created successfully"
    assert response.json()["student"]["name"] == "Ali"


def test_create_student_with_blank_name(client):
    response = client.post("/api/students", json={
        "name": "  ", "className": "5A", "parentId": "p", "teacherId": "t"
    })
    assert response.status_code == 400


def test_create_student_with_unknown_parent(client):
    response = client.post("/api/students", json={
        "name": "Ali", "className": "5A", "parentId": "p", "teacherId": "t"
    })
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid parent ID"


def test_update_missing_student(client):
    response = client.put("/api/students/nope", json={"name": "Ali", "className": "5A", "parentId": "p"})
    assert response.status_code == 404


def test_student_lookup_failure_is_json_error(client, mock_db):
    mock_db.get_student_by_id.side_effect = ConnectionError("connection reset")

    response = client.delete("/api/students/s1")

    assert response.status_code == 500
    assert response.json() == {"detail": "A database error occurred while fetching student information."}
    mock_db.delete_student.assert_not_awaited()


def test_delete_student(client, mock_db, make_student):
    mock_db.get_student_by_id.return_value = make_student()
    response = client.delete("/api/students/some-id")
    assert response.status_code == 200
    assert response.json() == {"message": "Student deleted successfully"}
