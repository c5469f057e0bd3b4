def register_and_login(client, role, email=None):
    email = email or f"{role}@example.com"
    payload = {"name": f"{role.title()} User", "email": email, "password": "password123", "role": role}
    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 201
    login = client.post("/api/auth/login", json={"email": email, "password": "password123"})
    return response.json()["id"], {"Authorization": f"Bearer {login.json()['access_token']}"}


def test_classroom_crud_requires_admin(client):
    _, admin = register_and_login(client, "admin")
    _, student = register_and_login(client, "student")
    payload = {"code": "lab-7", "building": "Science", "capacity": 24, "type": "lab"}

    assert client.post("/api/classrooms/", json=payload, headers=student).status_code == 403

    created = client.post("/api/classrooms/", json=payload, headers=admin)
    assert created.status_code == 201
    classroom_id = created.json()["id"]
    assert created.json()["code"] == "LAB-7"
    assert client.post("/api/classrooms/", json=payload, headers=admin).status_code == 409

    updated = client.put(f"/api/classrooms/{classroom_id}", json={"capacity": 30}, headers=admin)
    assert updated.json()["capacity"] == 30
    assert client.get("/api/classrooms/", headers=student).json()[0]["code"] == "LAB-7"

    assert client.delete(f"/api/classrooms/{classroom_id}", headers=admin).json() == {"success": True}
    assert client.get(f"/api/classrooms/{classroom_id}", headers=admin).status_code == 404


def test_classroom_capacity_must_be_positive(client):
    _, admin = register_and_login(client, "admin")
    response = client.post(
        "/api/classrooms/",
        json={"code": "R0", "building": "Main", "capacity": 0, "type": "lecture"},
        headers=admin,
    )
    assert response.status_code == 422


def test_section_enrollment_capacity_rules(client):
    _, admin = register_and_login(client, "admin")
    faculty_id, _ = register_and_login(client, "faculty")
    student_id, _ = register_and_login(client, "student")
    other_student_id, _ = register_and_login(client, "student", email="second@example.com")
    course_id = client.post(
        "/api/courses/",
        json={"code": "ART200", "name": "Studio Drawing", "department": "Art", "required_room_type": "studio"},
        headers=admin,
    ).json()["id"]

    over = client.post(
        "/api/sections/",
        json={"course_id": course_id, "semester": "Spring", "year": 2026, "capacity": 5, "enrolled_count": 6},
        headers=admin,
    )
    assert over.status_code == 422

    not_faculty = client.post(
        "/api/sections/",
        json={"course_id": course_id, "semester": "Spring", "year": 2026, "capacity": 1, "instructor_id": student_id},
        headers=admin,
    )
    assert not_faculty.status_code == 400

    section = client.post(
        "/api/sections/",
        json={"course_id": course_id, "semester": "Spring", "year": 2026, "capacity": 1, "instructor_id": faculty_id},
        headers=admin,
    )
    assert section.status_code == 201
    section_id = section.json()["id"]

    duplicate = client.post(
        "/api/sections/",
        json={"course_id": course_id, "semester": "Spring", "year": 2026, "capacity": 1},
        headers=admin,
    )
    assert duplicate.status_code == 409

    first = client.post("/api/enrollments/", json={"student_id": student_id, "section_id": section_id}, headers=admin)
    assert first.status_code == 201
    assert client.get(f"/api/sections/{section_id}", headers=admin).json()["enrolled_count"] == 1

    full = client.post("/api/enrollments/", json={"student_id": other_student_id, "section_id": section_id}, headers=admin)
    assert full.status_code == 409

    dropped = client.put(f"/api/enrollments/{first.json()['id']}", json={"status": "dropped"}, headers=admin)
    assert dropped.json()["status"] == "dropped"
    assert client.get(f"/api/sections/{section_id}", headers=admin).json()["enrolled_count"] == 0

    shrink = client.put(f"/api/sections/{section_id}", json={"capacity": 2, "enrolled_count": 3}, headers=admin)
    assert shrink.status_code == 400

    assert client.delete(f"/api/courses/{course_id}", headers=admin).status_code == 409
    assert client.delete(f"/api/sections/{section_id}", headers=admin).json() == {"success": True}
    assert client.delete(f"/api/courses/{course_id}", headers=admin).json() == {"success": True}
