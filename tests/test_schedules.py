def test_lecture_crud(schedules_client, admin_headers):
    created = schedules_client.post(
        "/schedules/lectures",
        json={
            "room": "Lab A-1",
            "day": "Rabu",
            "start_time": "07:30",
            "end_time": "09:10",
            "course_name": "Databases",
            "course_code": "IF2240",
            "lecturer": "Dr. Hartono",
            "class_name": "A",
        },
        headers=admin_headers,
    )
    assert created.status_code == 201
    lecture_id = created.json()["id"]

    wednesday = schedules_client.get("/schedules/lectures?day=Wednesday", headers=admin_headers)
    assert [lecture["id"] for lecture in wednesday.json()] == [lecture_id]
    assert schedules_client.get("/schedules/lectures?day=Thursday", headers=admin_headers).json() == []

    deleted = schedules_client.delete(f"/schedules/lectures/{lecture_id}", headers=admin_headers)
    assert deleted.status_code == 204
    assert schedules_client.get("/schedules/lectures", headers=admin_headers).json() == []


def test_unknown_day_is_rejected(schedules_client, admin_headers):
    resp = schedules_client.post(
        "/schedules/lectures",
        json={"room": "Lab", "day": "Funday", "start_time": "07:00", "end_time": "08:00"},
        headers=admin_headers,
    )
    assert resp.status_code == 422


def test_students_cannot_write_schedules(schedules_client, student_headers):
    resp = schedules_client.post(
        "/schedules/lectures",
        json={"room": "Lab", "day": "Monday", "start_time": "07:00", "end_time": "08:00"},
        headers=student_headers,
    )
    assert resp.status_code == 403


def test_exam_requires_existing_room(schedules_client, admin_headers):
    resp = schedules_client.post(
        "/schedules/exams",
        json={"room_id": 999, "scheduled_on": "2024-01-01", "course_name": "Physics"},
        headers=admin_headers,
    )
    assert resp.status_code == 404


def test_projection_merges_sources_for_a_date(rooms_client, schedules_client, admin_headers):
    room = rooms_client.post(
        "/rooms", json={"name": "Hall B", "code": "HB", "capacity": 80}, headers=admin_headers
    ).json()
    schedules_client.post(
        "/schedules/lectures",
        json={"room": "Hall B", "day": "Monday", "start_time": "07:00", "end_time": "09:00", "course_name": "Logic"},
        headers=admin_headers,
    )
    schedules_client.post(
        "/schedules/sessions",
        json={
            "room_id": room["id"],
            "scheduled_on": "2024-01-01",
            "start_time": "13:00",
            "end_time": "15:00",
            "title": "Thesis defense",
        },
        headers=admin_headers,
    )
    schedules_client.post(
        "/schedules/exams",
        json={
            "room_id": room["id"],
            "scheduled_on": "2024-01-01",
            "course_name": "Take-home essay",
            "is_take_home": True,
        },
        headers=admin_headers,
    )

    by_day = schedules_client.get("/schedules?day=Monday", headers=admin_headers).json()
    assert [entry["kind"] for entry in by_day] == ["lecture"]

    by_date = schedules_client.get("/schedules?on_date=2024-01-01", headers=admin_headers).json()
    assert sorted(entry["kind"] for entry in by_date) == ["lecture", "session"]
    session = next(entry for entry in by_date if entry["kind"] == "session")
    assert session["room_name"] == "Hall B"
    assert session["label"] == "Thesis defense"

    assert schedules_client.get("/schedules", headers=admin_headers).status_code == 400
