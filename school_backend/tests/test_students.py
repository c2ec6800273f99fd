"""
Student registration and record management tests.
"""

import asyncio
import os

import pytest
from sqlalchemy import select

from school_backend.app.core.config import settings
from school_backend.app.models.student import Student

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def registration_form(**overrides):
    form = {
        "firstName": "Ada",
        "middleName": "",
        "lastName": "Okafor",
        "sex": "Female",
        "dateOfBirth": "2015-03-14",
        "religion": "Christianity",
        "classEnrolled": "Primary 3",
        "parentName": "Ngozi Okafor",
        "parentPhone": "08012345678",
        "email": "ngozi@example.com",
        "homeAddress": "12 Marina Road",
        "state": "Lagos",
        "lga": "Ikeja",
        "hasMedicalCondition": "false",
        "hasDisability": "false",
        "consentGiven": "true",
        "parentSignature": "N. Okafor",
    }
    form.update(overrides)
    return form


async def register(client, files=None, **overrides):
    return await client.post("/api/students/register", data=registration_form(**overrides), files=files)


@pytest.mark.asyncio
async def test_register_without_files(client, db_session):
    response = await register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Student registered successfully"

    student = await db_session.get(Student, body["studentId"])
    assert student.first_name == "Ada"
    assert student.middle_name is None
    assert student.consent_given is True
    assert student.has_medical_condition is False
    assert student.is_deleted is False
    assert student.academic_session is not None


@pytest.mark.asyncio
async def test_register_stores_uploads(client, admin_headers):
    files = {
        "photo": ("face.png", PNG_BYTES, "image/png"),
        "birthCertificate": ("cert.pdf", b"%PDF-1.4 test", "application/pdf"),
    }
    response = await register(client, files=files)
    assert response.status_code == 201

    student_id = response.json()["studentId"]
    record = (await client.get(f"/api/students/{student_id}", headers=admin_headers)).json()

    assert record["photoUrl"].startswith("/uploads/photo-")
    assert record["photoUrl"].endswith(".png")
    assert record["birthCertificateUrl"].startswith("/uploads/birthCertificate-")
    stored = os.listdir(settings.upload_dir)
    assert len(stored) == 2


@pytest.mark.asyncio
async def test_register_rejects_wrong_photo_type_and_writes_nothing(client, db_session):
    files = {
        "photo": ("face.gif", b"GIF89a", "image/gif"),
        "birthCertificate": ("cert.pdf", b"%PDF-1.4 test", "application/pdf"),
    }
    response = await register(client, files=files)

    assert response.status_code == 400
    assert response.json()["message"] == "Photo must be JPG or PNG format"
    assert not os.path.exists(settings.upload_dir) or os.listdir(settings.upload_dir) == []
    assert (await db_session.execute(select(Student))).scalars().all() == []


@pytest.mark.asyncio
async def test_register_rejects_oversized_upload(client, monkeypatch):
    monkeypatch.setattr(settings, "max_upload_bytes", 16)
    files = {"photo": ("face.png", PNG_BYTES, "image/png")}

    response = await register(client, files=files)

    assert response.status_code == 400
    assert response.json()["details"]["field"] == "photo"


@pytest.mark.asyncio
async def test_register_requires_consent(client):
    response = await register(client, consentGiven="false")

    assert response.status_code == 400
    errors = response.json()["details"]["errors"]
    assert {"field": "consentGiven", "message": "Consent must be given"} in errors


@pytest.mark.asyncio
async def test_register_reports_every_invalid_field(client):
    form = registration_form(parentPhone="12345")
    del form["firstName"]

    response = await client.post("/api/students/register", data=form)

    assert response.status_code == 400
    fields = {error["field"] for error in response.json()["details"]["errors"]}
    assert {"firstName", "parentPhone"} <= fields


@pytest.mark.asyncio
async def test_register_rejects_unknown_sex(client):
    response = await register(client, sex="Other")

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_markup_in_text_fields_is_escaped(client, admin_headers, db_session):
    response = await register(client, firstName="<script>alert(1)</script>", homeAddress="12 <b>Marina</b> Road")
    assert response.status_code == 201
    student_id = response.json()["studentId"]

    student = await db_session.get(Student, student_id)
    assert student.first_name == "&lt;script&gt;alert(1)&lt;/script&gt;"
    assert student.home_address == "12 &lt;b&gt;Marina&lt;/b&gt; Road"
    assert student.parent_phone == "08012345678"

    await client.put(f"/api/students/{student_id}", json={"lga": "<i>Ikeja</i>"}, headers=admin_headers)
    record = (await client.get(f"/api/students/{student_id}", headers=admin_headers)).json()
    assert record["lga"] == "&lt;i&gt;Ikeja&lt;/i&gt;"


@pytest.mark.asyncio
async def test_concurrent_registrations_get_distinct_ids(client):
    responses = await asyncio.gather(*[
        register(client, firstName=f"Child{n}") for n in range(5)
    ])

    assert all(response.status_code == 201 for response in responses)
    ids = {response.json()["studentId"] for response in responses}
    assert len(ids) == 5


@pytest.mark.asyncio
async def test_listing_requires_authentication(client):
    response = await client.get("/api/students")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_staff_can_list_and_filter(client, staff_headers):
    await register(client, firstName="Ada", classEnrolled="Primary 3", sex="Female")
    await register(client, firstName="Bola", classEnrolled="Primary 4", sex="Male")

    everyone = await client.get("/api/students", headers=staff_headers)
    assert everyone.status_code == 200
    # Newest first
    assert [s["first_name"] for s in everyone.json()] == ["Bola", "Ada"]

    by_class = await client.get("/api/students", params={"class": "Primary 3"}, headers=staff_headers)
    assert [s["first_name"] for s in by_class.json()] == ["Ada"]

    by_gender = await client.get("/api/students", params={"gender": "Male"}, headers=staff_headers)
    assert [s["first_name"] for s in by_gender.json()] == ["Bola"]

    by_search = await client.get("/api/students", params={"search": "bol"}, headers=staff_headers)
    assert [s["first_name"] for s in by_search.json()] == ["Bola"]


@pytest.mark.asyncio
async def test_unknown_student_is_404(client, admin_headers):
    response = await client.get("/api/students/9999", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_admin_updates_student(client, admin_headers):
    student_id = (await register(client)).json()["studentId"]

    response = await client.put(
        f"/api/students/{student_id}",
        json={"classEnrolled": "Primary 4", "hasDisability": True, "disabilityType": "Visual"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["class_enrolled"] == "Primary 4"
    assert body["has_disability"] is True
    assert body["updated_at"] is not None


@pytest.mark.asyncio
async def test_update_cannot_clear_required_fields(client, admin_headers):
    student_id = (await register(client)).json()["studentId"]

    response = await client.put(
        f"/api/students/{student_id}", json={"parentName": None}, headers=admin_headers
    )

    assert response.status_code == 400
    assert response.json()["details"]["fields"] == ["parent_name"]


@pytest.mark.asyncio
async def test_staff_cannot_update_or_delete(client, staff_headers):
    student_id = (await register(client)).json()["studentId"]

    update = await client.put(f"/api/students/{student_id}", json={"state": "Oyo"}, headers=staff_headers)
    delete = await client.delete(f"/api/students/{student_id}", headers=staff_headers)

    assert update.status_code == 403
    assert delete.status_code == 403


@pytest.mark.asyncio
async def test_soft_deleted_student_is_hidden_everywhere(client, admin_headers, db_session):
    keep_id = (await register(client, firstName="Keep")).json()["studentId"]
    drop_id = (await register(client, firstName="Drop")).json()["studentId"]

    response = await client.delete(f"/api/students/{drop_id}", headers=admin_headers)
    assert response.status_code == 200

    listing = await client.get("/api/students", headers=admin_headers)
    assert [s["id"] for s in listing.json()] == [keep_id]

    assert (await client.get(f"/api/students/{drop_id}", headers=admin_headers)).status_code == 404
    assert (await client.delete(f"/api/students/{drop_id}", headers=admin_headers)).status_code == 404

    stats = (await client.get("/api/admin/stats", headers=admin_headers)).json()
    assert stats["total"] == 1

    # The row itself is kept
    row = await db_session.get(Student, drop_id)
    assert row.is_deleted is True


@pytest.mark.asyncio
async def test_stats_group_by_class_and_sex(client, admin_headers):
    await register(client, classEnrolled="Primary 1", sex="Male")
    await register(client, classEnrolled="Primary 1", sex="Female")
    await register(client, classEnrolled="Primary 2", sex="Female")

    response = await client.get("/api/admin/stats", headers=admin_headers)

    assert response.status_code == 200
    stats = response.json()
    assert stats["total"] == 3
    assert stats["byClass"] == [
        {"class_enrolled": "Primary 1", "count": 2},
        {"class_enrolled": "Primary 2", "count": 1},
    ]
    assert stats["byGender"] == [
        {"sex": "Female", "count": 2},
        {"sex": "Male", "count": 1},
    ]
