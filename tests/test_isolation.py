from types import SimpleNamespace

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from gradebook.auth.dependencies import resolve_school_id
from gradebook.core.exceptions import TenantResolutionError
from gradebook.core.models import (
    Assessment,
    AssessmentComponent,
    GradeOverride,
    GradeOverrideAuditLog,
    GradeScale,
    StudentScore,
)


def test_resolve_school_id_reads_trusted_claims_only() -> None:
    assert resolve_school_id({"school_id": 3}) == 3
    assert resolve_school_id({"schoolId": "4"}) == 4
    assert resolve_school_id({"app_metadata": {"school_id": 5}}) == 5
    with pytest.raises(TenantResolutionError):
        resolve_school_id({"user_metadata": {"school_id": 5}})
    with pytest.raises(TenantResolutionError):
        resolve_school_id({"school_id": "abc"})
    assert resolve_school_id({"app_metadata": "school-3", "school_id": 3}) == 3
    with pytest.raises(TenantResolutionError):
        resolve_school_id({"app_metadata": ["school_id", 5]})


async def test_request_without_token_is_unauthorized(client: AsyncClient, seed) -> None:
    response = await client.get("/api/v1/subjects")
    assert response.status_code == 401


async def test_tampered_token_is_unauthorized(client: AsyncClient, teacher) -> None:
    token = teacher["Authorization"] + "x"
    response = await client.get("/api/v1/subjects", headers={"Authorization": token})
    assert response.status_code == 401


async def test_token_without_school_is_denied(client: AsyncClient, make_headers) -> None:
    response = await client.get("/api/v1/subjects", headers=make_headers(school_id=False))
    assert response.status_code == 403
    assert response.json()["detail"] == "Access denied"


async def test_user_writable_metadata_is_ignored(client: AsyncClient, make_headers, seed) -> None:
    headers = make_headers(school_id=False, user_metadata={"school_id": seed.school_id})
    response = await client.get("/api/v1/subjects", headers=headers)
    assert response.status_code == 403


async def test_app_metadata_school_is_accepted(client: AsyncClient, make_headers, seed) -> None:
    headers = make_headers(school_id=False, app_metadata={"school_id": seed.school_id})
    response = await client.get("/api/v1/subjects", headers=headers)
    assert response.status_code == 200
    assert {s["code"] for s in response.json()} == {"MATH", "SCI"}


async def test_malformed_optional_claims_do_not_break_auth(client: AsyncClient, make_headers, seed) -> None:
    non_numeric_teacher = make_headers(teacher_id="T-17")
    response = await client.get("/api/v1/grade-scales", headers=non_numeric_teacher)
    assert response.status_code == 200

    odd_metadata = make_headers(app_metadata="school-1")
    response = await client.get("/api/v1/grade-scales", headers=odd_metadata)
    assert response.status_code == 200

    no_school = make_headers(school_id=False, app_metadata="school-1")
    response = await client.get("/api/v1/grade-scales", headers=no_school)
    assert response.status_code == 403
    assert response.json()["detail"] == "Access denied"


async def test_unknown_or_inactive_school_is_denied(client: AsyncClient, make_headers, seed) -> None:
    for school_id in (seed.inactive_school_id, 9999):
        response = await client.get("/api/v1/subjects", headers=make_headers(school_id=school_id))
        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied"


async def test_student_role_cannot_read_gradebook(client: AsyncClient, make_headers) -> None:
    response = await client.get(
        "/api/v1/assessments",
        params={"class_name": "8", "section": "A"},
        headers=make_headers(user_id="student-1", role="student"),
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Insufficient permissions"


async def test_listing_never_returns_other_schools_rows(
    client: AsyncClient, make_headers, new_assessment, seed
) -> None:
    await new_assessment(assessment_name="Green midterm")
    river = make_headers(user_id="teacher-9", school_id=seed.other_school_id)
    await new_assessment(headers=river, subject_id=seed.other_subject_id, assessment_name="River midterm")

    response = await client.get(
        "/api/v1/assessments", params={"class_name": "8", "section": "A"}, headers=make_headers()
    )
    assert response.status_code == 200
    assert [a["assessment_name"] for a in response.json()] == ["Green midterm"]


async def test_foreign_assessment_looks_missing(
    client: AsyncClient, make_headers, new_assessment, teacher, seed
) -> None:
    river = make_headers(user_id="teacher-9", school_id=seed.other_school_id)
    foreign = await new_assessment(headers=river, subject_id=seed.other_subject_id)

    response = await client.get(f"/api/v1/assessments/{foreign['id']}", headers=teacher)
    assert response.status_code == 404
    assert response.json()["detail"] == "Assessment not found"

    missing = await client.get("/api/v1/assessments/424242", headers=teacher)
    assert missing.status_code == 404
    assert missing.json()["detail"] == response.json()["detail"]

    patched = await client.patch(
        f"/api/v1/assessments/{foreign['id']}", json={"assessment_name": "Hijacked"}, headers=teacher
    )
    assert patched.status_code == 404


async def test_foreign_student_cannot_be_scored(
    client: AsyncClient, new_assessment, teacher, seed
) -> None:
    assessment = await new_assessment()
    response = await client.put(
        "/api/v1/scores",
        json={"assessment_id": assessment["id"], "student_id": seed.other_student_id, "score_obtained": 50},
        headers=teacher,
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Student not found"


async def test_payload_school_id_must_match_token(
    client: AsyncClient, teacher, seed, session_factory
) -> None:
    payload = {
        "school_id": seed.other_school_id,
        "subject_id": seed.subject_id,
        "class_name": "8",
        "section": "A",
        "assessment_name": "Sneaky",
        "assessment_type": "quiz",
        "total_marks": 10,
    }
    response = await client.post("/api/v1/assessments", json=payload, headers=teacher)
    assert response.status_code == 403

    async with session_factory() as session:
        count = len((await session.execute(Assessment.__table__.select())).all())
    assert count == 0


async def test_subject_from_other_school_is_rejected(client: AsyncClient, teacher, seed) -> None:
    payload = {
        "subject_id": seed.other_subject_id,
        "class_name": "8",
        "section": "A",
        "assessment_name": "Cross-school",
        "assessment_type": "test",
        "total_marks": 20,
    }
    response = await client.post("/api/v1/assessments", json=payload, headers=teacher)
    assert response.status_code == 422
    assert response.json()["detail"]["errors"][0]["field"] == "subject_id"


@pytest.fixture()
async def foreign(client: AsyncClient, make_headers, new_assessment, put_score, seed) -> SimpleNamespace:
    """Rows owned by the other school, created by that school's own users."""
    river_teacher = make_headers(user_id="teacher-9", school_id=seed.other_school_id)
    river_admin = make_headers(user_id="admin-9", role="school_admin", school_id=seed.other_school_id)

    assessment = await new_assessment(headers=river_teacher, subject_id=seed.other_subject_id)
    await put_score(assessment["id"], seed.other_student_id, 40, headers=river_teacher)
    await put_score(assessment["id"], seed.other_student_id, 45, headers=river_teacher)
    component = await client.post(
        f"/api/v1/assessments/{assessment['id']}/components",
        json={"component_name": "Written", "component_type": "Written", "max_score": 70},
        headers=river_teacher,
    )
    scale = await client.post(
        "/api/v1/grade-scales",
        json={
            "scale_name": "River",
            "scale_type": "letter",
            "grade_labels": [{"min": 50, "max": 100, "grade": "P"}, {"min": 0, "max": 50, "grade": "NP"}],
        },
        headers=river_admin,
    )
    override = await client.post(
        "/api/v1/grade-overrides",
        json={
            "student_id": seed.other_student_id,
            "subject_id": seed.other_subject_id,
            "override_grade": "A",
            "reason": "Resit passed",
        },
        headers=river_teacher,
    )
    assert component.status_code == 201 and scale.status_code == 201 and override.status_code == 201

    own = await new_assessment(assessment_name="Own")
    return SimpleNamespace(
        assessment_id=assessment["id"],
        component_id=component.json()["id"],
        scale_id=scale.json()["id"],
        override_id=override.json()["id"],
        student_id=seed.other_student_id,
        subject_id=seed.other_subject_id,
        own_assessment_id=own["id"],
    )


async def _stored_rows(session_factory) -> list:
    queries = (
        select(Assessment.id, Assessment.school_id, Assessment.assessment_name, Assessment.is_published),
        select(AssessmentComponent.id, AssessmentComponent.assessment_id),
        select(GradeScale.id, GradeScale.scale_name, GradeScale.is_default),
        select(GradeOverride.id, GradeOverride.override_grade, GradeOverride.approved_by),
        select(GradeOverrideAuditLog.id, GradeOverrideAuditLog.action),
        select(StudentScore.id, StudentScore.score_obtained, StudentScore.grade_letter),
    )
    async with session_factory() as session:
        return [sorted(tuple(r) for r in (await session.execute(q)).all()) for q in queries]


FOREIGN_ID_REQUESTS = [
    pytest.param(lambda f: ("POST", f"/api/v1/grade-overrides/{f.override_id}/approve", {}), id="override-approve"),
    pytest.param(
        lambda f: ("POST", f"/api/v1/grade-overrides/{f.override_id}/reject", {"json": {"remarks": "No"}}),
        id="override-reject",
    ),
    pytest.param(lambda f: ("GET", f"/api/v1/grade-overrides/{f.override_id}/audit", {}), id="override-audit"),
    pytest.param(lambda f: ("GET", f"/api/v1/grade-overrides/students/{f.student_id}", {}), id="override-list"),
    pytest.param(lambda f: ("POST", f"/api/v1/grade-scales/{f.scale_id}/set-default", {}), id="scale-set-default"),
    pytest.param(
        lambda f: ("PATCH", f"/api/v1/grade-scales/{f.scale_id}", {"json": {"scale_name": "Hijacked"}}),
        id="scale-patch",
    ),
    pytest.param(lambda f: ("DELETE", f"/api/v1/grade-scales/{f.scale_id}", {}), id="scale-delete"),
    pytest.param(
        lambda f: (
            "GET",
            f"/api/v1/assessments/{f.own_assessment_id}/distribution",
            {"params": {"scale_id": f.scale_id}},
        ),
        id="distribution-foreign-scale",
    ),
    pytest.param(
        lambda f: (
            "GET",
            "/api/v1/gradebook/classes/grid",
            {"params": {"class_name": "8", "section": "A", "scale_id": f.scale_id}},
        ),
        id="grid-foreign-scale",
    ),
    pytest.param(lambda f: ("POST", f"/api/v1/assessments/{f.assessment_id}/duplicate", {}), id="duplicate"),
    pytest.param(
        lambda f: (
            "POST",
            f"/api/v1/assessments/{f.assessment_id}/copy-to-class",
            {"json": {"class_name": "9", "section": "A"}},
        ),
        id="copy-to-class",
    ),
    pytest.param(lambda f: ("GET", f"/api/v1/assessments/{f.assessment_id}/components", {}), id="components-list"),
    pytest.param(
        lambda f: ("DELETE", f"/api/v1/assessments/{f.assessment_id}/components/{f.component_id}", {}),
        id="component-delete",
    ),
    pytest.param(lambda f: ("GET", f"/api/v1/assessments/{f.assessment_id}/distribution", {}), id="distribution"),
    pytest.param(
        lambda f: (
            "GET",
            "/api/v1/scores/history",
            {"params": {"student_id": f.student_id, "assessment_id": f.assessment_id}},
        ),
        id="history",
    ),
    pytest.param(
        lambda f: (
            "GET",
            "/api/v1/scores/history",
            {"params": {"student_id": f.student_id, "assessment_id": f.own_assessment_id}},
        ),
        id="history-foreign-student",
    ),
    pytest.param(
        lambda f: (
            "POST",
            "/api/v1/assessments/bulk-publish",
            {"json": {"assessment_ids": [f.own_assessment_id, f.assessment_id]}},
        ),
        id="bulk-publish",
    ),
    pytest.param(
        lambda f: ("GET", f"/api/v1/gradebook/students/{f.student_id}/subjects/{f.subject_id}/final", {}),
        id="final-grade",
    ),
]


@pytest.mark.parametrize("build_request", FOREIGN_ID_REQUESTS)
async def test_foreign_ids_look_missing_and_change_nothing(
    client: AsyncClient, admin, foreign, session_factory, build_request
) -> None:
    before = await _stored_rows(session_factory)

    method, url, kwargs = build_request(foreign)
    response = await client.request(method, url, headers=admin, **kwargs)
    assert response.status_code == 404, response.text

    assert await _stored_rows(session_factory) == before
