from httpx import AsyncClient


async def test_weighted_grade_across_assessments(
    client: AsyncClient, new_assessment, put_score, teacher, seed
) -> None:
    exam = await new_assessment(assessment_name="Midterm", weight_percentage=40, term_id=seed.term_id)
    final = await new_assessment(assessment_name="Final", weight_percentage=60, term_id=seed.term_id)
    quiz = await new_assessment(assessment_name="Quiz", assessment_type="quiz", total_marks=10, weight_percentage=10)
    student_id = seed.student_ids[0]
    await put_score(exam["id"], student_id, 80)
    await put_score(final["id"], student_id, 70)
    await put_score(quiz["id"], student_id, None, is_absent=True)

    response = await client.get(
        f"/api/v1/gradebook/students/{student_id}/subjects/{seed.subject_id}/weighted",
        params={"term_id": seed.term_id},
        headers=teacher,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["percentage"] == 74.0
    assert body["letter"] == "B"
    assert body["total_weight"] == 100
    assert body["graded_count"] == 2

    # Without a term every assessment counts; the absent quiz still does not.
    all_terms = await client.get(
        f"/api/v1/gradebook/students/{student_id}/subjects/{seed.subject_id}/weighted", headers=teacher
    )
    assert all_terms.json()["percentage"] == 74.0


async def test_no_scores_means_no_grade(client: AsyncClient, new_assessment, teacher, seed) -> None:
    await new_assessment()
    response = await client.get(
        f"/api/v1/gradebook/students/{seed.student_ids[0]}/subjects/{seed.subject_id}/final", headers=teacher
    )
    body = response.json()
    assert body["computed"]["percentage"] is None
    assert body["final_grade"] is None
    assert body["source"] == "none"


async def test_class_grid(client: AsyncClient, new_assessment, put_score, teacher, admin, seed) -> None:
    exam = await new_assessment(assessment_name="Midterm", date="2026-03-01")
    quiz = await new_assessment(assessment_name="Quiz", assessment_type="quiz", total_marks=20, date="2026-02-01")
    await new_assessment(assessment_name="Other section", section="B")
    first, second = seed.student_ids[0], seed.student_ids[1]
    await put_score(exam["id"], first, 91)
    await put_score(quiz["id"], first, 18)
    await put_score(exam["id"], second, None, is_absent=True)

    override = await client.post(
        "/api/v1/grade-overrides",
        json={"student_id": second, "subject_id": seed.subject_id, "override_grade": "C", "reason": "Resit passed"},
        headers=teacher,
    )
    await client.post(f"/api/v1/grade-overrides/{override.json()['id']}/approve", headers=admin)

    response = await client.get(
        "/api/v1/gradebook/classes/grid",
        params={"class_name": "8", "section": "A", "subject_id": seed.subject_id},
        headers=teacher,
    )
    assert response.status_code == 200
    grid = response.json()
    assert [a["assessment_name"] for a in grid["assessments"]] == ["Midterm", "Quiz"]
    assert [r["student"]["id"] for r in grid["rows"]] == [first, second]

    row_one, row_two = grid["rows"]
    assert [c["grade"] for c in row_one["cells"]] == ["A+", "A+"]
    assert row_one["composite_percentage"] == 90.5
    assert row_one["final_grade"] == "A+"
    assert row_one["override_status"] is None

    assert row_two["cells"][0]["is_absent"] is True
    assert row_two["cells"][0]["score"] is None
    assert row_two["cells"][1] == {
        "assessment_id": quiz["id"],
        "score": None,
        "is_absent": False,
        "percentage": None,
        "grade": None,
    }
    assert row_two["composite_percentage"] is None
    assert row_two["final_grade"] == "C"
    assert row_two["override_status"] == "approved"


async def test_student_gradebook(client: AsyncClient, new_assessment, put_score, teacher, seed) -> None:
    maths = await new_assessment(assessment_name="Algebra", date="2026-01-10")
    science = await new_assessment(assessment_name="Cells", subject_id=seed.science_id, date="2026-01-20")
    await put_score(maths["id"], seed.student_ids[0], 65)
    await put_score(science["id"], seed.student_ids[0], 88)
    await put_score(maths["id"], seed.student_ids[1], 30)

    response = await client.get(f"/api/v1/gradebook/students/{seed.student_ids[0]}", headers=teacher)
    assert response.status_code == 200
    entries = response.json()
    assert [(e["assessment_name"], e["grade"]) for e in entries] == [("Cells", "A"), ("Algebra", "C")]


async def test_subjects_are_school_scoped(client: AsyncClient, admin, make_headers, seed) -> None:
    created = await client.post(
        "/api/v1/subjects", json={"name": "English", "code": "ENG"}, headers=admin
    )
    assert created.status_code == 201
    assert created.json()["school_id"] == seed.school_id

    duplicate = await client.post("/api/v1/subjects", json={"name": "English 2", "code": "ENG"}, headers=admin)
    assert duplicate.status_code == 409

    river_admin = make_headers(user_id="admin-9", role="school_admin", school_id=seed.other_school_id)
    listed = await client.get("/api/v1/subjects", headers=river_admin)
    assert [s["code"] for s in listed.json()] == ["MATH"]
