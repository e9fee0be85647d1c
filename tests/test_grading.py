from gradebook.core.grading import (
    GradeBand,
    WeightedEntry,
    grade_distribution,
    letter_grade,
    validate_bands,
    weighted_composite,
)


def test_weighted_composite_uses_assessment_weights() -> None:
    result = weighted_composite(
        [
            WeightedEntry(total_marks=100, weight_percentage=40, score_obtained=80),
            WeightedEntry(total_marks=100, weight_percentage=60, score_obtained=70),
        ]
    )
    assert result.percentage == 74.0
    assert result.letter == "B"
    assert result.total_weight == 100
    assert result.graded_count == 2


def test_missing_weight_counts_as_full_weight() -> None:
    result = weighted_composite(
        [
            WeightedEntry(total_marks=50, weight_percentage=None, score_obtained=45),
            WeightedEntry(total_marks=20, weight_percentage=None, score_obtained=10),
        ]
    )
    # (90 + 50) / 2
    assert result.percentage == 70.0
    assert result.total_weight == 200


def test_absent_entries_are_excluded_not_zeroed() -> None:
    result = weighted_composite(
        [
            WeightedEntry(total_marks=100, weight_percentage=50, score_obtained=None, is_absent=True),
            WeightedEntry(total_marks=100, weight_percentage=50, score_obtained=92),
        ]
    )
    assert result.percentage == 92.0
    assert result.letter == "A+"
    assert result.graded_count == 1


def test_no_gradable_entries_means_no_grade() -> None:
    result = weighted_composite(
        [WeightedEntry(total_marks=100, weight_percentage=30, score_obtained=None, is_absent=True)]
    )
    assert result.percentage is None
    assert result.letter is None
    assert result.total_weight == 0

    assert weighted_composite([]).percentage is None


def test_composite_is_rounded_to_two_decimals() -> None:
    result = weighted_composite([WeightedEntry(total_marks=3, weight_percentage=100, score_obtained=2)])
    assert result.percentage == 66.67
    assert result.letter == "C"


def test_default_thresholds() -> None:
    assert letter_grade(100) == "A+"
    assert letter_grade(90) == "A+"
    assert letter_grade(89.99) == "A"
    assert letter_grade(80) == "A"
    assert letter_grade(70) == "B"
    assert letter_grade(60) == "C"
    assert letter_grade(59.5) == "F"
    assert letter_grade(0) == "F"


def test_custom_bands_first_match_wins_without_default_fallback() -> None:
    bands = [
        GradeBand(80, 100, "Distinction", gpa=4.0),
        GradeBand(40, 80, "Pass", gpa=2.0),
    ]
    # Shared boundary: first band in list order.
    assert letter_grade(80, bands) == "Distinction"
    assert letter_grade(55, bands) == "Pass"
    # Below every band: the lowest band, never the fixed thresholds.
    assert letter_grade(30, bands) == "Pass"

    result = weighted_composite([WeightedEntry(total_marks=100, weight_percentage=100, score_obtained=85)], bands)
    assert result.letter == "Distinction"
    assert result.gpa == 4.0


def test_integer_bounded_scale_has_no_gaps() -> None:
    bands = [
        GradeBand(80, 100, "A+", gpa=5.0),
        GradeBand(70, 79, "A", gpa=4.0),
        GradeBand(60, 69, "A-", gpa=3.5),
        GradeBand(50, 59, "B", gpa=3.0),
        GradeBand(40, 49, "C", gpa=2.0),
        GradeBand(33, 39, "D", gpa=1.0),
        GradeBand(0, 32, "F", gpa=0.0),
    ]
    assert letter_grade(79.5, bands) == "A"
    assert letter_grade(69.5, bands) == "A-"
    assert letter_grade(49.5, bands) == "C"
    assert letter_grade(32.5, bands) == "F"

    result = weighted_composite([WeightedEntry(total_marks=200, weight_percentage=100, score_obtained=159)], bands)
    assert result.percentage == 79.5
    assert result.letter == "A"
    assert result.gpa == 4.0

    dist = grade_distribution([(159, False), (99, False)], total_marks=200, bands=bands)
    assert dist.buckets["A"] == 1
    assert dist.buckets["C"] == 1
    assert sum(dist.buckets.values()) == 2


def test_validate_bands_accepts_shared_boundaries() -> None:
    labels = [
        {"min": 60, "max": 100, "grade": "P"},
        {"min": 0, "max": 60, "grade": "F"},
    ]
    assert validate_bands(labels) == []


def test_validate_bands_reports_overlap_and_bad_ranges() -> None:
    overlapping = [
        {"min": 0, "max": 60, "grade": "F"},
        {"min": 50, "max": 100, "grade": "P"},
    ]
    errors = validate_bands(overlapping)
    assert errors == [{"field": "grade_labels[1]", "message": "Overlaps grade_labels[0]"}]

    inverted = validate_bands([{"min": 90, "max": 80, "grade": "A"}])
    assert inverted[0]["message"] == "min must not exceed max"

    out_of_range = validate_bands([{"min": 0, "max": 120, "grade": "A"}])
    assert out_of_range[0]["message"] == "Bands must lie within 0-100"

    assert validate_bands([])[0]["field"] == "grade_labels"

    uncovered = validate_bands([{"min": 40, "max": 100, "grade": "P"}])
    assert uncovered == [{"field": "grade_labels", "message": "Lowest band must start at 0"}]


def test_grade_distribution_default_buckets() -> None:
    dist = grade_distribution(
        [(95, False), (85, False), (None, True), (55, False), (None, False)],
        total_marks=100,
    )
    assert dist.buckets == {
        "A+ (90-100%)": 1,
        "A (80-89%)": 1,
        "B (70-79%)": 0,
        "C (60-69%)": 0,
        "F (<60%)": 1,
    }
    assert dist.total_students == 5
    assert dist.absent_count == 1
    assert dist.graded_count == 3
    assert dist.average == 78.33
    assert dist.highest == 95
    assert dist.lowest == 55


def test_grade_distribution_custom_scale_uses_grade_names() -> None:
    bands = [GradeBand(50, 100, "Pass"), GradeBand(0, 50, "Fail")]
    dist = grade_distribution([(18, False), (30, False)], total_marks=40, bands=bands)
    assert dist.buckets == {"Pass": 1, "Fail": 1}
    assert dist.average == 24.0
    assert dist.average_percentage == 60.0
