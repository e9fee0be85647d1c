"""
Grade computation: letter grades from percentages, weighted composites across
assessments, and per-assessment distribution statistics.

Nothing in here touches the database; services load rows and pass plain values.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence


@dataclass(frozen=True)
class GradeBand:
    min: float
    max: float
    grade: str
    gpa: Optional[float] = None
    description: Optional[str] = None


# Fixed thresholds used when a school has no custom scale. Checked top-down, p >= min.
DEFAULT_BANDS: List[GradeBand] = [
    GradeBand(90, 100, "A+", description="90-100%"),
    GradeBand(80, 90, "A", description="80-89%"),
    GradeBand(70, 80, "B", description="70-79%"),
    GradeBand(60, 70, "C", description="60-69%"),
    GradeBand(0, 60, "F", description="<60%"),
]


def bands_from_labels(labels: Optional[Iterable[dict]]) -> List[GradeBand]:
    """Build bands from a GradeScale.grade_labels JSON list, preserving order."""
    bands = []
    for label in labels or []:
        bands.append(
            GradeBand(
                min=float(label["min"]),
                max=float(label["max"]),
                grade=str(label["grade"]),
                gpa=float(label["gpa"]) if label.get("gpa") is not None else None,
                description=label.get("description"),
            )
        )
    return bands


def validate_bands(labels: Sequence[dict]) -> List[Dict[str, str]]:
    """Return field-level errors for a grade_labels list; empty list when valid."""
    errors: List[Dict[str, str]] = []
    if not labels:
        return [{"field": "grade_labels", "message": "At least one grade band is required"}]
    spans = []
    for i, label in enumerate(labels):
        prefix = f"grade_labels[{i}]"
        missing = [k for k in ("min", "max", "grade") if label.get(k) is None or label.get(k) == ""]
        if missing:
            errors.append({"field": prefix, "message": f"Missing {', '.join(missing)}"})
            continue
        try:
            lo, hi = float(label["min"]), float(label["max"])
        except (TypeError, ValueError):
            errors.append({"field": prefix, "message": "min and max must be numeric"})
            continue
        if lo > hi:
            errors.append({"field": prefix, "message": "min must not exceed max"})
        if lo < 0 or hi > 100:
            errors.append({"field": prefix, "message": "Bands must lie within 0-100"})
        spans.append((lo, hi, i))
    # Bands may share a boundary point; first match in list order wins there.
    spans.sort()
    reach, reach_index = None, None
    for lo, hi, i in spans:
        if reach is not None and lo < reach:
            errors.append({"field": f"grade_labels[{i}]", "message": f"Overlaps grade_labels[{reach_index}]"})
        if reach is None or hi > reach:
            reach, reach_index = hi, i
    if spans and min(lo for lo, _, _ in spans) > 0:
        errors.append({"field": "grade_labels", "message": "Lowest band must start at 0"})
    return errors


def _default_band(percentage: float) -> GradeBand:
    for band in DEFAULT_BANDS:
        if percentage >= band.min:
            return band
    return DEFAULT_BANDS[-1]


def match_band(percentage: float, bands: Optional[Sequence[GradeBand]] = None) -> GradeBand:
    """
    Band for a percentage.

    Custom bands: the first band in list order whose [min, max] contains the
    percentage. A value falling between integer-bounded bands (79.5 under
    70-79 and 80-100) takes the band with the highest min not above it, so a
    custom scale never drops to the fixed thresholds.
    """
    if not bands:
        return _default_band(percentage)
    for band in bands:
        if band.min <= percentage <= band.max:
            return band
    ordered = sorted(bands, key=lambda b: b.min, reverse=True)
    for band in ordered:
        if percentage >= band.min:
            return band
    return ordered[-1]


def letter_grade(percentage: float, bands: Optional[Sequence[GradeBand]] = None) -> str:
    return match_band(percentage, bands).grade


def score_percentage(score: Optional[float], total_marks: Optional[float]) -> Optional[float]:
    if score is None or not total_marks:
        return None
    return float(score) / float(total_marks) * 100


@dataclass
class WeightedEntry:
    """One assessment's contribution to a subject composite."""

    total_marks: float
    weight_percentage: Optional[float]
    score_obtained: Optional[float] = None
    is_absent: bool = False

    @property
    def weight(self) -> float:
        return 100.0 if self.weight_percentage is None else float(self.weight_percentage)


@dataclass
class CompositeGrade:
    percentage: Optional[float]
    total_weight: float
    graded_count: int
    letter: Optional[str] = None
    gpa: Optional[float] = None


def weighted_composite(
    entries: Iterable[WeightedEntry],
    bands: Optional[Sequence[GradeBand]] = None,
) -> CompositeGrade:
    """
    Combine assessment scores using each assessment's weight.

    Absent or unscored entries are skipped. When nothing is gradable the
    composite percentage is None ("no grade yet"), never 0.
    """
    total_weighted_score = 0.0
    total_weight = 0.0
    graded = 0
    for entry in entries:
        if entry.is_absent or entry.score_obtained is None:
            continue
        pct = score_percentage(entry.score_obtained, entry.total_marks)
        if pct is None:
            continue
        total_weighted_score += pct * entry.weight / 100
        total_weight += entry.weight
        graded += 1

    if total_weight == 0:
        return CompositeGrade(percentage=None, total_weight=0.0, graded_count=0)

    percentage = round(total_weighted_score / total_weight * 100, 2)
    band = match_band(percentage, bands)
    return CompositeGrade(
        percentage=percentage,
        total_weight=total_weight,
        graded_count=graded,
        letter=band.grade,
        gpa=band.gpa,
    )


@dataclass
class Distribution:
    buckets: Dict[str, int] = field(default_factory=dict)
    total_students: int = 0
    graded_count: int = 0
    absent_count: int = 0
    average: Optional[float] = None
    average_percentage: Optional[float] = None
    highest: Optional[float] = None
    lowest: Optional[float] = None


def _bucket_label(band: GradeBand, custom: bool) -> str:
    if custom or not band.description:
        return band.grade
    return f"{band.grade} ({band.description})"


def grade_distribution(
    scores: Iterable[tuple],
    total_marks: float,
    bands: Optional[Sequence[GradeBand]] = None,
) -> Distribution:
    """
    scores: (score_obtained, is_absent) pairs for one assessment.

    Absent entries count toward total_students only. Entries with no score
    recorded yet are neither graded nor absent.
    """
    custom = bool(bands)
    result = Distribution(buckets={_bucket_label(b, custom): 0 for b in (bands or DEFAULT_BANDS)})
    graded_scores: List[float] = []
    for score, is_absent in scores:
        result.total_students += 1
        if is_absent:
            result.absent_count += 1
            continue
        if score is None:
            continue
        graded_scores.append(float(score))
        pct = score_percentage(score, total_marks)
        label = _bucket_label(match_band(pct, bands), custom)
        result.buckets[label] = result.buckets.get(label, 0) + 1

    result.graded_count = len(graded_scores)
    if graded_scores:
        result.average = round(sum(graded_scores) / len(graded_scores), 2)
        result.average_percentage = round(score_percentage(result.average, total_marks), 2)
        result.highest = max(graded_scores)
        result.lowest = min(graded_scores)
    return result
