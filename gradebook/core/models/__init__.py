from gradebook.core.models.school import School
from gradebook.core.models.subject import Subject
from gradebook.core.models.academic_term import AcademicTerm
from gradebook.core.models.student import Student
from gradebook.core.models.assessment import Assessment, AssessmentComponent
from gradebook.core.models.student_score import GradeHistory, StudentScore
from gradebook.core.models.grade_scale import GradeScale
from gradebook.core.models.grade_override import GradeOverride, GradeOverrideAuditLog

__all__ = [
    "AcademicTerm",
    "Assessment",
    "AssessmentComponent",
    "GradeHistory",
    "GradeOverride",
    "GradeOverrideAuditLog",
    "GradeScale",
    "School",
    "Student",
    "StudentScore",
    "Subject",
]
