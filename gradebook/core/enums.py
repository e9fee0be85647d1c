from enum import Enum


class AssessmentType(str, Enum):
    EXAM = "exam"
    TEST = "test"
    QUIZ = "quiz"
    HOMEWORK = "homework"
    PROJECT = "project"


class ComponentType(str, Enum):
    MCQ = "MCQ"
    WRITTEN = "Written"
    PRACTICAL = "Practical"
    ORAL = "Oral"


class ScaleType(str, Enum):
    LETTER = "letter"
    GPA = "gpa"
    PERCENTAGE = "percentage"


class OverrideStatus(str, Enum):
    pending = "pending"
    approved = "approved"


class OverrideAuditAction(str, Enum):
    REQUESTED = "REQUESTED"
    UPDATED = "UPDATED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class UserRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    SCHOOL_ADMIN = "school_admin"
    TEACHER = "teacher"
    STUDENT = "student"
    PARENT = "parent"
