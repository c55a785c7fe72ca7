from learnify.core.models.activity_log import ActivityLog
from learnify.core.models.class_model import ClassCompulsorySubject, ClassStudent, SchoolClass
from learnify.core.models.school import School
from learnify.core.models.subject import Subject

__all__ = [
    "ActivityLog",
    "ClassCompulsorySubject",
    "ClassStudent",
    "School",
    "SchoolClass",
    "Subject",
]
