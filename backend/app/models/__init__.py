from app.models.faculty import Faculty  # noqa: F401
from app.models.school_class import SchoolClass  # noqa: F401
from app.models.subject import Subject  # noqa: F401
from app.models.template import TimetableTemplate  # noqa: F401
from app.models.timetable import ClassAssignment, Timetable  # noqa: F401
from app.models.timetable_generation import (  # noqa: F401
    GenerationScope,
    TimetableGenerationRun,
    TimetableGenerationSettings,
)
