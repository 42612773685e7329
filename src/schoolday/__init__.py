"""School-day schedule resolution and live status.

Answers "what block is it, and whose class is in it" for a student, keeps a
single live status in step with the bell, and carries reporter-driven live
scores for followed sports events.
"""

from schoolday.assignments import AssignmentBook, StudentContext
from schoolday.models import ClassAssignment, DayOverride, Parity, TimeBlock, Weekday
from schoolday.projection import Projection, ScheduleProjection
from schoolday.service import Schoolday
from schoolday.store import InMemoryRecordStore
from schoolday.timegrid import TimeGrid
from schoolday.xblock import XBlockResolver

__all__ = [
    "AssignmentBook",
    "ClassAssignment",
    "DayOverride",
    "InMemoryRecordStore",
    "Parity",
    "Projection",
    "ScheduleProjection",
    "Schoolday",
    "StudentContext",
    "TimeBlock",
    "TimeGrid",
    "Weekday",
    "XBlockResolver",
]
