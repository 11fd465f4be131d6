from app.models.calendar import CalendarEntry
from app.models.taxonomy import Family, Group, Phylum, Task, TaskDetail, Universe

__all__ = [
    "Universe", "Phylum", "Family", "Group",
    "Task", "TaskDetail", "CalendarEntry",
]
