# Entities/courses.py ────────────────────────────────────────
from typing import Any, Optional

from errors import Conflict, as_result
from Entities.base import EntityService, Record

ENROLLMENTS = "Enrollments"
EXAMS = "Exams"


class CourseService(EntityService):
    table_name = "Courses"
    key = "course_id"
    label = "Course"
    item = "course"
    items = "courses"
    required = ("course_id", "title", "credits", "programme_id")
    filters = ("programme_id", "semester")

    def build(self, data: Record, now: str) -> Record:
        return {
            "course_id": data["course_id"],
            "title": data["title"],
            "credits": data["credits"],
            "programme_id": data["programme_id"],
            "semester": data.get("semester") or 1,
            "created_at": now,
            "updated_at": now,
        }

    def _remove(self, entity_id: Any) -> Record:
        with self.store.locked(self.table_name, ENROLLMENTS):
            self._locate(self._table(), entity_id)
            if self.store.require(ENROLLMENTS).where(course_id=entity_id):
                raise Conflict("Cannot delete course with active enrollments")
            return super()._remove(entity_id)

    @as_result
    def enrollments(self, course_id: str) -> Record:
        return {"success": True, "enrollments": self.store.require(ENROLLMENTS).where(course_id=course_id)}

    @as_result
    def exams(self, course_id: str) -> Record:
        return {"success": True, "exams": self.store.require(EXAMS).where(course_id=course_id)}

    @as_result
    def timetable(self, filters: Optional[Record] = None) -> Record:
        courses = sorted(self._select(filters),
                         key=lambda c: (str(c["programme_id"]), str(c["semester"]), str(c["course_id"])))
        return {"success": True, "courses": courses}
