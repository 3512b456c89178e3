# Entities/students.py ───────────────────────────────────────
import pandas as pd

from errors import as_result
from Entities.base import EntityService, Record


class StudentService(EntityService):
    table_name = "Students"
    key = "student_id"
    label = "Student"
    item = "student"
    items = "students"
    required = ("student_id", "first_name", "last_name", "email")
    filters = ("programme_id", "enrollment_status", "year_of_study")
    soft_delete = {"enrollment_status": "inactive"}
    conflict_message = "Student with this ID already exists"

    def build(self, data: Record, now: str) -> Record:
        return {
            **data,
            "admission_date": data.get("admission_date") or now,
            "enrollment_status": data.get("enrollment_status") or "active",
            "year_of_study": data.get("year_of_study") or 1,
            "hostel_alloc_id": data.get("hostel_alloc_id") or "",
            "library_card_id": data.get("library_card_id") or "",
            "created_at": now,
            "updated_at": now,
        }

    def set_hostel_alloc(self, student_id: str, alloc_id: str) -> None:
        """Write the hostel allocation id on the student row, if there is one."""
        table = self.store.table(self.table_name)
        if table is None:
            return
        with table.lock:
            found = table.find(self.key, student_id)
            if found is not None:
                table.set_values(found, hostel_alloc_id=alloc_id)

    @as_result
    def courses(self, student_id: str) -> Record:
        enrollments = self.store.require("Enrollments")
        return {"success": True, "enrollments": enrollments.where(student_id=student_id)}

    @as_result
    def stats(self) -> Record:
        df = pd.DataFrame(self._table().scan())
        if df.empty:
            return {"success": True, "stats": {
                "total": 0, "active": 0, "inactive": 0, "by_programme": {}, "by_year": {},
            }}

        active = int((df["enrollment_status"] == "active").sum())
        by_programme = (
            df["programme_name"]
            .replace("", "Unknown")
            .value_counts()
            .sort_index()
            .to_dict()
        )
        by_year = (
            df["year_of_study"]
            .replace("", "Unknown")
            .astype(str)
            .value_counts()
            .sort_index()
            .to_dict()
        )
        return {"success": True, "stats": {
            "total": int(len(df)),
            "active": active,
            "inactive": int(len(df)) - active,
            "by_programme": {str(k): int(v) for k, v in by_programme.items()},
            "by_year": {str(k): int(v) for k, v in by_year.items()},
        }}
