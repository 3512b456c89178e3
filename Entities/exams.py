# Entities/exams.py ──────────────────────────────────────────
"""Exams, the marks entered against them and grading."""
from datetime import datetime, timezone
from typing import Any, List, Optional

import pandas as pd

from errors import Conflict, ValidationError, as_result
from Entities.base import EntityService, Record
from Store.table import Located
from Store.utils import generate_id, loose_equals, now_iso, parse_timestamp, validate_required

MARKS = "Marks"
PASS_MARK = 40
GRADE_BANDS = ((90, "A+"), (80, "A"), (70, "B+"), (60, "B"), (50, "C"), (40, "D"))


def calculate_grade(marks: Any) -> str:
    try:
        value = float(marks)
    except (TypeError, ValueError):
        return "F"
    for floor, grade in GRADE_BANDS:
        if value >= floor:
            return grade
    return "F"


class ExamService(EntityService):
    table_name = "Exams"
    key = "exam_id"
    label = "Exam"
    item = "exam"
    items = "exams"
    required = ("exam_id", "course_id", "exam_date")

    def build(self, data: Record, now: str) -> Record:
        return {
            "exam_id": data["exam_id"],
            "course_id": data["course_id"],
            "exam_date": data["exam_date"],
            "venue": data.get("venue") or "",
            "invigilator_id": data.get("invigilator_id") or "",
            "created_at": now,
            "updated_at": now,
        }

    def _select(self, filters: Optional[Record] = None) -> List[Record]:
        filters = filters or {}
        start = _bound(filters, "start_date")
        end = _bound(filters, "end_date")
        exams = []
        for exam in self._table().scan():
            if filters.get("course_id") and not loose_equals(exam["course_id"], filters["course_id"]):
                continue
            if filters.get("invigilator_id") and exam["invigilator_id"] != filters["invigilator_id"]:
                continue
            if start or end:
                when = parse_timestamp(exam["exam_date"])
                if when is None or (start and when < start) or (end and when > end):
                    continue
            exams.append(exam)
        return exams

    def _remove(self, entity_id: Any) -> Record:
        with self.store.locked(self.table_name, MARKS):
            self._locate(self._table(), entity_id)
            if self.store.require(MARKS).where(exam_id=entity_id):
                raise Conflict("Cannot delete exam with marks already entered")
            return super()._remove(entity_id)

    # ─── marks ───────────────────────────────────────────────────────────
    @as_result
    def marks(self, exam_id: str) -> Record:
        return {"success": True, "marks": self.store.require(MARKS).where(exam_id=exam_id)}

    @as_result
    def student_results(self, student_id: str, exam_id: Optional[str] = None) -> Record:
        results = self.store.require(MARKS).where(student_id=student_id, exam_id=exam_id or None)
        return {"success": True, "results": results}

    @as_result
    def enter_marks(self, exam_id: str, student_id: str, marks_data: Record) -> Record:
        """Insert or overwrite the marks of one student for one exam."""
        missing = validate_required({"student_id": student_id, **marks_data},
                                    ("student_id", "marks_obtained"))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        try:
            obtained = float(marks_data["marks_obtained"])
        except (TypeError, ValueError):
            raise ValidationError("marks_obtained must be a number") from None

        marks = self.store.require(MARKS)
        with self.store.locked(self.table_name, MARKS):
            self._locate(self._table(), exam_id)
            existing = next(
                (Located(i, m) for i, m in enumerate(marks.scan())
                 if loose_equals(m["exam_id"], exam_id) and loose_equals(m["student_id"], student_id)),
                None,
            )
            record = {
                "exam_id": exam_id,
                "student_id": student_id,
                "marks_obtained": marks_data["marks_obtained"],
                "grade": calculate_grade(obtained),
                "entered_by": marks_data.get("entered_by") or self.audit.actor,
                "entered_on": now_iso(),
            }
            if existing is None:
                before = None
                record["marks_id"] = generate_id("MRK")
                stored = marks.append(record)
            else:
                before = existing.record
                record["marks_id"] = before["marks_id"]
                stored = marks.update(existing, record)

        self.audit.log(MARKS, stored["marks_id"], "create" if before is None else "update", before, stored)
        return {"success": True, "marks": stored}

    @as_result
    def stats(self) -> Record:
        exams = self._table().scan()
        now = datetime.now(timezone.utc)
        dates = [parse_timestamp(e["exam_date"]) for e in exams]
        completed = sum(1 for d in dates if d is not None and d < now)

        stats = {
            "total_exams": len(exams),
            "completed_exams": completed,
            "upcoming_exams": len(exams) - completed,
            "total_marks_entered": 0,
            "average_marks": 0.0,
            "pass_rate": 0.0,
        }
        exam_ids = {str(e["exam_id"]) for e in exams}
        df = pd.DataFrame(self.store.require(MARKS).scan())
        if not df.empty:
            df = df[df["exam_id"].astype(str).isin(exam_ids)]
            obtained = pd.to_numeric(df["marks_obtained"], errors="coerce").dropna()
            if len(obtained):
                stats["total_marks_entered"] = int(len(obtained))
                stats["average_marks"] = round(float(obtained.mean()), 1)
                stats["pass_rate"] = round(float((obtained >= PASS_MARK).mean() * 100), 1)
        return {"success": True, "stats": stats}


def _bound(filters: Record, key: str):
    if not filters.get(key):
        return None
    parsed = parse_timestamp(filters[key])
    if parsed is None:
        raise ValidationError(f"Invalid {key}: {filters[key]}")
    return parsed
