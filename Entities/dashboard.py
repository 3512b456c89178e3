# Entities/dashboard.py ──────────────────────────────────────
"""Read-only summaries across the other services for the dashboard screens."""
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from Audit.audit import AuditTrail
from Auth.users import UserService
from errors import as_result
from Entities.admissions import AdmissionService
from Entities.courses import CourseService
from Entities.exams import ExamService
from Entities.fees import FeeService
from Entities.hostel import HostelService
from Entities.students import StudentService
from Store.table import Store
from Store.utils import parse_timestamp, to_number

ACTIVITY_DAYS = 7
CORE_TABLES = ("Users", "Admissions", "Students")

ACTIVITY_TYPES = {
    "Students": "user",
    "Admissions": "admission",
    "Users": "user",
    "Transactions": "payment",
    "Exams": "exam",
    "HostelAllocations": "hostel",
    "Courses": "course",
}

ACTIVITY_DESCRIPTIONS = {
    ("Students", "create"): "New student registered",
    ("Students", "update"): "Student information updated",
    ("Admissions", "create"): "New admission application",
    ("Admissions", "update"): "Admission updated",
    ("Admissions", "update_status"): "Admission status changed",
    ("Users", "create"): "New user created",
    ("Users", "update"): "User information updated",
    ("Transactions", "create"): "Payment processed",
    ("Exams", "create"): "Exam scheduled",
    ("Exams", "update"): "Exam updated",
    ("HostelAllocations", "create"): "Room allocated",
    ("HostelAllocations", "deallocate"): "Room deallocated",
    ("Courses", "create"): "Course created",
    ("Courses", "update"): "Course updated",
}


def describe_activity(sheet_name: str, action: str) -> str:
    return ACTIVITY_DESCRIPTIONS.get((sheet_name, action), f"{sheet_name} {action}")


class DashboardService:
    def __init__(self, store: Store, audit: Optional[AuditTrail] = None):
        self.store = store
        self.audit = audit or AuditTrail(store)

    def _upcoming(self, exams: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        now = datetime.now(timezone.utc)
        dates = [(e, parse_timestamp(e["exam_date"])) for e in exams]
        return [e for e, when in dates if when is not None and when >= now]

    @as_result
    def stats(self) -> Dict[str, Any]:
        # each figure stays 0 when its sheet is missing
        stats = {
            "total_students": 0,
            "total_courses": 0,
            "total_fees_collected": 0.0,
            "hostel_occupancy": 0.0,
            "pending_exams": 0,
            "active_users": 0,
        }
        students = StudentService(self.store).stats()
        if students["success"]:
            stats["total_students"] = students["stats"]["active"]
        courses = CourseService(self.store).list()
        if courses["success"]:
            stats["total_courses"] = len(courses["courses"])
        fees = FeeService(self.store).stats()
        if fees["success"]:
            stats["total_fees_collected"] = fees["stats"]["total_collected"]
        hostel = HostelService(self.store).stats()
        if hostel["success"]:
            stats["hostel_occupancy"] = hostel["stats"]["occupancy_rate"]
        exams = ExamService(self.store).list()
        if exams["success"]:
            stats["pending_exams"] = len(self._upcoming(exams["exams"]))
        users = UserService(self.store).get_all_users({"active": True})
        if users["success"]:
            stats["active_users"] = len(users["users"])
        return {"success": True, "stats": stats}

    @as_result
    def student_stats(self, student_id: str) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "enrolled_courses": 0,
            "pending_fees": 0.0,
            "average_marks": "N/A",
            "completed_exams": 0,
            "upcoming_exams": 0,
        }
        enrollments = StudentService(self.store).courses(student_id)
        course_ids = set()
        if enrollments["success"]:
            stats["enrolled_courses"] = len(enrollments["enrollments"])
            course_ids = {str(e["course_id"]) for e in enrollments["enrollments"]}

        summary = FeeService(self.store).student_summary(student_id)
        if summary["success"]:
            stats["pending_fees"] = summary["summary"]["total_pending"]

        results = ExamService(self.store).student_results(student_id)
        if results["success"]:
            marks = [to_number(r["marks_obtained"]) for r in results["results"]
                     if r["marks_obtained"] not in (None, "")]
            stats["completed_exams"] = len(marks)
            if marks:
                stats["average_marks"] = round(sum(marks) / len(marks), 1)

        exams = ExamService(self.store).list()
        if exams["success"]:
            stats["upcoming_exams"] = sum(
                1 for e in self._upcoming(exams["exams"]) if str(e["course_id"]) in course_ids)
        return {"success": True, "stats": stats}

    @as_result
    def recent_activity(self, limit: int = 10) -> Dict[str, Any]:
        """Audit entries of the last week grouped by (sheet, action), newest group first."""
        since = datetime.now(timezone.utc) - timedelta(days=ACTIVITY_DAYS)
        logs = self.audit.query({"start_date": since.isoformat()})

        groups: Dict[tuple, Dict[str, Any]] = {}
        for log in logs[:limit * 2]:
            group = groups.setdefault((log["sheet_name"], log["action"]), {
                "type": ACTIVITY_TYPES.get(log["sheet_name"], "system"),
                "description": describe_activity(log["sheet_name"], log["action"]),
                "timestamp": log["timestamp"],
                "count": 0,
            })
            group["count"] += 1

        activities = []
        for group in groups.values():
            if group["count"] > 1:
                group["description"] = f"{group['description']} ({group['count']} items)"
            activities.append(group)
        activities.sort(key=lambda a: parse_timestamp(a["timestamp"]) or since, reverse=True)
        return {"success": True, "activities": activities[:limit]}

    @as_result
    def system_health(self) -> Dict[str, Any]:
        missing = [name for name in CORE_TABLES if self.store.table(name) is None]
        users = UserService(self.store).get_all_users({"active": True}) if "Users" not in missing else None
        health = {
            "database_status": "warning" if missing else "healthy",
            "missing_sheets": missing,
            "active_users": len(users["users"]) if users and users["success"] else 0,
            "sheets": self.store.stats()["sheets"],
        }
        return {"success": True, "health": health}

    @as_result
    def enrollment_trends(self, days: int = 30) -> Dict[str, Any]:
        """Admissions applied for on each of the last `days` days, today included."""
        admissions = AdmissionService(self.store).list()
        if not admissions["success"]:
            return admissions

        today = datetime.now(timezone.utc).date()
        counts: Dict[date, int] = {today - timedelta(days=i): 0 for i in reversed(range(days))}
        for admission in admissions["admissions"]:
            applied = parse_timestamp(admission["applied_on"])
            if applied is not None and applied.date() in counts:
                counts[applied.date()] += 1
        return {"success": True, "trends": [{"date": d.isoformat(), "count": c} for d, c in counts.items()]}
