# Entities/admissions.py ─────────────────────────────────────
from typing import Any, Dict, List, Optional

from errors import ValidationError, as_result
from Entities.base import EntityService, Record
from Entities.students import StudentService
from Store.utils import generate_id, now_iso

ADMISSION_STATUSES = ("pending", "under_review", "approved", "rejected", "admitted")


class AdmissionService(EntityService):
    table_name = "Admissions"
    key = "admission_id"
    label = "Admission"
    item = "admission"
    items = "admissions"
    id_prefix = "ADM"
    required = ("first_name", "last_name", "email", "phone", "programme_applied")
    unique = "email"
    conflict_message = "An admission application with this email already exists"
    # status moves only through update_status / admit_student
    read_only = ("status", "admitted_on", "student_id", "application_ref")

    def build(self, data: Record, now: str) -> Record:
        return {
            "admission_id": data["admission_id"],
            "application_ref": generate_id("APP"),
            "applicant_name": f"{data['first_name']} {data['last_name']}",
            "first_name": data["first_name"],
            "last_name": data["last_name"],
            "email": data["email"],
            "phone": data["phone"],
            "programme_applied": data["programme_applied"],
            "documents": data.get("documents") or "",
            "applied_on": now,
            "status": "pending",
            "assigned_officer_id": data.get("assigned_officer_id") or "",
            "verifier_notes": "",
            "admitted_on": "",
            "student_id": "",
            "created_at": now,
            "updated_at": now,
        }

    def _select(self, filters: Optional[Record] = None) -> List[Record]:
        filters = filters or {}
        status = filters.get("status")
        programme = filters.get("programme")
        email = filters.get("email")
        admissions = []
        for a in self._table().scan():
            if status and a["status"] != status:
                continue
            if programme and a["programme_applied"] != programme:
                continue
            if email and a["email"] != email:
                continue
            admissions.append(a)
        return admissions

    @as_result
    def get_by_email(self, email: str) -> Record:
        return {"success": True, "admissions": self._table().where(email=email)}

    @as_result
    def update_status(self, admission_id: str, status: str, verifier_notes: str = "",
                      assigned_officer_id: str = "") -> Record:
        if status not in ADMISSION_STATUSES:
            raise ValidationError("Invalid status")

        table = self._table()
        with table.lock:
            found = self._locate(table, admission_id)
            current = found.record
            now = now_iso()
            updates: Dict[str, Any] = {
                "status": status,
                "verifier_notes": verifier_notes or "",
                "updated_at": now,
            }
            if assigned_officer_id:
                updates["assigned_officer_id"] = assigned_officer_id
            if status == "admitted":
                updates["admitted_on"] = now
            updated = table.set_values(found, **updates)

        self.audit.log(self.table_name, admission_id, "update_status", current, updated)
        return {"success": True, "admission": updated}

    @as_result
    def admit_student(self, admission_id: str, student_data: Optional[Record] = None) -> Record:
        """Turn an approved application into a Students row."""
        student_data = student_data or {}
        students = StudentService(self.store, self.audit)
        admissions = self._table()
        students_table = students._table()

        with self.store.locked(self.table_name, students.table_name):
            found = self._locate(admissions, admission_id)
            admission = found.record
            if admission["status"] != "approved":
                raise ValidationError("Admission must be approved first")

            now = now_iso()
            new_student = students.build({
                "student_id": generate_id("STD"),
                "admission_id": admission["admission_id"],
                "first_name": admission["first_name"],
                "last_name": admission["last_name"],
                "father_name": student_data.get("father_name"),
                "mother_name": student_data.get("mother_name"),
                "dob": student_data.get("dob"),
                "gender": student_data.get("gender"),
                "email": admission["email"],
                "phone": admission["phone"],
                "address": student_data.get("address"),
                "programme_id": student_data.get("programme_id"),
                "programme_name": admission["programme_applied"],
                "admission_date": now,
                "enrollment_status": "active",
                "year_of_study": 1,
                "photo_drive_file_id": student_data.get("photo_drive_file_id"),
            }, now)
            new_student = students_table.append(new_student)
            updated = admissions.set_values(
                found,
                student_id=new_student["student_id"],
                status="admitted",
                admitted_on=now,
                updated_at=now,
            )

        self.audit.log(students.table_name, new_student["student_id"], "create", None, new_student)
        self.audit.log(self.table_name, admission_id, "convert_to_student", admission, updated)
        return {"success": True, "student": new_student, "admission": updated}

    @as_result
    def stats(self) -> Record:
        stats = {"total": 0, **{s: 0 for s in ADMISSION_STATUSES}}
        for admission in self._table().scan():
            stats["total"] += 1
            status = admission.get("status") or "unknown"
            stats[status] = stats.get(status, 0) + 1
        return {"success": True, "stats": stats}
