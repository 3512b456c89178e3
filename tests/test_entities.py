"""
Admissions, students, hostel and fees services
"""
from datetime import datetime, timezone

import pytest

from Audit.audit import AuditTrail
from Entities.admissions import AdmissionService
from Entities.export import table_to_df, table_to_xlsx
from Entities.fees import FeeService
from Entities.hostel import HostelService
from Entities.students import StudentService

APPLICANT = {"first_name": "Asha", "last_name": "Rao", "email": "asha@example.com",
             "phone": "9876543210", "programme_applied": "B.Tech CSE"}


def _actions(store, table):
    return [e["action"] for e in store.table("AuditLog").where(sheet_name=table)]


# ─── Admissions ──────────────────────────────────────────────────────────
class TestAdmissions:
    @pytest.fixture
    def admissions(self, store):
        return AdmissionService(store)

    @pytest.fixture
    def application(self, admissions):
        return admissions.create(APPLICANT)["admission"]

    def test_create_defaults(self, application):
        assert application["admission_id"].startswith("ADM")
        assert application["application_ref"].startswith("APP")
        assert application["applicant_name"] == "Asha Rao"
        assert application["status"] == "pending"
        assert application["student_id"] == ""

    def test_create_missing_fields(self, admissions):
        result = admissions.create({"first_name": "Asha"})
        assert result["code"] == "validation_error"
        assert "email" in result["error"]

    def test_duplicate_email(self, admissions, application):
        result = admissions.create(APPLICANT)
        assert result == {"success": False, "code": "conflict",
                          "error": "An admission application with this email already exists"}

    def test_list_filters(self, admissions, application):
        admissions.create({**APPLICANT, "email": "b@example.com", "programme_applied": "MBA"})
        assert len(admissions.list()["admissions"]) == 2
        assert [a["email"] for a in admissions.list({"programme": "MBA"})["admissions"]] == ["b@example.com"]
        assert admissions.list({"status": "approved"})["admissions"] == []

    def test_get_by_email(self, admissions, application):
        found = admissions.get_by_email("asha@example.com")["admissions"]
        assert [a["admission_id"] for a in found] == [application["admission_id"]]

    def test_update_status(self, store, admissions, application):
        result = admissions.update_status(application["admission_id"], "approved", "docs ok", "USR9")
        assert result["admission"]["status"] == "approved"
        assert result["admission"]["verifier_notes"] == "docs ok"
        assert result["admission"]["assigned_officer_id"] == "USR9"
        log = store.table("AuditLog").where(action="update_status")[0]
        assert "status: pending -> approved" in log["diff"]

    def test_invalid_status(self, admissions, application):
        result = admissions.update_status(application["admission_id"], "maybe")
        assert result == {"success": False, "error": "Invalid status", "code": "validation_error"}

    def test_admit_requires_approval(self, admissions, application):
        result = admissions.admit_student(application["admission_id"], {})
        assert result == {"success": False, "error": "Admission must be approved first",
                          "code": "validation_error"}

    def test_admit_creates_student(self, store, admissions, application):
        admissions.update_status(application["admission_id"], "approved")
        result = admissions.admit_student(application["admission_id"],
                                          {"father_name": "Ravi", "programme_id": "PRG1"})
        assert result["success"]
        student = result["student"]
        assert student["student_id"].startswith("STD")
        assert student["admission_id"] == application["admission_id"]
        assert student["programme_name"] == "B.Tech CSE"
        assert student["father_name"] == "Ravi"
        assert student["enrollment_status"] == "active"
        assert student["year_of_study"] == 1

        assert result["admission"]["status"] == "admitted"
        assert result["admission"]["student_id"] == student["student_id"]
        assert store.table("Students").find("student_id", student["student_id"]) is not None
        assert _actions(store, "Students") == ["create"]
        assert "convert_to_student" in _actions(store, "Admissions")

    def test_admit_twice(self, admissions, application):
        admissions.update_status(application["admission_id"], "approved")
        admissions.admit_student(application["admission_id"])
        assert admissions.admit_student(application["admission_id"])["code"] == "validation_error"

    def test_update_to_taken_email(self, admissions, application):
        other = admissions.create({**APPLICANT, "email": "b@example.com"})["admission"]
        result = admissions.update(other["admission_id"], {"email": APPLICANT["email"]})
        assert result == {"success": False, "code": "conflict",
                          "error": "An admission application with this email already exists"}
        assert admissions.get(other["admission_id"])["admission"]["email"] == "b@example.com"

    def test_update_keeping_own_email(self, admissions, application):
        result = admissions.update(application["admission_id"],
                                   {"email": APPLICANT["email"], "phone": "1112223334"})
        assert result["success"]
        assert result["admission"]["phone"] == "1112223334"

    def test_generic_update_cannot_change_status(self, admissions, application):
        result = admissions.update(application["admission_id"],
                                   {"status": "admitted", "student_id": "STD9", "admitted_on": "2025-01-01",
                                    "verifier_notes": "checked"})
        assert result["success"]
        admission = result["admission"]
        assert admission["status"] == "pending"
        assert admission["student_id"] == ""
        assert admission["admitted_on"] == ""
        assert admission["verifier_notes"] == "checked"

    def test_unknown_admission(self, admissions):
        assert admissions.get("ADM-none") == {"success": False, "error": "Admission not found",
                                              "code": "not_found"}

    def test_stats(self, admissions, application):
        other = admissions.create({**APPLICANT, "email": "b@example.com"})["admission"]
        admissions.update_status(other["admission_id"], "rejected")
        stats = admissions.stats()["stats"]
        assert stats["total"] == 2
        assert stats["pending"] == 1
        assert stats["rejected"] == 1
        assert stats["approved"] == 0


# ─── Students ────────────────────────────────────────────────────────────
STUDENT = {"student_id": "STD001", "first_name": "Asha", "last_name": "Rao",
           "email": "asha@example.com", "programme_name": "B.Tech CSE"}


class TestStudents:
    @pytest.fixture
    def students(self, store):
        return StudentService(store, AuditTrail(store, actor="USR-staff"))

    def test_create_with_defaults(self, students):
        student = students.create(STUDENT)["student"]
        assert student["enrollment_status"] == "active"
        assert student["year_of_study"] == 1
        assert student["admission_date"].endswith("Z")

    def test_duplicate_id(self, students):
        students.create(STUDENT)
        assert students.create(STUDENT) == {"success": False, "code": "conflict",
                                            "error": "Student with this ID already exists"}

    def test_update_keeps_key_and_audits_actor(self, store, students):
        students.create(STUDENT)
        result = students.update("STD001", {"student_id": "STD999", "year_of_study": 2})
        assert result["student"]["student_id"] == "STD001"
        assert result["student"]["year_of_study"] == 2
        log = store.table("AuditLog").where(action="update")[0]
        assert log["user_id"] == "USR-staff"
        assert "year_of_study: 1 -> 2" in log["diff"]

    def test_soft_delete(self, store, students):
        students.create(STUDENT)
        assert students.delete("STD001") == {"success": True}
        assert students.get("STD001")["student"]["enrollment_status"] == "inactive"
        assert _actions(store, "Students") == ["create", "delete"]

    def test_list_filters(self, students):
        students.create(STUDENT)
        students.create({**STUDENT, "student_id": "STD002", "year_of_study": 2})
        assert [s["student_id"] for s in students.list({"year_of_study": "2"})["students"]] == ["STD002"]
        assert len(students.list({"enrollment_status": "active"})["students"]) == 2

    def test_courses(self, store, students):
        store.table("Enrollments").append({"enroll_id": "E1", "student_id": "STD001", "course_id": "C1"})
        store.table("Enrollments").append({"enroll_id": "E2", "student_id": "STD002", "course_id": "C1"})
        assert [e["enroll_id"] for e in students.courses("STD001")["enrollments"]] == ["E1"]

    def test_stats(self, students):
        students.create(STUDENT)
        students.create({**STUDENT, "student_id": "STD002", "programme_name": "MBA", "year_of_study": 2})
        students.delete("STD002")
        stats = students.stats()["stats"]
        assert stats["total"] == 2
        assert stats["active"] == 1
        assert stats["inactive"] == 1
        assert stats["by_programme"] == {"B.Tech CSE": 1, "MBA": 1}
        assert stats["by_year"] == {"1": 1, "2": 1}

    def test_stats_empty(self, students):
        assert students.stats()["stats"]["total"] == 0


# ─── Hostel ──────────────────────────────────────────────────────────────
ROOM = {"room_id": "R101", "hostel": "North", "block": "A", "floor": 1, "room_no": "101"}


class TestHostel:
    @pytest.fixture
    def hostel(self, store):
        service = HostelService(store)
        service.rooms.create(ROOM)
        service.rooms.create({**ROOM, "room_id": "R102", "room_no": "102"})
        service.students.create(STUDENT)
        return service

    def test_new_room_is_available(self, hostel):
        assert hostel.rooms.get("R101")["room"]["status"] == "available"

    def test_allocate(self, store, hostel):
        result = hostel.allocate("STD001", "R101", {"reason": "first year"})
        assert result["success"]
        alloc = result["allocation"]
        assert alloc["alloc_id"].startswith("ALLOC")
        assert alloc["status"] == "active"
        assert result["room"]["status"] == "occupied"
        assert result["room"]["current_student_id"] == "STD001"
        assert hostel.students.get("STD001")["student"]["hostel_alloc_id"] == alloc["alloc_id"]
        assert hostel.student_allocation("STD001")["allocation"]["alloc_id"] == alloc["alloc_id"]
        assert _actions(store, "HostelAllocations") == ["create"]

    def test_occupied_room(self, hostel):
        hostel.allocate("STD001", "R101")
        result = hostel.allocate("STD002", "R101")
        assert result == {"success": False, "code": "conflict",
                          "error": "Room is not available for allocation"}

    def test_student_already_allocated(self, hostel):
        hostel.allocate("STD001", "R101")
        result = hostel.allocate("STD001", "R102")
        assert result == {"success": False, "code": "conflict",
                          "error": "Student already has a room allocation"}

    def test_unknown_room(self, hostel):
        assert hostel.allocate("STD001", "R999") == {"success": False, "error": "Room not found",
                                                      "code": "not_found"}

    def test_deallocate(self, store, hostel):
        hostel.allocate("STD001", "R101")
        result = hostel.deallocate("STD001", "graduated")
        assert result["allocation"]["status"] == "inactive"
        assert result["allocation"]["reason"] == "graduated"
        assert hostel.rooms.get("R101")["room"]["status"] == "available"
        assert hostel.students.get("STD001")["student"]["hostel_alloc_id"] == ""
        assert hostel.student_allocation("STD001")["allocation"] is None
        assert _actions(store, "HostelAllocations") == ["create", "deallocate"]
        # the room can be taken again
        assert hostel.allocate("STD002", "R101")["success"]

    def test_deallocate_without_allocation(self, hostel):
        result = hostel.deallocate("STD001")
        assert result == {"success": False, "code": "not_found",
                          "error": "No active room allocation found for student"}

    def test_allocations_filter(self, hostel):
        hostel.allocate("STD001", "R101")
        hostel.allocate("STD002", "R102")
        hostel.deallocate("STD002")
        assert len(hostel.allocations()["allocations"]) == 2
        active = hostel.allocations({"status": "active"})["allocations"]
        assert [a["student_id"] for a in active] == ["STD001"]

    def test_stats(self, hostel):
        hostel.allocate("STD001", "R101")
        stats = hostel.stats()["stats"]
        assert stats["total_rooms"] == 2
        assert stats["occupied_rooms"] == 1
        assert stats["available_rooms"] == 1
        assert stats["active_allocations"] == 1
        assert stats["occupancy_rate"] == 50.0
        assert stats["by_hostel"] == {"North": {"total": 2, "available": 1, "occupied": 1}}


# ─── Fees ────────────────────────────────────────────────────────────────
class TestFees:
    @pytest.fixture
    def fees(self, store):
        service = FeeService(store)
        service.structures.create({"fee_id": "F1", "component": "Tuition", "amount": 50000,
                                   "programme_id": "PRG1", "effective_from": "2020-01-01T00:00:00Z"})
        service.structures.create({"fee_id": "F2", "component": "Hostel", "amount": 20000,
                                   "effective_from": "2020-01-01T00:00:00Z",
                                   "effective_to": "2021-01-01T00:00:00Z"})
        return service

    def test_structure_defaults(self, fees):
        fee = fees.structures.get("F1")["fee_structure"]
        assert fee["currency"] == "INR"
        assert fee["category"] == "Tuition"

    def test_only_effective_structures_are_listed(self, fees):
        assert [f["fee_id"] for f in fees.structures.list()["fee_structures"]] == ["F1"]
        at = datetime(2020, 6, 1, tzinfo=timezone.utc)
        assert [f["fee_id"] for f in fees.structures.effective(at=at)] == ["F1", "F2"]

    def test_structure_hard_delete(self, store, fees):
        assert fees.structures.delete("F2")["success"]
        assert store.table("FeeMaster").find("fee_id", "F2") is None

    def test_payment_with_receipt(self, store, fees):
        result = fees.create_payment({"student_id": "STD001", "amount": 20000,
                                      "payment_mode": "upi", "generate_receipt": True})
        assert result["success"]
        txn = result["transaction"]
        receipt = result["receipt"]
        assert txn["txn_id"].startswith("TXN")
        assert txn["payment_status"] == "completed"
        assert receipt["receipt_id"].startswith("RCP")
        assert receipt["txn_id"] == txn["txn_id"]
        assert txn["receipt_id"] == receipt["receipt_id"]
        assert fees.receipts({"txn_id": txn["txn_id"]})["receipts"][0]["receipt_id"] == receipt["receipt_id"]
        assert _actions(store, "Transactions") == ["create"]
        assert _actions(store, "Receipts") == ["create"]

    def test_payment_without_receipt(self, fees):
        result = fees.create_payment({"student_id": "STD001", "amount": "100", "payment_mode": "cash"})
        assert result["receipt"] is None
        assert result["transaction"]["receipt_id"] == ""

    @pytest.mark.parametrize("amount", [0, -5, "abc"])
    def test_payment_amount_must_be_positive(self, fees, amount):
        result = fees.create_payment({"student_id": "STD001", "amount": amount, "payment_mode": "cash"})
        assert result["code"] == "validation_error"

    def test_payment_missing_fields(self, fees):
        result = fees.create_payment({"amount": 10})
        assert result["code"] == "validation_error"
        assert "student_id" in result["error"]

    def test_student_summary(self, fees):
        fees.create_payment({"student_id": "STD001", "amount": 20000, "payment_mode": "upi"})
        fees.create_payment({"student_id": "STD001", "amount": 10000, "payment_mode": "cash"})
        fees.create_payment({"student_id": "STD002", "amount": 999, "payment_mode": "cash"})
        summary = fees.student_summary("STD001")["summary"]
        assert summary["total_paid"] == 30000
        assert summary["total_pending"] == 20000
        assert summary["payment_count"] == 2
        assert summary["last_payment_date"].endswith("Z")

    def test_summary_without_payments(self, fees):
        summary = fees.student_summary("STD404")["summary"]
        assert summary["total_paid"] == 0
        assert summary["last_payment_date"] is None

    def test_payments_filter(self, fees):
        fees.create_payment({"student_id": "STD001", "amount": 1, "payment_mode": "upi"})
        fees.create_payment({"student_id": "STD002", "amount": 1, "payment_mode": "cash"})
        assert [p["student_id"] for p in fees.payments({"payment_mode": "cash"})["payments"]] == ["STD002"]

    def test_stats(self, store, fees):
        fees.create_payment({"student_id": "STD001", "amount": 100, "payment_mode": "upi"})
        fees.create_payment({"student_id": "STD002", "amount": 50, "payment_mode": "upi"})
        fees.create_payment({"student_id": "STD003", "amount": 25, "payment_mode": "cash"})
        store.table("Transactions").append({"txn_id": "TXN-old", "student_id": "STD004",
                                            "amount": 10, "payment_mode": "cash",
                                            "date": "2023-03-05T10:00:00.000Z"})
        stats = fees.stats()["stats"]
        assert stats["total_collected"] == 185.0
        assert stats["total_transactions"] == 4
        assert stats["by_payment_mode"] == {"cash": 35.0, "upi": 150.0}
        assert stats["monthly_collection"]["2023-03"] == 10.0
        assert sum(stats["monthly_collection"].values()) == 185.0

    def test_stats_empty(self, fees):
        assert fees.stats()["stats"]["total_transactions"] == 0


# ─── Export ──────────────────────────────────────────────────────────────
def test_export_drops_password_hash(store, users):
    users.create_user({"username": "a", "email": "a@x.com", "password": "p", "role": "staff"})
    df = table_to_df(store.table("Users"))
    assert "hashed_password" not in df.columns
    assert list(df["email"]) == ["a@x.com"]
    assert table_to_xlsx(store.table("Users")).read(2) == b"PK"
