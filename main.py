#!/usr/bin/env python3
import sys
import os
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Depends, Body, Query, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from Audit.audit import AuditTrail
from Auth.auth import get_current_user, role_required
from Auth.security import create_access_token
from Auth.users import UserService
from Entities.admissions import AdmissionService
from Entities.courses import CourseService
from Entities.dashboard import DashboardService
from Entities.exams import ExamService
from Entities.export import table_to_xlsx
from Entities.fees import FeeService
from Entities.hostel import HostelService
from Entities.notifications import NotificationService
from Entities.students import StudentService
from models import (
    AdmissionStatus, AdmitStudent, Allocation, Broadcast, Credentials, Deallocation,
    MarksEntry, PasswordChange, Payment, Register, UserCreate, UserUpdate,
)
from responses import send_error, send_json, send_result
from Store.database import get_store, init_db
from Store.table import Store

# Configure logging to stdout
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger()

ADMIN = ("admin",)
STAFF = ("admin", "staff")
WARDEN = ("admin", "hostel_warden")


@asynccontextmanager
async def lifespan(_: FastAPI):
    created = init_db()
    if created:
        logger.info("Provisioned sheets: %s", ", ".join(created))
    yield


# ─── FASTAPI SETUP ─────────────────────────────────────────────────────────
app = FastAPI(
    title="College ERP",
    description="Admissions, students, courses, exams, fees, hostel, notifications and audit on a spreadsheet store",
    version="1.0.0",
    lifespan=lifespan,
)

# Allow CORS broadly for now (adjust origins as needed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
def http_error(_, exc: StarletteHTTPException):
    return send_error(str(exc.detail), exc.status_code)


@app.exception_handler(RequestValidationError)
def validation_error(_, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()))
    return send_error(f"{where}: {first.get('msg', 'invalid request')}", 422)


@app.exception_handler(Exception)
def unexpected_error(_, exc: Exception):
    logger.exception("Unhandled error: %s", exc)
    return send_error("Internal server error", 500)


def _audit(store: Store, user: Optional[Dict[str, Any]] = None) -> AuditTrail:
    return AuditTrail(store, actor=user["user_id"] if user else None)


# ─── ROOT & HEALTH ─────────────────────────────────────────────────────────
@app.get("/", include_in_schema=False)
def root():
    return {"status": "ok"}


@app.get("/health", tags=["Health"])
def health_check(store: Store = Depends(get_store)):
    logger.info("Health check invoked")
    return {
        "status": "ok",
        "time": datetime.now(timezone.utc).isoformat(),
        "sheets": store.stats()["sheets"],
    }


# ─── AUTH ──────────────────────────────────────────────────────────────────
@app.post("/auth/login", summary="Obtain JWT access token", tags=["Auth"])
def login(creds: Credentials, store: Store = Depends(get_store)):
    """Validate credentials; on success return the profile plus a signed JWT."""
    result = UserService(store).login(creds.email, creds.password)
    if result["success"]:
        result["access_token"] = create_access_token(result["user"])
        result["token_type"] = "bearer"
    return send_result(result, error_status=status.HTTP_401_UNAUTHORIZED)


@app.post("/auth/register", tags=["Auth"])
def register(body: Register, store: Store = Depends(get_store)):
    # self-service accounts are always students
    data = body.model_dump(exclude_none=True) | {"role": "student"}
    return send_result(UserService(store).create_user(data), status.HTTP_201_CREATED)


@app.get("/auth/me", tags=["Auth"])
def me(user: Dict[str, Any] = Depends(get_current_user)):
    return send_json({"success": True, "user": user})


@app.post("/auth/change-password", tags=["Auth"])
def change_password(body: PasswordChange, store: Store = Depends(get_store),
                    user: Dict[str, Any] = Depends(get_current_user)):
    service = UserService(store, _audit(store, user))
    return send_result(service.change_password(user["user_id"], body.old_password, body.new_password))


# ─── USERS ─────────────────────────────────────────────────────────────────
@app.get("/users", tags=["Users"])
def list_users(role: Optional[str] = None, active: Optional[bool] = None,
               store: Store = Depends(get_store), _: Dict = Depends(role_required(*ADMIN))):
    return send_result(UserService(store).get_all_users({"role": role, "active": active}))


@app.get("/users/{user_id}", tags=["Users"])
def get_user(user_id: str, store: Store = Depends(get_store),
             user: Dict[str, Any] = Depends(get_current_user)):
    if user["role"] != "admin" and user["user_id"] != user_id:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Insufficient role")
    return send_result(UserService(store).get_user(user_id))


@app.post("/users", tags=["Users"])
def create_user(body: UserCreate, store: Store = Depends(get_store),
                user: Dict = Depends(role_required(*ADMIN))):
    service = UserService(store, _audit(store, user))
    return send_result(service.create_user(body.model_dump(exclude_none=True)), status.HTTP_201_CREATED)


@app.put("/users/{user_id}", tags=["Users"])
def update_user(user_id: str, body: UserUpdate, store: Store = Depends(get_store),
                user: Dict = Depends(role_required(*ADMIN))):
    service = UserService(store, _audit(store, user))
    return send_result(service.update_user(user_id, body.model_dump(exclude_unset=True)))


@app.delete("/users/{user_id}", tags=["Users"])
def delete_user(user_id: str, store: Store = Depends(get_store),
                user: Dict = Depends(role_required(*ADMIN))):
    return send_result(UserService(store, _audit(store, user)).delete_user(user_id))


# ─── ADMISSIONS ────────────────────────────────────────────────────────────
@app.post("/admissions", tags=["Admissions"])
def create_admission(body: Dict[str, Any] = Body(...), store: Store = Depends(get_store)):
    # applicants are not logged in
    return send_result(AdmissionService(store).create(body), status.HTTP_201_CREATED)


@app.get("/admissions", tags=["Admissions"])
def list_admissions(status_: Optional[str] = Query(None, alias="status"),
                    programme: Optional[str] = None, email: Optional[str] = None,
                    store: Store = Depends(get_store), _: Dict = Depends(role_required(*STAFF))):
    filters = {"status": status_, "programme": programme, "email": email}
    return send_result(AdmissionService(store).list(filters))


@app.get("/admissions/stats", tags=["Admissions"])
def admission_stats(store: Store = Depends(get_store), _: Dict = Depends(role_required(*STAFF))):
    return send_result(AdmissionService(store).stats())


@app.get("/admissions/mine", tags=["Admissions"])
def my_admissions(email: str = Query(""), store: Store = Depends(get_store)):
    if not email:
        return send_error("Email parameter required", 400)
    return send_result(AdmissionService(store).get_by_email(email))


@app.get("/admissions/{admission_id}", tags=["Admissions"])
def get_admission(admission_id: str, store: Store = Depends(get_store),
                  _: Dict = Depends(role_required(*STAFF))):
    return send_result(AdmissionService(store).get(admission_id))


@app.put("/admissions/{admission_id}", tags=["Admissions"])
def update_admission(admission_id: str, body: Dict[str, Any] = Body(...),
                     store: Store = Depends(get_store), user: Dict = Depends(role_required(*STAFF))):
    return send_result(AdmissionService(store, _audit(store, user)).update(admission_id, body))


@app.post("/admissions/{admission_id}/status", tags=["Admissions"])
def update_admission_status(admission_id: str, body: AdmissionStatus,
                            store: Store = Depends(get_store), user: Dict = Depends(role_required(*STAFF))):
    service = AdmissionService(store, _audit(store, user))
    return send_result(service.update_status(admission_id, body.status, body.verifier_notes,
                                             body.assigned_officer_id))


@app.post("/admissions/{admission_id}/admit", tags=["Admissions"])
def admit_student(admission_id: str, body: AdmitStudent, store: Store = Depends(get_store),
                  user: Dict = Depends(role_required(*STAFF))):
    service = AdmissionService(store, _audit(store, user))
    return send_result(service.admit_student(admission_id, body.student_data), status.HTTP_201_CREATED)


@app.delete("/admissions/{admission_id}", tags=["Admissions"])
def delete_admission(admission_id: str, store: Store = Depends(get_store),
                     user: Dict = Depends(role_required(*STAFF))):
    return send_result(AdmissionService(store, _audit(store, user)).delete(admission_id))


# ─── STUDENTS ──────────────────────────────────────────────────────────────
@app.get("/students", tags=["Students"])
def list_students(programme_id: Optional[str] = None, enrollment_status: Optional[str] = None,
                  year_of_study: Optional[str] = None,
                  store: Store = Depends(get_store), _: Dict = Depends(role_required(*STAFF))):
    filters = {"programme_id": programme_id, "enrollment_status": enrollment_status,
               "year_of_study": year_of_study}
    return send_result(StudentService(store).list(filters))


@app.get("/students/stats", tags=["Students"])
def student_stats(store: Store = Depends(get_store), _: Dict = Depends(role_required(*STAFF))):
    return send_result(StudentService(store).stats())


@app.get("/students/{student_id}", tags=["Students"])
def get_student(student_id: str, store: Store = Depends(get_store),
                _: Dict = Depends(role_required(*STAFF))):
    return send_result(StudentService(store).get(student_id))


@app.get("/students/{student_id}/courses", tags=["Students"])
def student_courses(student_id: str, store: Store = Depends(get_store),
                    _: Dict = Depends(role_required(*STAFF))):
    return send_result(StudentService(store).courses(student_id))


@app.post("/students", tags=["Students"])
def create_student(body: Dict[str, Any] = Body(...), store: Store = Depends(get_store),
                   user: Dict = Depends(role_required(*STAFF))):
    return send_result(StudentService(store, _audit(store, user)).create(body), status.HTTP_201_CREATED)


@app.put("/students/{student_id}", tags=["Students"])
def update_student(student_id: str, body: Dict[str, Any] = Body(...), store: Store = Depends(get_store),
                   user: Dict = Depends(role_required(*STAFF))):
    return send_result(StudentService(store, _audit(store, user)).update(student_id, body))


@app.delete("/students/{student_id}", tags=["Students"])
def delete_student(student_id: str, store: Store = Depends(get_store),
                   user: Dict = Depends(role_required(*STAFF))):
    return send_result(StudentService(store, _audit(store, user)).delete(student_id))


# ─── HOSTEL ────────────────────────────────────────────────────────────────
@app.get("/hostel/rooms", tags=["Hostel"])
def list_rooms(hostel: Optional[str] = None, status_: Optional[str] = Query(None, alias="status"),
               floor: Optional[str] = None,
               store: Store = Depends(get_store), _: Dict = Depends(role_required(*WARDEN))):
    filters = {"hostel": hostel, "status": status_, "floor": floor}
    return send_result(HostelService(store).rooms.list(filters))


@app.get("/hostel/rooms/{room_id}", tags=["Hostel"])
def get_room(room_id: str, store: Store = Depends(get_store), _: Dict = Depends(role_required(*WARDEN))):
    return send_result(HostelService(store).rooms.get(room_id))


@app.post("/hostel/rooms", tags=["Hostel"])
def create_room(body: Dict[str, Any] = Body(...), store: Store = Depends(get_store),
                user: Dict = Depends(role_required(*WARDEN))):
    service = HostelService(store, _audit(store, user))
    return send_result(service.rooms.create(body), status.HTTP_201_CREATED)


@app.put("/hostel/rooms/{room_id}", tags=["Hostel"])
def update_room(room_id: str, body: Dict[str, Any] = Body(...), store: Store = Depends(get_store),
                user: Dict = Depends(role_required(*WARDEN))):
    return send_result(HostelService(store, _audit(store, user)).rooms.update(room_id, body))


@app.post("/hostel/allocate", tags=["Hostel"])
def allocate_room(body: Allocation, store: Store = Depends(get_store),
                  user: Dict = Depends(role_required(*WARDEN))):
    service = HostelService(store, _audit(store, user))
    extra = body.model_dump(include={"reason", "allocated_by"}, exclude_none=True)
    return send_result(service.allocate(body.student_id, body.room_id, extra), status.HTTP_201_CREATED)


@app.post("/hostel/deallocate", tags=["Hostel"])
def deallocate_room(body: Deallocation, store: Store = Depends(get_store),
                    user: Dict = Depends(role_required(*WARDEN))):
    return send_result(HostelService(store, _audit(store, user)).deallocate(body.student_id, body.reason))


@app.get("/hostel/allocations", tags=["Hostel"])
def list_allocations(student_id: Optional[str] = None, room_id: Optional[str] = None,
                     status_: Optional[str] = Query(None, alias="status"),
                     store: Store = Depends(get_store), _: Dict = Depends(role_required(*WARDEN))):
    filters = {"student_id": student_id, "room_id": room_id, "status": status_}
    return send_result(HostelService(store).allocations(filters))


@app.get("/hostel/stats", tags=["Hostel"])
def hostel_stats(store: Store = Depends(get_store), _: Dict = Depends(role_required(*WARDEN))):
    return send_result(HostelService(store).stats())


# ─── FEES ──────────────────────────────────────────────────────────────────
@app.get("/fees/structures", tags=["Fees"])
def list_fee_structures(programme_id: Optional[str] = None, category: Optional[str] = None,
                        store: Store = Depends(get_store), _: Dict = Depends(get_current_user)):
    filters = {"programme_id": programme_id, "category": category}
    return send_result(FeeService(store).structures.list(filters))


@app.post("/fees/structures", tags=["Fees"])
def create_fee_structure(body: Dict[str, Any] = Body(...), store: Store = Depends(get_store),
                         user: Dict = Depends(role_required(*STAFF))):
    service = FeeService(store, _audit(store, user))
    return send_result(service.structures.create(body), status.HTTP_201_CREATED)


@app.put("/fees/structures/{fee_id}", tags=["Fees"])
def update_fee_structure(fee_id: str, body: Dict[str, Any] = Body(...), store: Store = Depends(get_store),
                         user: Dict = Depends(role_required(*STAFF))):
    return send_result(FeeService(store, _audit(store, user)).structures.update(fee_id, body))


@app.delete("/fees/structures/{fee_id}", tags=["Fees"])
def delete_fee_structure(fee_id: str, store: Store = Depends(get_store),
                         user: Dict = Depends(role_required(*STAFF))):
    return send_result(FeeService(store, _audit(store, user)).structures.delete(fee_id))


@app.post("/fees/payments", tags=["Fees"])
def create_payment(body: Payment, store: Store = Depends(get_store),
                   user: Dict = Depends(role_required(*STAFF))):
    service = FeeService(store, _audit(store, user))
    return send_result(service.create_payment(body.model_dump(exclude_none=True)), status.HTTP_201_CREATED)


@app.get("/fees/payments", tags=["Fees"])
def list_payments(student_id: Optional[str] = None, payment_mode: Optional[str] = None,
                  payment_status: Optional[str] = None,
                  store: Store = Depends(get_store), _: Dict = Depends(role_required(*STAFF))):
    filters = {"student_id": student_id, "payment_mode": payment_mode, "payment_status": payment_status}
    return send_result(FeeService(store).payments(filters))


@app.get("/fees/receipts", tags=["Fees"])
def list_receipts(txn_id: Optional[str] = None, store: Store = Depends(get_store),
                  _: Dict = Depends(role_required(*STAFF))):
    return send_result(FeeService(store).receipts({"txn_id": txn_id}))


@app.get("/fees/students/{student_id}/summary", tags=["Fees"])
def student_fee_summary(student_id: str, store: Store = Depends(get_store),
                        _: Dict = Depends(role_required(*STAFF))):
    return send_result(FeeService(store).student_summary(student_id))


@app.get("/fees/stats", tags=["Fees"])
def fee_stats(store: Store = Depends(get_store), _: Dict = Depends(role_required(*STAFF))):
    return send_result(FeeService(store).stats())


# ─── COURSES ───────────────────────────────────────────────────────────────
@app.get("/courses", tags=["Courses"])
def list_courses(programme_id: Optional[str] = None, semester: Optional[str] = None,
                 store: Store = Depends(get_store), _: Dict = Depends(get_current_user)):
    return send_result(CourseService(store).list({"programme_id": programme_id, "semester": semester}))


@app.get("/courses/timetable", tags=["Courses"])
def course_timetable(programme_id: Optional[str] = None, semester: Optional[str] = None,
                     store: Store = Depends(get_store), _: Dict = Depends(get_current_user)):
    return send_result(CourseService(store).timetable({"programme_id": programme_id, "semester": semester}))


@app.get("/courses/{course_id}", tags=["Courses"])
def get_course(course_id: str, store: Store = Depends(get_store), _: Dict = Depends(get_current_user)):
    return send_result(CourseService(store).get(course_id))


@app.get("/courses/{course_id}/enrollments", tags=["Courses"])
def course_enrollments(course_id: str, store: Store = Depends(get_store),
                       _: Dict = Depends(role_required(*STAFF))):
    return send_result(CourseService(store).enrollments(course_id))


@app.get("/courses/{course_id}/exams", tags=["Courses"])
def course_exams(course_id: str, store: Store = Depends(get_store), _: Dict = Depends(get_current_user)):
    return send_result(CourseService(store).exams(course_id))


@app.post("/courses", tags=["Courses"])
def create_course(body: Dict[str, Any] = Body(...), store: Store = Depends(get_store),
                  user: Dict = Depends(role_required(*STAFF))):
    return send_result(CourseService(store, _audit(store, user)).create(body), status.HTTP_201_CREATED)


@app.put("/courses/{course_id}", tags=["Courses"])
def update_course(course_id: str, body: Dict[str, Any] = Body(...), store: Store = Depends(get_store),
                  user: Dict = Depends(role_required(*STAFF))):
    return send_result(CourseService(store, _audit(store, user)).update(course_id, body))


@app.delete("/courses/{course_id}", tags=["Courses"])
def delete_course(course_id: str, store: Store = Depends(get_store),
                  user: Dict = Depends(role_required(*STAFF))):
    return send_result(CourseService(store, _audit(store, user)).delete(course_id))


# ─── EXAMS & MARKS ─────────────────────────────────────────────────────────
@app.get("/exams", tags=["Exams"])
def list_exams(course_id: Optional[str] = None, invigilator_id: Optional[str] = None,
               start_date: Optional[str] = None, end_date: Optional[str] = None,
               store: Store = Depends(get_store), _: Dict = Depends(get_current_user)):
    filters = {"course_id": course_id, "invigilator_id": invigilator_id,
               "start_date": start_date, "end_date": end_date}
    return send_result(ExamService(store).list(filters))


@app.get("/exams/stats", tags=["Exams"])
def exam_stats(store: Store = Depends(get_store), _: Dict = Depends(role_required(*STAFF))):
    return send_result(ExamService(store).stats())


@app.get("/exams/{exam_id}", tags=["Exams"])
def get_exam(exam_id: str, store: Store = Depends(get_store), _: Dict = Depends(get_current_user)):
    return send_result(ExamService(store).get(exam_id))


@app.post("/exams", tags=["Exams"])
def create_exam(body: Dict[str, Any] = Body(...), store: Store = Depends(get_store),
                user: Dict = Depends(role_required(*STAFF))):
    return send_result(ExamService(store, _audit(store, user)).create(body), status.HTTP_201_CREATED)


@app.put("/exams/{exam_id}", tags=["Exams"])
def update_exam(exam_id: str, body: Dict[str, Any] = Body(...), store: Store = Depends(get_store),
                user: Dict = Depends(role_required(*STAFF))):
    return send_result(ExamService(store, _audit(store, user)).update(exam_id, body))


@app.delete("/exams/{exam_id}", tags=["Exams"])
def delete_exam(exam_id: str, store: Store = Depends(get_store),
                user: Dict = Depends(role_required(*STAFF))):
    return send_result(ExamService(store, _audit(store, user)).delete(exam_id))


@app.get("/exams/{exam_id}/marks", tags=["Exams"])
def exam_marks(exam_id: str, store: Store = Depends(get_store), _: Dict = Depends(role_required(*STAFF))):
    return send_result(ExamService(store).marks(exam_id))


@app.post("/exams/{exam_id}/marks", tags=["Exams"])
def enter_marks(exam_id: str, body: MarksEntry, store: Store = Depends(get_store),
                user: Dict = Depends(role_required(*STAFF))):
    service = ExamService(store, _audit(store, user))
    data = body.model_dump(include={"marks_obtained", "entered_by"}, exclude_none=True)
    return send_result(service.enter_marks(exam_id, body.student_id, data))


@app.get("/students/{student_id}/results", tags=["Exams"])
def student_results(student_id: str, exam_id: Optional[str] = None, store: Store = Depends(get_store),
                    _: Dict = Depends(role_required(*STAFF))):
    return send_result(ExamService(store).student_results(student_id, exam_id))


# ─── NOTIFICATIONS ─────────────────────────────────────────────────────────
@app.get("/notifications/mine", tags=["Notifications"])
def my_notifications(store: Store = Depends(get_store), user: Dict = Depends(get_current_user)):
    return send_result(NotificationService(store).for_recipient(user["user_id"]))


@app.get("/notifications/unread-count", tags=["Notifications"])
def unread_notifications(store: Store = Depends(get_store), user: Dict = Depends(get_current_user)):
    return send_result(NotificationService(store).unread_count(user["user_id"]))


@app.get("/notifications/stats", tags=["Notifications"])
def notification_stats(store: Store = Depends(get_store), _: Dict = Depends(role_required(*STAFF))):
    return send_result(NotificationService(store).stats())


@app.get("/notifications", tags=["Notifications"])
def list_notifications(recipient: Optional[str] = None, type_: Optional[str] = Query(None, alias="type"),
                       status_: Optional[str] = Query(None, alias="status"),
                       store: Store = Depends(get_store), _: Dict = Depends(role_required(*STAFF))):
    filters = {"recipient": recipient, "type": type_, "status": status_}
    return send_result(NotificationService(store).list(filters))


@app.post("/notifications", tags=["Notifications"])
def create_notification(body: Dict[str, Any] = Body(...), store: Store = Depends(get_store),
                        user: Dict = Depends(role_required(*STAFF))):
    service = NotificationService(store, _audit(store, user))
    return send_result(service.create(body), status.HTTP_201_CREATED)


@app.post("/notifications/bulk", tags=["Notifications"])
def create_notifications(body: Any = Body(...), store: Store = Depends(get_store),
                         user: Dict = Depends(role_required(*STAFF))):
    service = NotificationService(store, _audit(store, user))
    return send_result(service.create_bulk(body), status.HTTP_201_CREATED)


@app.post("/notifications/broadcast", tags=["Notifications"])
def broadcast_notification(body: Broadcast, store: Store = Depends(get_store),
                           user: Dict = Depends(role_required(*STAFF))):
    service = NotificationService(store, _audit(store, user))
    result = service.notify_students(body.subject, body.body, body.type, body.criteria)
    return send_result(result, status.HTTP_201_CREATED)


@app.post("/notifications/{notification_id}/read", tags=["Notifications"])
def read_notification(notification_id: str, store: Store = Depends(get_store),
                      user: Dict = Depends(get_current_user)):
    service = NotificationService(store, _audit(store, user))
    found = service.get(notification_id)
    if not found["success"]:
        return send_result(found)
    if user["role"] not in STAFF and found["notification"]["recipient"] != user["user_id"]:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Insufficient role")
    return send_result(service.mark_read(notification_id))


@app.delete("/notifications/cleanup", tags=["Notifications"])
def cleanup_notifications(days_old: int = 30, store: Store = Depends(get_store),
                          user: Dict = Depends(role_required(*ADMIN))):
    return send_result(NotificationService(store, _audit(store, user)).cleanup(days_old))


# ─── DASHBOARD ─────────────────────────────────────────────────────────────
@app.get("/dashboard/stats", tags=["Dashboard"])
def dashboard_stats(store: Store = Depends(get_store), _: Dict = Depends(role_required(*STAFF))):
    return send_result(DashboardService(store).stats())


@app.get("/dashboard/students/{student_id}", tags=["Dashboard"])
def dashboard_student(student_id: str, store: Store = Depends(get_store),
                      _: Dict = Depends(role_required(*STAFF))):
    return send_result(DashboardService(store).student_stats(student_id))


@app.get("/dashboard/activity", tags=["Dashboard"])
def dashboard_activity(limit: int = 10, store: Store = Depends(get_store),
                       _: Dict = Depends(role_required(*STAFF))):
    return send_result(DashboardService(store).recent_activity(limit))


@app.get("/dashboard/trends", tags=["Dashboard"])
def dashboard_trends(days: int = 30, store: Store = Depends(get_store),
                     _: Dict = Depends(role_required(*STAFF))):
    return send_result(DashboardService(store).enrollment_trends(days))


@app.get("/dashboard/health", tags=["Dashboard"])
def dashboard_health(store: Store = Depends(get_store), _: Dict = Depends(role_required(*ADMIN))):
    return send_result(DashboardService(store).system_health())


# ─── AUDIT & EXPORT ────────────────────────────────────────────────────────
@app.get("/audit/logs", tags=["Audit"])
def audit_logs(sheet_name: Optional[str] = None, entity_id: Optional[str] = None,
               action: Optional[str] = None, user_id: Optional[str] = None,
               start_date: Optional[str] = None, end_date: Optional[str] = None,
               store: Store = Depends(get_store), _: Dict = Depends(role_required(*ADMIN))):
    filters = {"sheet_name": sheet_name, "entity_id": entity_id, "action": action,
               "user_id": user_id, "start_date": start_date, "end_date": end_date}
    return send_result(AuditTrail(store).get_audit_logs(filters))


@app.get("/export/{table_name}", tags=["Export"])
def export_table(table_name: str, store: Store = Depends(get_store),
                 _: Dict = Depends(role_required(*ADMIN))):
    table = store.table(table_name)
    if table is None:
        raise HTTPException(404, f"{table_name} sheet not found")
    headers = {"Content-Disposition": f'attachment; filename="{table_name}.xlsx"'}
    return StreamingResponse(
        table_to_xlsx(table),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers=headers,
    )


# ─── Uvicorn LAUNCH (DEV ONLY) ─────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=True
    )
