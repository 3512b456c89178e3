# models.py ── request bodies for the API
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class Credentials(BaseModel):
    email: str
    password: str


class UserCreate(BaseModel):
    username: str = ""
    email: str = ""
    password: str = ""
    role: str = ""
    display_name: Optional[str] = None
    notes: Optional[str] = None


class Register(BaseModel):
    username: str = ""
    email: str = ""
    password: str = ""
    display_name: Optional[str] = None


class UserUpdate(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: Optional[str] = None
    password: Optional[str] = None
    active: Optional[bool] = None
    notes: Optional[str] = None


class PasswordChange(BaseModel):
    old_password: str
    new_password: str


class AdmissionStatus(BaseModel):
    status: str
    verifier_notes: str = ""
    assigned_officer_id: str = ""


class AdmitStudent(BaseModel):
    student_data: Dict[str, Any] = Field(default_factory=dict)


class Allocation(BaseModel):
    student_id: str
    room_id: str
    reason: Optional[str] = None
    allocated_by: Optional[str] = None


class Deallocation(BaseModel):
    student_id: str
    reason: str = ""


class Payment(BaseModel):
    student_id: str = ""
    amount: Any = None
    payment_mode: str = ""
    admission_id: Optional[str] = None
    currency: Optional[str] = None
    gateway_ref: Optional[str] = None
    notes: Optional[str] = None
    generate_receipt: bool = False
    receipt_file_id: Optional[str] = None


class MarksEntry(BaseModel):
    student_id: str = ""
    marks_obtained: Any = None
    entered_by: Optional[str] = None


class Broadcast(BaseModel):
    subject: str
    body: str
    type: str = "announcement"
    criteria: Dict[str, Any] = Field(default_factory=dict)
