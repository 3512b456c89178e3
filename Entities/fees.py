# Entities/fees.py ───────────────────────────────────────────
"""Fee structures (FeeMaster), payments (Transactions) and receipts."""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import pandas as pd

from errors import ValidationError, as_result
from Entities.base import EntityService, Record
from Store.utils import generate_id, now_iso, parse_timestamp, to_number, validate_required

TRANSACTIONS = "Transactions"
RECEIPTS = "Receipts"
DEFAULT_CURRENCY = "INR"


class FeeStructureService(EntityService):
    table_name = "FeeMaster"
    key = "fee_id"
    label = "Fee structure"
    item = "fee_structure"
    items = "fee_structures"
    required = ("fee_id", "component", "amount")
    filters = ("programme_id", "category")

    def build(self, data: Record, now: str) -> Record:
        return {
            "fee_id": data["fee_id"],
            "programme_id": data.get("programme_id") or data.get("course") or "",
            "component": data["component"],
            "amount": data["amount"],
            "currency": data.get("currency") or DEFAULT_CURRENCY,
            "effective_from": data.get("effective_from") or now,
            "effective_to": data.get("effective_to") or "",
            "category": data.get("category") or "Tuition",
            "created_at": now,
            "updated_at": now,
        }

    def effective(self, filters: Optional[Record] = None, at: Optional[datetime] = None):
        """Structures matching `filters` whose effective window contains `at` (default: now)."""
        at = at or datetime.now(timezone.utc)
        current = []
        for fee in self._select(filters):
            start = parse_timestamp(fee.get("effective_from"))
            end = parse_timestamp(fee.get("effective_to"))
            if start and at < start:
                continue
            if end and at > end:
                continue
            current.append(fee)
        return current

    @as_result
    def list(self, filters: Optional[Record] = None) -> Record:
        return {"success": True, self.items: self.effective(filters)}


class FeeService:
    def __init__(self, store, audit=None):
        self.structures = FeeStructureService(store, audit)
        self.store = store
        self.audit = self.structures.audit

    def _receipt(self, data: Record) -> Record:
        table = self.store.require(RECEIPTS)
        now = now_iso()
        with table.lock:
            receipt = table.append({
                "receipt_id": generate_id("RCP"),
                "txn_id": data["txn_id"],
                "issued_by": data.get("issued_by") or self.audit.actor,
                "issued_on": data.get("issued_on") or now,
                "pdf_drive_file_id": data.get("pdf_drive_file_id") or "",
                "email_sent": bool(data.get("email_sent")),
                "created_at": now,
            })
        self.audit.log(RECEIPTS, receipt["receipt_id"], "create", None, receipt)
        return receipt

    @as_result
    def create_payment(self, data: Record) -> Record:
        missing = validate_required(data, ("student_id", "amount", "payment_mode"))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if to_number(data["amount"]) <= 0:
            raise ValidationError("Amount must be a positive number")

        table = self.store.require(TRANSACTIONS)
        now = now_iso()
        created_by = data.get("created_by") or self.audit.actor
        with table.lock:
            transaction = table.append({
                "txn_id": generate_id("TXN"),
                "student_id": data["student_id"],
                "admission_id": data.get("admission_id") or "",
                "date": now,
                "amount": data["amount"],
                "currency": data.get("currency") or DEFAULT_CURRENCY,
                "payment_mode": data["payment_mode"],
                "gateway_ref": data.get("gateway_ref") or "",
                "payment_status": "completed",
                "receipt_id": data.get("receipt_id") or "",
                "created_by": created_by,
                "created_at": now,
                "notes": data.get("notes") or "",
            })

        receipt = None
        if data.get("generate_receipt"):
            receipt = self._receipt({
                "txn_id": transaction["txn_id"],
                "issued_by": created_by,
                "issued_on": now,
                "pdf_drive_file_id": data.get("receipt_file_id"),
            })
            with table.lock:
                found = table.find("txn_id", transaction["txn_id"])
                transaction = table.set_values(found, receipt_id=receipt["receipt_id"])

        self.audit.log(TRANSACTIONS, transaction["txn_id"], "create", None, transaction)
        return {"success": True, "transaction": transaction, "receipt": receipt}

    @as_result
    def payments(self, filters: Optional[Dict[str, Any]] = None) -> Record:
        filters = filters or {}
        rows = self.store.require(TRANSACTIONS).where(
            student_id=filters.get("student_id") or None,
            payment_mode=filters.get("payment_mode") or None,
            payment_status=filters.get("payment_status") or None,
        )
        return {"success": True, "payments": rows}

    @as_result
    def receipts(self, filters: Optional[Dict[str, Any]] = None) -> Record:
        filters = filters or {}
        rows = self.store.require(RECEIPTS).where(
            txn_id=filters.get("txn_id") or None,
            issued_by=filters.get("issued_by") or None,
        )
        return {"success": True, "receipts": rows}

    @as_result
    def student_summary(self, student_id: str) -> Record:
        payments = self.store.require(TRANSACTIONS).where(student_id=student_id)
        total_paid = sum(to_number(p["amount"]) for p in payments)
        dated = [p["date"] for p in payments if parse_timestamp(p["date"])]
        last_payment = max(dated, key=parse_timestamp) if dated else None

        total_required = sum(to_number(f["amount"]) for f in self.structures.effective())
        return {"success": True, "summary": {
            "student_id": student_id,
            "total_paid": total_paid,
            "total_pending": max(0.0, total_required - total_paid),
            "payments": payments,
            "last_payment_date": last_payment,
            "payment_count": len(payments),
        }}

    @as_result
    def stats(self) -> Record:
        df = pd.DataFrame(self.store.require(TRANSACTIONS).scan())
        if df.empty:
            return {"success": True, "stats": {
                "total_collected": 0.0, "total_transactions": 0,
                "by_payment_mode": {}, "monthly_collection": {},
            }}

        df["amount"] = pd.to_numeric(df["amount"], errors="coerce").fillna(0.0)
        df["payment_mode"] = df["payment_mode"].replace("", "unknown")
        by_mode = df.groupby("payment_mode")["amount"].sum().to_dict()

        months = pd.to_datetime(df["date"], errors="coerce", utc=True)
        monthly = (
            df.assign(month=months.dt.strftime("%Y-%m"))
              .dropna(subset=["month"])
              .groupby("month")["amount"]
              .sum()
              .sort_index()
              .to_dict()
        )
        return {"success": True, "stats": {
            "total_collected": float(df["amount"].sum()),
            "total_transactions": int(len(df)),
            "by_payment_mode": {str(k): float(v) for k, v in by_mode.items()},
            "monthly_collection": {str(k): float(v) for k, v in monthly.items()},
        }}
