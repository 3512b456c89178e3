# Entities/notifications.py ──────────────────────────────────
"""
Notifications addressed to a recipient id (a student or a user). A
notification starts as `sent` and becomes `read`; old read ones are pruned
by `cleanup`.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from errors import ErpError, ValidationError, as_result
from Entities.base import EntityService, Record
from Entities.students import StudentService
from Store.table import Located
from Store.utils import parse_timestamp

RECENT_DAYS = 7
RECENT_LIMIT = 10


class NotificationService(EntityService):
    table_name = "Notifications"
    key = "notification_id"
    label = "Notification"
    item = "notification"
    items = "notifications"
    id_prefix = "NOTIF"
    required = ("recipient", "type", "subject", "body")
    filters = ("recipient", "type", "status")

    def build(self, data: Record, now: str) -> Record:
        return {
            "notification_id": data["notification_id"],
            "recipient": data["recipient"],
            "type": data["type"],
            "subject": data["subject"],
            "body": data["body"],
            "sent_on": now,
            "status": "sent",
            "response": "",
        }

    @as_result
    def for_recipient(self, recipient: str) -> Record:
        notifications = self._table().where(recipient=recipient)
        notifications.sort(key=_sent_key, reverse=True)
        return {"success": True, "notifications": notifications}

    @as_result
    def mark_read(self, notification_id: str) -> Record:
        return {"success": True, "notification": self._modify(notification_id, {"status": "read"})}

    @as_result
    def unread_count(self, recipient: str) -> Record:
        unread = [n for n in self._table().where(recipient=recipient) if n["status"] != "read"]
        return {"success": True, "unread_count": len(unread)}

    def _bulk(self, items: Any) -> Record:
        if not isinstance(items, list):
            raise ValidationError("Notifications data must be an array")
        created: List[Record] = []
        failed: List[Dict[str, Any]] = []
        for data in items:
            try:
                created.append(self._insert(data if isinstance(data, dict) else {}))
            except ErpError as exc:
                failed.append({"data": data, "error": exc.message})
        return {
            "success": True,
            "created": len(created),
            "errors": len(failed),
            "notifications": created,
            "failed_notifications": failed,
        }

    @as_result
    def create_bulk(self, items: Any) -> Record:
        """Create each notification independently; failures are reported, not raised."""
        return self._bulk(items)

    @as_result
    def notify_students(self, subject: str, body: str, type_: str = "announcement",
                        criteria: Optional[Record] = None) -> Record:
        students = StudentService(self.store, self.audit)._select(criteria)
        return self._bulk([
            {"recipient": s["student_id"], "type": type_, "subject": subject, "body": body}
            for s in students
        ])

    @as_result
    def cleanup(self, days_old: int = 30) -> Record:
        """Delete read notifications sent more than `days_old` days ago."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=days_old)
        table = self._table()
        removed = []
        with table.lock:
            for index, notification in reversed(list(enumerate(table.scan()))):
                sent = parse_timestamp(notification["sent_on"])
                if notification["status"] == "read" and sent is not None and sent < cutoff:
                    table.delete(Located(index, notification))
                    removed.append(notification)

        for notification in removed:
            self.audit.log(self.table_name, notification[self.key], "delete", notification, None)
        return {
            "success": True,
            "deleted_count": len(removed),
            "message": f"Cleaned up {len(removed)} old notifications",
        }

    @as_result
    def stats(self) -> Record:
        since = datetime.now(timezone.utc) - timedelta(days=RECENT_DAYS)
        stats: Dict[str, Any] = {"total": 0, "sent": 0, "read": 0, "by_type": {}, "recent_activity": []}
        for notification in self._table().scan():
            stats["total"] += 1
            if notification["status"] in ("sent", "read"):
                stats[notification["status"]] += 1
            kind = str(notification["type"] or "unknown")
            stats["by_type"][kind] = stats["by_type"].get(kind, 0) + 1
            sent = parse_timestamp(notification["sent_on"])
            if sent is not None and sent >= since:
                stats["recent_activity"].append({
                    "id": notification["notification_id"],
                    "type": notification["type"],
                    "subject": notification["subject"],
                    "sent_on": notification["sent_on"],
                })

        stats["recent_activity"].sort(key=_sent_key, reverse=True)
        stats["recent_activity"] = stats["recent_activity"][:RECENT_LIMIT]
        return {"success": True, "stats": stats}


def _sent_key(notification: Record) -> float:
    sent = parse_timestamp(notification.get("sent_on"))
    return sent.timestamp() if sent else 0.0
