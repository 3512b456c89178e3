# Auth/users.py ──────────────────────────────────────────────
"""
Identity & credential service on top of the Users table.

Public methods return tagged results ({"success": True, ...} or
{"success": False, "error": ..., "code": ...}); the private helpers raise.
"""
import logging
from typing import Any, Dict, List, Optional

from Audit.audit import AuditTrail
from Auth.security import hash_password, needs_rehash, verify_password
from errors import Conflict, Inactive, InvalidCredential, NotFound, ValidationError, as_result
from Store.schema import SENSITIVE_COLUMNS, USERS_TABLE
from Store.table import Located, Store, Table
from Store.utils import generate_id, now_iso, validate_required

logger = logging.getLogger(__name__)

USER_ROLES = ("admin", "staff", "student", "hostel_warden")
REQUIRED_FIELDS = ("username", "email", "password", "role")
PROFILE_FIELDS = ("user_id", "username", "email", "display_name", "role")


def profile(user: Dict[str, Any]) -> Dict[str, Any]:
    """The reduced view handed back by login / create."""
    return {k: user.get(k, "") for k in PROFILE_FIELDS}


def public(user: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in user.items() if k not in SENSITIVE_COLUMNS and k != "password"}


def is_active(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


class UserService:
    def __init__(self, store: Store, audit: Optional[AuditTrail] = None):
        self.store = store
        self.audit = audit or AuditTrail(store)

    # ─── helpers ─────────────────────────────────────────────────────────
    def _table(self) -> Table:
        return self.store.require(USERS_TABLE)

    def _locate(self, table: Table, user_id: str) -> Located:
        found = table.find("user_id", user_id)
        if found is None:
            raise NotFound("User not found")
        return found

    @staticmethod
    def _check_role(role: Any) -> None:
        if role not in USER_ROLES:
            raise ValidationError("Invalid role")

    # ─── operations ──────────────────────────────────────────────────────
    @as_result
    def login(self, email: str, password: str) -> Dict[str, Any]:
        table = self._table()
        with table.lock:
            found = table.find("email", email)
            if found is None:
                raise NotFound("User not found")
            user = found.record
            if not is_active(user.get("active")):
                raise Inactive("Account is inactive")
            if not verify_password(password, user.get("hashed_password")):
                raise InvalidCredential("Invalid password")

            values = {"last_login": now_iso()}
            if needs_rehash(user["hashed_password"]):
                logger.info("Upgrading password hash for %s", user["user_id"])
                values["hashed_password"] = hash_password(password)
            user = table.set_values(found, **values)

        self.audit.log(USERS_TABLE, user["user_id"], "login", None, {"user_id": user["user_id"]})
        logger.info("Login %s (%s)", user["user_id"], user["role"])
        return {"success": True, "user": profile(user)}

    @as_result
    def create_user(self, data: Dict[str, Any]) -> Dict[str, Any]:
        missing = validate_required(data, REQUIRED_FIELDS)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        self._check_role(data["role"])

        table = self._table()
        with table.lock:
            if table.find("email", data["email"]) is not None:
                raise Conflict("User with this email already exists")

            now = now_iso()
            new_user = {
                "user_id": generate_id("USR"),
                "username": data["username"],
                "email": data["email"],
                "display_name": data.get("display_name") or data["username"],
                "role": data["role"],
                "hashed_password": hash_password(data["password"]),
                "auth_provider": "local",
                "last_login": "",
                "active": True,
                "created_at": now,
                "updated_at": now,
                "notes": data.get("notes") or "",
            }
            table.append(new_user)

        self.audit.log(USERS_TABLE, new_user["user_id"], "create", None, public(new_user))
        return {"success": True, "user": profile(new_user)}

    @as_result
    def get_user(self, user_id: str) -> Dict[str, Any]:
        found = self._locate(self._table(), user_id)
        return {"success": True, "user": public(found.record)}

    @as_result
    def update_user(self, user_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        patch = dict(patch)
        patch.pop("user_id", None)
        password = patch.pop("password", None)
        patch.pop("hashed_password", None)
        if "role" in patch:
            self._check_role(patch["role"])

        table = self._table()
        with table.lock:
            found = self._locate(table, user_id)
            current = found.record
            if "email" in patch and patch["email"] != current["email"]:
                other = table.find("email", patch["email"])
                if other is not None and other.record["user_id"] != user_id:
                    raise Conflict("User with this email already exists")

            updated = {**current, **patch, "updated_at": now_iso()}
            if password:
                updated["hashed_password"] = hash_password(password)
            updated = table.update(found, updated)

        self.audit.log(USERS_TABLE, user_id, "update", current, updated)
        return {"success": True, "user": public(updated)}

    @as_result
    def delete_user(self, user_id: str) -> Dict[str, Any]:
        table = self._table()
        with table.lock:
            found = self._locate(table, user_id)
            table.set_values(found, active=False, updated_at=now_iso())

        self.audit.log(USERS_TABLE, user_id, "delete", None, {"user_id": user_id})
        return {"success": True}

    @as_result
    def change_password(self, user_id: str, old_password: str, new_password: str) -> Dict[str, Any]:
        table = self._table()
        with table.lock:
            found = self._locate(table, user_id)
            if not verify_password(old_password, found.record.get("hashed_password")):
                raise InvalidCredential("Current password is incorrect")
            if not new_password:
                raise ValidationError("Missing required fields: new_password")
            table.set_values(found, hashed_password=hash_password(new_password), updated_at=now_iso())

        self.audit.log(USERS_TABLE, user_id, "password_change", None, {"user_id": user_id})
        return {"success": True}

    @as_result
    def get_all_users(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        filters = filters or {}
        role = filters.get("role")
        active = filters.get("active")

        users: List[Dict[str, Any]] = []
        for user in self._table().scan():
            if role and user.get("role") != role:
                continue
            if active is not None and is_active(user.get("active")) != is_active(active):
                continue
            users.append(public(user))
        return {"success": True, "users": users}
