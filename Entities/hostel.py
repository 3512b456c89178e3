# Entities/hostel.py ─────────────────────────────────────────
"""Hostel rooms and the allocation of students to them."""
from typing import Any, Dict, List, Optional

from errors import Conflict, NotFound, ValidationError, as_result
from Entities.base import EntityService, Record
from Entities.students import StudentService
from Store.utils import generate_id, loose_equals, now_iso

ROOMS = "HostelRooms"
ALLOCATIONS = "HostelAllocations"


class HostelRoomService(EntityService):
    table_name = ROOMS
    key = "room_id"
    label = "Room"
    item = "room"
    items = "rooms"
    required = ("room_id", "hostel", "block", "floor", "room_no")
    filters = ("hostel", "status", "floor")

    def build(self, data: Record, now: str) -> Record:
        return {
            "room_id": data["room_id"],
            "hostel": data["hostel"],
            "block": data["block"],
            "floor": data["floor"],
            "room_no": data["room_no"],
            "bed_no": data.get("bed_no") or "",
            "capacity": data.get("capacity") or 1,
            "current_student_id": "",
            "status": "available",
            "allocated_on": "",
            "released_on": "",
            "amenities": data.get("amenities") or "",
            "rent_per_month": data.get("rent_per_month") or 0,
            "created_at": now,
            "updated_at": now,
        }


class HostelService:
    def __init__(self, store, audit=None):
        self.rooms = HostelRoomService(store, audit)
        self.store = store
        self.audit = self.rooms.audit
        self.students = StudentService(store, self.audit)

    def _active_allocation(self, student_id: str) -> Optional[Record]:
        for allocation in self.store.require(ALLOCATIONS).scan():
            if loose_equals(allocation["student_id"], student_id) and allocation["status"] == "active":
                return allocation
        return None

    @as_result
    def student_allocation(self, student_id: str) -> Record:
        return {"success": True, "allocation": self._active_allocation(student_id)}

    @as_result
    def allocations(self, filters: Optional[Dict[str, Any]] = None) -> Record:
        filters = filters or {}
        rows = self.store.require(ALLOCATIONS).where(
            student_id=filters.get("student_id") or None,
            room_id=filters.get("room_id") or None,
            status=filters.get("status") or None,
        )
        return {"success": True, "allocations": rows}

    @as_result
    def allocate(self, student_id: str, room_id: str, allocation_data: Optional[Record] = None) -> Record:
        if not student_id or not room_id:
            raise ValidationError("Missing required fields: student_id, room_id")
        allocation_data = allocation_data or {}
        rooms = self.store.require(ROOMS)
        allocations = self.store.require(ALLOCATIONS)

        with self.store.locked(ROOMS, ALLOCATIONS, self.students.table_name):
            room_found = rooms.find("room_id", room_id)
            if room_found is None:
                raise NotFound("Room not found")
            room = room_found.record
            if room["status"] != "available":
                raise Conflict("Room is not available for allocation")
            if self._active_allocation(student_id) is not None:
                raise Conflict("Student already has a room allocation")

            now = now_iso()
            new_allocation = allocations.append({
                "alloc_id": generate_id("ALLOC"),
                "student_id": student_id,
                "room_id": room_id,
                "allocated_by": allocation_data.get("allocated_by") or self.audit.actor,
                "allocated_on": now,
                "released_on": "",
                "reason": allocation_data.get("reason") or "Regular allocation",
                "status": "active",
                "created_at": now,
                "updated_at": now,
            })
            room = rooms.set_values(room_found, current_student_id=student_id,
                                    status="occupied", allocated_on=now, updated_at=now)
            self.students.set_hostel_alloc(student_id, new_allocation["alloc_id"])

        self.audit.log(ALLOCATIONS, new_allocation["alloc_id"], "create", None, new_allocation)
        return {"success": True, "allocation": new_allocation, "room": room}

    @as_result
    def deallocate(self, student_id: str, reason: str = "") -> Record:
        rooms = self.store.require(ROOMS)
        allocations = self.store.require(ALLOCATIONS)

        with self.store.locked(ROOMS, ALLOCATIONS, self.students.table_name):
            current = self._active_allocation(student_id)
            if current is None:
                raise NotFound("No active room allocation found for student")

            now = now_iso()
            alloc_found = allocations.find("alloc_id", current["alloc_id"])
            released = allocations.set_values(alloc_found, released_on=now, reason=reason or "Deallocated",
                                              status="inactive", updated_at=now)

            room_found = rooms.find("room_id", current["room_id"])
            if room_found is not None:
                rooms.set_values(room_found, current_student_id="", status="available",
                                 released_on=now, updated_at=now)
            self.students.set_hostel_alloc(student_id, "")

        self.audit.log(ALLOCATIONS, current["alloc_id"], "deallocate", current, released)
        return {"success": True, "allocation": released}

    @as_result
    def stats(self) -> Record:
        rooms: List[Record] = self.store.require(ROOMS).scan()
        allocations: List[Record] = self.store.require(ALLOCATIONS).scan()

        stats: Dict[str, Any] = {
            "total_rooms": len(rooms),
            "available_rooms": 0,
            "occupied_rooms": 0,
            "total_allocations": len(allocations),
            "active_allocations": sum(1 for a in allocations if a["status"] == "active"),
            "occupancy_rate": 0.0,
            "by_hostel": {},
            "by_block": {},
        }
        for room in rooms:
            status = room["status"]
            if status == "available":
                stats["available_rooms"] += 1
            elif status == "occupied":
                stats["occupied_rooms"] += 1
            for bucket, name in (("by_hostel", room["hostel"]), ("by_block", room["block"])):
                counts = stats[bucket].setdefault(str(name or "Unknown"),
                                                  {"total": 0, "available": 0, "occupied": 0})
                counts["total"] += 1
                if status in ("available", "occupied"):
                    counts[status] += 1

        if rooms:
            stats["occupancy_rate"] = round(stats["occupied_rooms"] / len(rooms) * 100, 1)
        return {"success": True, "stats": stats}
