from dataclasses import dataclass, field
from typing import Optional

from courtslot.services.errors import ValidationError


@dataclass
class TimeSlotRequest:
    court_id: int
    booking_date: str
    start: str
    end: str
    price: Optional[int] = None
    number_of_players: int = 1
    sport: Optional[str] = None
    booking_for_user_id: Optional[int] = None
    booking_for_user_name: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict):
        missing = [k for k in ("court_id", "booking_date", "start_time", "end_time") if not data.get(k)]
        if missing:
            raise ValidationError(f"{', '.join(missing)} required")
        try:
            court_id = int(data["court_id"])
            price = int(data["price"]) if data.get("price") not in (None, "") else None
            players = int(data.get("number_of_players") or 1)
            for_user = int(data["booking_for_user_id"]) if data.get("booking_for_user_id") else None
        except (TypeError, ValueError):
            raise ValidationError("court_id, price, number_of_players must be integers")

        return cls(
            court_id=court_id,
            booking_date=str(data["booking_date"]),
            start=str(data["start_time"]),
            end=str(data["end_time"]),
            price=price,
            number_of_players=players,
            sport=(data.get("sport") or "").strip() or None,
            booking_for_user_id=for_user,
            booking_for_user_name=(data.get("booking_for_user_name") or "").strip() or None,
            notes=(data.get("notes") or "").strip() or None,
        )


class Outcome:
    """Result of a successful operation. `effects` run after commit, `warnings` collect their failures."""

    outcome = None

    def payload(self):
        return {}

    def to_dict(self):
        data = {"outcome": self.outcome}
        data.update(self.payload())
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data


@dataclass
class Admitted(Outcome):
    item: object
    cart: object
    overbooked: bool = False
    effects: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    outcome = "admitted"

    def payload(self):
        return {
            "cart_transaction_id": self.cart.id,
            "cart_item": self.item.to_dict(),
            "overbooked": self.overbooked,
        }


@dataclass
class Waitlisted(Outcome):
    entry: object
    effects: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    outcome = "waitlisted"

    @property
    def position(self) -> int:
        return self.entry.position

    def payload(self):
        return {"position": self.position, "waitlist_entry": self.entry.to_dict()}


@dataclass
class Committed(Outcome):
    cart: object
    bookings: list
    successor_cart: object = None
    effects: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    outcome = "committed"

    def payload(self):
        return {
            "transaction": self.cart.to_dict(with_items=False),
            "bookings": [b.to_dict() for b in self.bookings],
            "successor_cart_id": self.successor_cart.id if self.successor_cart else None,
        }


@dataclass
class ApprovalResult(Outcome):
    bookings: list
    already: bool = False
    effects: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    @property
    def outcome(self):
        return "already_approved" if self.already else "approved"

    def payload(self):
        return {"bookings": [b.to_dict() for b in self.bookings]}


@dataclass
class RejectionResult(Outcome):
    bookings: list
    already: bool = False
    promoted: list = field(default_factory=list)
    effects: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    @property
    def outcome(self):
        return "already_rejected" if self.already else "rejected"

    def payload(self):
        return {
            "bookings": [b.to_dict() for b in self.bookings],
            "promoted_waitlist_ids": [e.id for e in self.promoted],
        }


@dataclass
class CheckedIn(Outcome):
    booking: object
    players_checked_in: int
    effects: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    outcome = "checked_in"

    def payload(self):
        return {
            "booking": self.booking.to_dict(),
            "players_checked_in": self.players_checked_in,
            "number_of_players": self.booking.number_of_players,
        }


@dataclass
class PaymentRecorded(Outcome):
    cart: object
    effects: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    outcome = "paid"

    def payload(self):
        return {"transaction": self.cart.to_dict()}


@dataclass
class Cancelled(Outcome):
    entity: str
    entity_id: int
    promoted: list = field(default_factory=list)
    effects: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    outcome = "cancelled"

    def payload(self):
        return {
            "entity": self.entity,
            "id": self.entity_id,
            "promoted_waitlist_ids": [e.id for e in self.promoted],
        }


@dataclass
class SweepReport(Outcome):
    name: str
    expired_ids: list = field(default_factory=list)
    promoted: list = field(default_factory=list)
    effects: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    outcome = "swept"

    def payload(self):
        return {
            "sweep": self.name,
            "expired": len(self.expired_ids),
            "expired_ids": list(self.expired_ids),
            "promoted_waitlist_ids": [e.id for e in self.promoted],
        }


@dataclass
class AttendanceUpdated(Outcome):
    booking: object
    effects: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    outcome = "attendance_updated"

    def payload(self):
        return {"booking": self.booking.to_dict()}
