"""Admin reservations calendar.

Builds the per-room day grid for a month and applies the owner-block
changes submitted from it. The block map served with the grid is kept in
the session and used as the "before" state when the form comes back:
a served block whose ``remove_block_<room>_<date>`` flag is missing is
deleted, and every ``add_block_<room>_<date>`` field not already in the
snapshot becomes a new one-day block.
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from django.db import transaction

from .models import Restriction, Room, RoomRestriction
from .services import RoomUnavailableError, is_room_available

logger = logging.getLogger(__name__)

ADD_BLOCK_PREFIX = "add_block_"
REMOVE_BLOCK_PREFIX = "remove_block_"


class CalendarSubmissionError(ValueError):
    """Raised when a submitted calendar field cannot be parsed."""


@dataclass
class DayCell:
    date: date
    reservation_id: int = 0
    block_id: int = 0

    @property
    def key(self):
        return self.date.isoformat()


@dataclass
class RoomMonth:
    room: Room
    reservation_map: dict = field(default_factory=dict)
    block_map: dict = field(default_factory=dict)

    @property
    def days(self):
        return [
            DayCell(date.fromisoformat(key), self.reservation_map[key], self.block_map[key])
            for key in self.reservation_map
        ]


@dataclass
class CalendarMonth:
    first_day: date
    last_day: date
    rooms: list = field(default_factory=list)

    @property
    def year(self):
        return self.first_day.year

    @property
    def month(self):
        return self.first_day.month

    @property
    def days_in_month(self):
        return self.last_day.day

    @property
    def previous(self):
        return shift_month(self.first_day, -1)

    @property
    def next(self):
        return shift_month(self.first_day, 1)


def month_bounds(year, month):
    """First and last day of a month. Raises ValueError for an invalid month."""
    first_day = date(year, month, 1)
    _, days = calendar.monthrange(year, month)
    return first_day, first_day.replace(day=days)


def shift_month(day, months):
    """First day of the month ``months`` away from ``day``'s month."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def snapshot_key(room_id):
    return f"block_map_{room_id}"


def restrictions_for_room(room_id, first_day, last_day):
    return RoomRestriction.objects.filter(
        room_id=room_id,
        start_date__lte=last_day,
        end_date__gt=first_day,
    ).order_by("start_date")


def build_room_month(room, first_day, last_day):
    room_month = RoomMonth(room=room)
    day = first_day
    while day <= last_day:
        room_month.reservation_map[day.isoformat()] = 0
        room_month.block_map[day.isoformat()] = 0
        day += timedelta(days=1)

    for restriction in restrictions_for_room(room.pk, first_day, last_day):
        if restriction.reservation_id:
            day = max(restriction.start_date, first_day)
            end = min(restriction.end_date, last_day + timedelta(days=1))
            while day < end:
                room_month.reservation_map[day.isoformat()] = restriction.reservation_id
                day += timedelta(days=1)
        else:
            # owner blocks are one day long
            key = restriction.start_date.isoformat()
            if key in room_month.block_map:
                room_month.block_map[key] = restriction.pk

    return room_month


def build_calendar(year, month):
    first_day, last_day = month_bounds(year, month)
    rooms = Room.objects.order_by("room_name")
    return CalendarMonth(
        first_day=first_day,
        last_day=last_day,
        rooms=[build_room_month(room, first_day, last_day) for room in rooms],
    )


def parse_block_field(name, prefix):
    """Split ``<prefix><room_id>_<YYYY-MM-DD>`` into (room_id, date)."""
    room_part, _, date_part = name[len(prefix):].partition("_")
    try:
        return int(room_part), date.fromisoformat(date_part)
    except ValueError:
        raise CalendarSubmissionError(f"Malformed calendar field {name!r}") from None


def reconcile_blocks(snapshots, form_data):
    """Apply an admin calendar submission.

    ``snapshots`` maps room id to the block map served with the calendar
    (ISO date -> block id, 0 for none). ``form_data`` is the submitted
    form. Returns ``(added, removed)`` counts.
    """
    rooms = {room.pk for room in Room.objects.all()}

    removals = []
    for room_id in sorted(rooms):
        snapshot = snapshots.get(room_id)
        if snapshot is None:
            logger.warning("No block snapshot for room %s, nothing will be removed", room_id)
            continue
        for key, block_id in snapshot.items():
            if not block_id:
                continue
            if f"{REMOVE_BLOCK_PREFIX}{room_id}_{key}" not in form_data:
                removals.append(block_id)

    additions = []
    for name in form_data:
        if not name.startswith(ADD_BLOCK_PREFIX):
            continue
        room_id, day = parse_block_field(name, ADD_BLOCK_PREFIX)
        if room_id not in rooms:
            raise CalendarSubmissionError(f"Unknown room {room_id} in {name!r}")
        if snapshots.get(room_id, {}).get(day.isoformat()):
            continue
        additions.append((room_id, day))

    with transaction.atomic():
        removed, _ = RoomRestriction.objects.filter(
            pk__in=removals,
            reservation__isnull=True,
            restriction_id=Restriction.OWNER_BLOCK,
        ).delete()

        for room_id, day in additions:
            end = day + timedelta(days=1)
            if not is_room_available(room_id, day, end):
                raise RoomUnavailableError(f"Room {room_id} is already unavailable on {day.isoformat()}")
            RoomRestriction.objects.create(
                start_date=day,
                end_date=end,
                room_id=room_id,
                restriction_id=Restriction.OWNER_BLOCK,
            )

    logger.info("Calendar saved: %d block(s) added, %d removed", len(additions), removed)
    return len(additions), removed
