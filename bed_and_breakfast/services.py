"""Room availability queries and the reservation workflow."""

import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Exists, OuterRef

from .mail import MailData, mail_queue
from .models import Reservation, Restriction, Room, RoomRestriction

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"


class InvalidDateRangeError(ValueError):
    """Raised when a date range does not start strictly before it ends."""


class RoomUnavailableError(Exception):
    """Raised when a room already has a restriction overlapping the requested dates."""


class ReservationNotFoundError(Exception):
    """Raised when no reservation matches the given id."""


def check_date_range(start_date, end_date):
    if start_date >= end_date:
        raise InvalidDateRangeError("start date must be before end date")


def overlapping_restrictions(start_date, end_date):
    """Restrictions whose [start, end) span intersects [start_date, end_date)."""
    return RoomRestriction.objects.filter(
        start_date__lt=end_date,
        end_date__gt=start_date,
    )


def is_room_available(room_id, start_date, end_date):
    check_date_range(start_date, end_date)
    return not overlapping_restrictions(start_date, end_date).filter(room_id=room_id).exists()


def available_rooms(start_date, end_date):
    """Return every room with no restriction overlapping the range.

    An empty list means no availability; storage failures raise
    ``DatabaseError`` instead.
    """
    check_date_range(start_date, end_date)
    overlap = Exists(overlapping_restrictions(start_date, end_date).filter(room=OuterRef("pk")))
    return list(Room.objects.annotate(has_overlap=overlap).filter(has_overlap=False).order_by("room_name"))


def make_reservation(room_id, start_date, end_date, *, first_name, last_name, email, phone=""):
    """Create a reservation together with its restriction row.

    Both rows are written in one transaction while the room row is locked,
    and availability is re-checked inside it. Notification mails are queued
    once the transaction commits.
    """
    check_date_range(start_date, end_date)

    try:
        with transaction.atomic():
            room = Room.objects.select_for_update().get(pk=room_id)

            if overlapping_restrictions(start_date, end_date).filter(room=room).exists():
                raise RoomUnavailableError(f"{room.room_name} is not available for the selected dates")

            reservation = Reservation.objects.create(
                first_name=first_name,
                last_name=last_name,
                email=email,
                phone=phone,
                start_date=start_date,
                end_date=end_date,
                room=room,
            )
            RoomRestriction.objects.create(
                start_date=start_date,
                end_date=end_date,
                room=room,
                reservation=reservation,
                restriction_id=Restriction.RESERVATION,
            )
            transaction.on_commit(lambda: send_reservation_notifications(reservation))
    except IntegrityError as exc:
        # lost a race against a concurrent booking (no-overlap constraint)
        logger.warning("Conflicting restriction for room %s: %s", room_id, exc)
        raise RoomUnavailableError("Room is not available for the selected dates") from exc

    logger.info(
        "Reservation %s created for room %s from %s to %s",
        reservation.pk,
        room.pk,
        start_date,
        end_date,
    )
    return reservation


def send_reservation_notifications(reservation):
    start = reservation.start_date.strftime(DATE_FORMAT)
    end = reservation.end_date.strftime(DATE_FORMAT)
    room_name = reservation.room.room_name

    mail_queue.put(
        MailData(
            to=reservation.email,
            subject="Reservation confirmation",
            content=(
                "<strong>Reservation confirmation</strong><br>"
                f"Dear {reservation.first_name}, <br>"
                f"This is to confirm your reservation of the {room_name} from {start} to {end}."
            ),
            template="basic.html",
        )
    )
    mail_queue.put(
        MailData(
            to=settings.OWNER_EMAIL,
            subject="Reservation notification",
            content=(
                "<strong>Reservation notification</strong><br>"
                f"A reservation has been made for the {room_name} from {start} to {end} "
                f"by {reservation.first_name} {reservation.last_name} ({reservation.email})."
            ),
            template="basic.html",
        )
    )


def get_reservation(reservation_id):
    try:
        return Reservation.objects.select_related("room").get(pk=reservation_id)
    except Reservation.DoesNotExist:
        raise ReservationNotFoundError(f"Reservation {reservation_id} not found") from None


def new_reservations():
    return Reservation.objects.filter(processed=False).select_related("room").order_by("start_date")


def all_reservations():
    return Reservation.objects.select_related("room").order_by("start_date")


def mark_processed(reservation_id, processed=True):
    updated = Reservation.objects.filter(pk=reservation_id).update(processed=processed)
    if not updated:
        raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
    logger.info("Reservation %s processed=%s", reservation_id, processed)


def delete_reservation(reservation_id):
    """Delete the reservation row only; its restriction row is kept."""
    deleted, _ = Reservation.objects.filter(pk=reservation_id).delete()
    if not deleted:
        raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
    logger.info("Reservation %s deleted", reservation_id)
