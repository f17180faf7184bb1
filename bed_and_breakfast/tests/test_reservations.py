from concurrent.futures import ThreadPoolExecutor
from datetime import date
from unittest import mock, skipUnless

from django.conf import settings
from django.core import mail
from django.db import DatabaseError, connection
from django.db.models.query import QuerySet
from django.test import TestCase, TransactionTestCase, override_settings

from bed_and_breakfast import services
from bed_and_breakfast.mail import mail_queue
from bed_and_breakfast.models import Reservation, Restriction, Room, RoomRestriction


GUEST = {
    'first_name': 'John',
    'last_name': 'Smith',
    'email': 'john@example.com',
    'phone': '555-0100',
}


class MakeReservationTestCase(TestCase):
    """Test the reservation workflow"""

    def setUp(self):
        self.room = Room.objects.create(room_name="General's Quarters", slug="generals-quarters")

    def test_reservation_creates_restriction(self):
        """A reservation is stored with a matching reservation-type restriction"""
        reservation = services.make_reservation(
            self.room.pk, date(2050, 1, 10), date(2050, 1, 12), **GUEST
        )

        restriction = RoomRestriction.objects.get(reservation=reservation)
        self.assertEqual(restriction.room, self.room)
        self.assertEqual(restriction.start_date, date(2050, 1, 10))
        self.assertEqual(restriction.end_date, date(2050, 1, 12))
        self.assertEqual(restriction.restriction_id, Restriction.RESERVATION)
        self.assertFalse(restriction.is_owner_block)
        self.assertFalse(reservation.processed)
        self.assertEqual(reservation.nights, 2)

    def test_reservation_round_trip(self):
        """A stored reservation reads back with the same fields and its room"""
        created = services.make_reservation(
            self.room.pk, date(2050, 2, 1), date(2050, 2, 3), **GUEST
        )

        fetched = services.get_reservation(created.pk)

        for field, value in GUEST.items():
            with self.subTest(field=field):
                self.assertEqual(getattr(fetched, field), value)
        self.assertEqual(fetched.start_date, date(2050, 2, 1))
        self.assertEqual(fetched.end_date, date(2050, 2, 3))
        self.assertEqual(fetched.room.room_name, "General's Quarters")

    def test_back_to_back_reservations(self):
        """Check-out day can be the next guest's check-in day"""
        services.make_reservation(self.room.pk, date(2050, 3, 1), date(2050, 3, 5), **GUEST)
        services.make_reservation(self.room.pk, date(2050, 3, 5), date(2050, 3, 8), **GUEST)

        self.assertEqual(Reservation.objects.count(), 2)
        self.assertEqual(RoomRestriction.objects.count(), 2)

    def test_overlapping_reservation_rejected(self):
        """No reservation is written when the room is already taken"""
        services.make_reservation(self.room.pk, date(2050, 4, 10), date(2050, 4, 15), **GUEST)

        overlapping = [
            (date(2050, 4, 8), date(2050, 4, 11)),
            (date(2050, 4, 12), date(2050, 4, 13)),
            (date(2050, 4, 14), date(2050, 4, 20)),
            (date(2050, 4, 1), date(2050, 4, 30)),
        ]
        for start_date, end_date in overlapping:
            with self.subTest(start_date=start_date, end_date=end_date):
                with self.assertRaises(services.RoomUnavailableError):
                    services.make_reservation(self.room.pk, start_date, end_date, **GUEST)

        self.assertEqual(Reservation.objects.count(), 1)
        self.assertEqual(RoomRestriction.objects.count(), 1)

    def test_owner_block_prevents_reservation(self):
        RoomRestriction.objects.create(
            room=self.room,
            start_date=date(2050, 5, 2),
            end_date=date(2050, 5, 3),
            restriction_id=Restriction.OWNER_BLOCK,
        )

        with self.assertRaises(services.RoomUnavailableError):
            services.make_reservation(self.room.pk, date(2050, 5, 1), date(2050, 5, 4), **GUEST)
        self.assertFalse(Reservation.objects.exists())

    def test_invalid_date_range(self):
        with self.assertRaises(services.InvalidDateRangeError):
            services.make_reservation(self.room.pk, date(2050, 6, 2), date(2050, 6, 2), **GUEST)
        self.assertFalse(Reservation.objects.exists())

    def test_unknown_room(self):
        with self.assertRaises(Room.DoesNotExist):
            services.make_reservation(self.room.pk + 100, date(2050, 6, 1), date(2050, 6, 2), **GUEST)
        self.assertFalse(RoomRestriction.objects.exists())

    @override_settings(OWNER_EMAIL='owner@example.com')
    def test_notifications_sent_after_commit(self):
        """Guest and owner are both mailed once the reservation commits"""
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            services.make_reservation(self.room.pk, date(2050, 7, 1), date(2050, 7, 4), **GUEST)
        mail_queue.join()

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(len(mail.outbox), 2)
        recipients = sorted(message.to[0] for message in mail.outbox)
        self.assertEqual(recipients, ['john@example.com', 'owner@example.com'])
        for message in mail.outbox:
            with self.subTest(to=message.to):
                self.assertIn('2050-07-01', message.body)
                self.assertIn('2050-07-04', message.body)
                self.assertNotIn('[%body%]', message.body)

    def test_no_notification_for_rejected_reservation(self):
        services.make_reservation(self.room.pk, date(2050, 8, 1), date(2050, 8, 3), **GUEST)

        with self.captureOnCommitCallbacks() as callbacks:
            with self.assertRaises(services.RoomUnavailableError):
                services.make_reservation(self.room.pk, date(2050, 8, 2), date(2050, 8, 4), **GUEST)

        self.assertEqual(callbacks, [])


class ReservationAdministrationTestCase(TestCase):
    """Test listing, processing and deleting reservations"""

    def setUp(self):
        self.room = Room.objects.create(room_name="Major's Suite", slug="majors-suite")
        self.reservations = [
            services.make_reservation(
                self.room.pk, date(2051, 1, day), date(2051, 1, day + 1), **GUEST
            )
            for day in range(1, 11)
        ]
        self.missing_id = max(r.pk for r in self.reservations) + 1

    def test_new_and_all_reservations(self):
        services.mark_processed(self.reservations[0].pk)

        self.assertEqual(services.all_reservations().count(), 10)
        self.assertEqual(services.new_reservations().count(), 9)
        self.assertNotIn(self.reservations[0], services.new_reservations())

    def test_reservations_ordered_by_start_date(self):
        start_dates = [r.start_date for r in services.all_reservations()]

        self.assertEqual(start_dates, sorted(start_dates))

    def test_mark_processed(self):
        reservation = self.reservations[3]

        services.mark_processed(reservation.pk)
        reservation.refresh_from_db()
        self.assertTrue(reservation.processed)

        services.mark_processed(reservation.pk, False)
        reservation.refresh_from_db()
        self.assertFalse(reservation.processed)

    def test_mark_processed_unknown_reservation(self):
        with self.assertRaises(services.ReservationNotFoundError):
            services.mark_processed(self.missing_id)

    def test_delete_reservation(self):
        reservation = self.reservations[0]

        services.delete_reservation(reservation.pk)

        self.assertFalse(Reservation.objects.filter(pk=reservation.pk).exists())
        with self.assertRaises(services.ReservationNotFoundError):
            services.get_reservation(reservation.pk)

    def test_delete_unknown_reservation(self):
        """Deleting an id that does not exist fails and leaves the table unchanged"""
        with self.assertRaises(services.ReservationNotFoundError):
            services.delete_reservation(self.missing_id)

        self.assertEqual(Reservation.objects.count(), 10)

    def test_delete_keeps_restriction(self):
        """The restriction row outlives its reservation, so the dates stay blocked"""
        reservation = self.reservations[4]

        services.delete_reservation(reservation.pk)

        restriction = RoomRestriction.objects.get(reservation_id=reservation.pk)
        self.assertEqual(restriction.start_date, reservation.start_date)
        self.assertFalse(
            services.is_room_available(self.room.pk, reservation.start_date, reservation.end_date)
        )


class StorageErrorTestCase(TestCase):

    def setUp(self):
        self.room = Room.objects.create(room_name="General's Quarters", slug="generals-quarters")

    def test_available_rooms_propagates_database_error(self):
        """A failing query is an error, never an empty (no availability) result"""
        with mock.patch.object(QuerySet, '_fetch_all', side_effect=DatabaseError('connection lost')):
            with self.assertRaises(DatabaseError):
                services.available_rooms(date(2050, 1, 1), date(2050, 1, 2))

    @skipUnless(connection.vendor == 'sqlite', 'SQLite connection options')
    def test_sqlite_lock_wait_is_bounded(self):
        """SQLite bounds the wait for the write lock, taken when a transaction begins"""
        options = connection.settings_dict['OPTIONS']

        self.assertEqual(options['timeout'], settings.DB_TIMEOUT)
        self.assertEqual(options['transaction_mode'], 'IMMEDIATE')


class ConcurrentReservationTestCase(TransactionTestCase):
    """Test simultaneous bookings of the same room and dates"""

    def setUp(self):
        # flushed between transactional tests, so not guaranteed by the data migration
        Restriction.objects.get_or_create(pk=Restriction.RESERVATION, defaults={'restriction_name': 'Reservation'})
        Restriction.objects.get_or_create(pk=Restriction.OWNER_BLOCK, defaults={'restriction_name': 'Owner Block'})
        self.room = Room.objects.create(room_name="General's Quarters", slug="generals-quarters")
        self.start_date = date(2050, 9, 1)
        self.end_date = date(2050, 9, 4)

    def tearDown(self):
        mail_queue.join()

    def book(self, index):
        try:
            services.make_reservation(
                self.room.pk,
                self.start_date,
                self.end_date,
                first_name='Guest',
                last_name=f'Number {index}',
                email=f'guest{index}@example.com',
            )
            return 'booked'
        except services.RoomUnavailableError:
            return 'unavailable'
        finally:
            connection.close()

    def test_only_one_concurrent_booking_succeeds(self):
        """Of several simultaneous bookings exactly one is stored"""
        attempts = 5

        with ThreadPoolExecutor(max_workers=attempts) as executor:
            results = list(executor.map(self.book, range(attempts)))

        self.assertEqual(results.count('booked'), 1)
        self.assertEqual(results.count('unavailable'), attempts - 1)
        self.assertEqual(Reservation.objects.filter(room=self.room).count(), 1)
        self.assertEqual(RoomRestriction.objects.filter(room=self.room).count(), 1)
