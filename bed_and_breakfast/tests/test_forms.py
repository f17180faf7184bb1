from django.test import SimpleTestCase

from bed_and_breakfast.forms import AdminReservationForm, DateRangeForm, ReservationForm


class DateRangeFormTestCase(SimpleTestCase):

    def test_valid_range(self):
        form = DateRangeForm({'start_date': '2050-01-01', 'end_date': '2050-01-02'})

        self.assertTrue(form.is_valid())

    def test_invalid_ranges(self):
        invalid_data = [
            {'start_date': '2050-01-02', 'end_date': '2050-01-02'},
            {'start_date': '2050-01-03', 'end_date': '2050-01-02'},
            {'start_date': '01/02/2050', 'end_date': '2050-01-04'},
            {'start_date': '2050-01-02'},
        ]
        for data in invalid_data:
            with self.subTest(data=data):
                self.assertFalse(DateRangeForm(data).is_valid())


class ReservationFormTestCase(SimpleTestCase):
    """Test the guest detail validation messages"""

    def setUp(self):
        self.data = {
            'first_name': 'John',
            'last_name': 'Smith',
            'email': 'john@example.com',
            'phone': '',
        }

    def test_phone_is_optional(self):
        self.assertTrue(ReservationForm(self.data).is_valid())

    def test_error_messages(self):
        cases = [
            ('first_name', '', 'This field cannot be empty'),
            ('first_name', 'J', 'This field must be at least 2 characters long'),
            ('last_name', '', 'This field cannot be empty'),
            ('email', 'not-an-email', 'Invalid email address'),
            ('email', '', 'This field cannot be empty'),
        ]
        for field, value, message in cases:
            with self.subTest(field=field, value=value):
                form = ReservationForm({**self.data, field: value})
                self.assertFalse(form.is_valid())
                self.assertEqual(form.errors[field], [message])

    def test_admin_form_is_stricter(self):
        form = AdminReservationForm({**self.data, 'last_name': 'S'})

        self.assertFalse(form.is_valid())
        self.assertEqual(form.errors['last_name'], ['This field must be at least 2 characters long'])
        self.assertEqual(form.errors['phone'], ['This field cannot be empty'])
