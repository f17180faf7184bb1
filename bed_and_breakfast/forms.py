from django import forms

from .models import Reservation

DATE_INPUT_FORMATS = ["%Y-%m-%d"]

REQUIRED = "This field cannot be empty"
MIN_LENGTH = "This field must be at least %(limit_value)d characters long"
INVALID_EMAIL = "Invalid email address"


class DateRangeForm(forms.Form):
    """Start/end dates as posted by the search and booking forms."""

    start_date = forms.DateField(input_formats=DATE_INPUT_FORMATS)
    end_date = forms.DateField(input_formats=DATE_INPUT_FORMATS)

    def clean(self):
        cleaned_data = super().clean()
        start_date = cleaned_data.get("start_date")
        end_date = cleaned_data.get("end_date")

        if start_date and end_date and end_date <= start_date:
            raise forms.ValidationError("End date must be after start date")

        return cleaned_data


class ReservationForm(forms.ModelForm):
    """Guest details submitted on the make-reservation page."""

    first_name = forms.CharField(
        min_length=2,
        max_length=255,
        error_messages={"required": REQUIRED, "min_length": MIN_LENGTH},
    )
    last_name = forms.CharField(max_length=255, error_messages={"required": REQUIRED})
    email = forms.EmailField(error_messages={"required": REQUIRED, "invalid": INVALID_EMAIL})
    phone = forms.CharField(max_length=50, required=False)

    class Meta:
        model = Reservation
        fields = ["first_name", "last_name", "email", "phone"]


class AdminReservationForm(ReservationForm):
    """Guest details edited from the admin dashboard."""

    last_name = forms.CharField(
        min_length=2,
        max_length=255,
        error_messages={"required": REQUIRED, "min_length": MIN_LENGTH},
    )
    phone = forms.CharField(max_length=50, error_messages={"required": REQUIRED})


class LoginForm(forms.Form):
    email = forms.EmailField(error_messages={"required": REQUIRED, "invalid": INVALID_EMAIL})
    password = forms.CharField(strip=False, widget=forms.PasswordInput, error_messages={"required": REQUIRED})
