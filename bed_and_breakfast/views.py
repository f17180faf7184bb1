import logging
from datetime import date

from django.contrib import messages
from django.contrib.auth import authenticate, get_user_model, login, logout
from django.db import DatabaseError
from django.shortcuts import get_object_or_404, redirect, render
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_protect
from django.views.decorators.http import require_GET, require_http_methods
from rest_framework import status, viewsets
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .calendar_service import (
    CalendarSubmissionError,
    build_calendar,
    month_bounds,
    reconcile_blocks,
    shift_month,
    snapshot_key,
)
from .forms import AdminReservationForm, DateRangeForm, LoginForm, ReservationForm
from .helpers import admin_required, admin_return_url, calendar_url, check_source, server_error
from .models import Room
from .serializers import (
    AvailabilityResponseSerializer,
    DateRangeSerializer,
    RoomAvailabilitySerializer,
    RoomSerializer,
)

logger = logging.getLogger(__name__)

# session keys
DRAFT_KEY = "reservation"
SUMMARY_KEY = "reservation_id"


def _date_range_error(form):
    errors = form.non_field_errors()
    return errors[0] if errors else "Can't parse dates"


def home(request):
    return render(request, "bed_and_breakfast/home.html")


def about(request):
    return render(request, "bed_and_breakfast/about.html")


def contact(request):
    return render(request, "bed_and_breakfast/contact.html")


def room_page(request, slug):
    room = get_object_or_404(Room, slug=slug)
    return render(request, "bed_and_breakfast/room.html", {"room": room})


@require_http_methods(["GET", "POST"])
def search_availability(request):
    if request.method != "POST":
        return render(request, "bed_and_breakfast/search_availability.html")

    form = DateRangeForm(request.POST)
    if not form.is_valid():
        messages.error(request, _date_range_error(form))
        return redirect("search_availability")

    start_date = form.cleaned_data["start_date"]
    end_date = form.cleaned_data["end_date"]

    try:
        rooms = services.available_rooms(start_date, end_date)
    except DatabaseError:
        logger.exception("Availability search failed for %s - %s", start_date, end_date)
        messages.error(request, "Can't get available rooms")
        return redirect("home")

    if not rooms:
        messages.error(request, "No availability")
        return redirect("search_availability")

    request.session[DRAFT_KEY] = {
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
    }
    return render(request, "bed_and_breakfast/choose_room.html", {
        "rooms": rooms,
        "start_date": start_date,
        "end_date": end_date,
    })


@method_decorator(csrf_protect, name="dispatch")
class AvailabilityJsonView(APIView):
    """Check a single room for a date range, answered as JSON.

    Posted from the room pages with the form's CSRF token; there is no
    login, so the token is checked here instead of by DRF authentication.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = RoomAvailabilitySerializer(data=request.data)
        if not serializer.is_valid():
            return self._respond(ok=False, message="Invalid dates or room id")

        data = serializer.validated_data
        room_id = data["room_id"]
        start_date = data["start_date"]
        end_date = data["end_date"]
        echo = {
            "room_id": str(room_id),
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
        }

        try:
            if not Room.objects.filter(pk=room_id).exists():
                return self._respond(ok=False, message="Room not found", **echo)
            available = services.is_room_available(room_id, start_date, end_date)
        except DatabaseError:
            logger.exception("Availability check failed for room %s", room_id)
            return self._respond(ok=False, message="Error connecting to database", **echo)

        message = "" if available else "Room is not available for the selected dates"
        return self._respond(ok=available, message=message, **echo)

    def _respond(self, ok, message, room_id="", start_date="", end_date=""):
        payload = AvailabilityResponseSerializer({
            "ok": ok,
            "message": message,
            "room_id": room_id,
            "start_date": start_date,
            "end_date": end_date,
        })
        return Response(payload.data)


class RoomViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Room.objects.all()
    serializer_class = RoomSerializer

    def list(self, request):
        """List rooms, only the available ones when a date range is given"""
        params = request.query_params
        if "start_date" not in params and "end_date" not in params:
            rooms = self.get_queryset()
        else:
            dates = DateRangeSerializer(data=params)
            if not dates.is_valid():
                return Response(dates.errors, status=status.HTTP_400_BAD_REQUEST)
            rooms = services.available_rooms(
                dates.validated_data["start_date"],
                dates.validated_data["end_date"],
            )

        serializer = self.get_serializer(rooms, many=True)
        return Response(serializer.data)


@require_GET
def choose_room(request, room_id):
    draft = request.session.get(DRAFT_KEY)
    if not draft:
        messages.error(request, "Can't get reservation from session")
        return redirect("home")

    draft["room_id"] = room_id
    request.session[DRAFT_KEY] = draft
    return redirect("make_reservation")


@require_GET
def book_room(request):
    """Start a reservation from a room page after a successful availability check."""
    try:
        room_id = int(request.GET.get("id", ""))
    except ValueError:
        messages.error(request, "Missing query parameter")
        return redirect("search_availability")

    dates = DateRangeForm(request.GET)
    if not dates.is_valid():
        messages.error(request, _date_range_error(dates))
        return redirect("search_availability")

    try:
        room = Room.objects.get(pk=room_id)
    except Room.DoesNotExist:
        messages.error(request, "Can't get room from database")
        return redirect("search_availability")

    request.session[DRAFT_KEY] = {
        "start_date": dates.cleaned_data["start_date"].isoformat(),
        "end_date": dates.cleaned_data["end_date"].isoformat(),
        "room_id": room.pk,
    }
    return redirect("make_reservation")


@require_http_methods(["GET", "POST"])
def make_reservation(request):
    if request.method != "POST":
        draft = request.session.get(DRAFT_KEY)
        if not draft or "room_id" not in draft:
            messages.error(request, "Can't get reservation from session")
            return redirect("home")

        try:
            room = Room.objects.get(pk=draft["room_id"])
        except Room.DoesNotExist:
            messages.error(request, "Can't find room with given id")
            return redirect("home")

        return render(request, "bed_and_breakfast/make_reservation.html", {
            "form": ReservationForm(),
            "room": room,
            "start_date": draft["start_date"],
            "end_date": draft["end_date"],
        })

    dates = DateRangeForm(request.POST)
    if not dates.is_valid():
        messages.error(request, _date_range_error(dates))
        return redirect("home")

    try:
        room_id = int(request.POST.get("room_id", ""))
    except ValueError:
        messages.error(request, "Invalid room id")
        return redirect("home")

    try:
        room = Room.objects.get(pk=room_id)
    except Room.DoesNotExist:
        messages.error(request, "Can't find room")
        return redirect("home")

    start_date = dates.cleaned_data["start_date"]
    end_date = dates.cleaned_data["end_date"]

    form = ReservationForm(request.POST)
    if not form.is_valid():
        return render(request, "bed_and_breakfast/make_reservation.html", {
            "form": form,
            "room": room,
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
        })

    try:
        reservation = services.make_reservation(room.pk, start_date, end_date, **form.cleaned_data)
    except services.RoomUnavailableError:
        messages.error(request, "Room is not available for the selected dates")
        return redirect("search_availability")
    except DatabaseError:
        logger.exception("Could not store reservation for room %s", room.pk)
        messages.error(request, "Can't insert reservation into the database")
        return redirect("home")

    request.session.pop(DRAFT_KEY, None)
    request.session[SUMMARY_KEY] = reservation.pk
    return redirect("reservation_summary")


@require_GET
def reservation_summary(request):
    reservation_id = request.session.pop(SUMMARY_KEY, None)
    if reservation_id is None:
        messages.error(request, "Can't get reservation from session")
        return redirect("home")

    try:
        reservation = services.get_reservation(reservation_id)
    except services.ReservationNotFoundError:
        messages.error(request, "Can't get reservation from session")
        return redirect("home")

    return render(request, "bed_and_breakfast/reservation_summary.html", {"reservation": reservation})


def _authenticate_by_email(request, email, password):
    account = get_user_model().objects.filter(email__iexact=email).first()
    if account is None:
        return None
    return authenticate(request, username=account.get_username(), password=password)


@require_http_methods(["GET", "POST"])
def login_view(request):
    if request.method != "POST":
        return render(request, "bed_and_breakfast/login.html", {"form": LoginForm()})

    form = LoginForm(request.POST)
    if not form.is_valid():
        return render(request, "bed_and_breakfast/login.html", {"form": form})

    user = _authenticate_by_email(request, form.cleaned_data["email"], form.cleaned_data["password"])
    if user is None:
        messages.error(request, "Invalid login credentials")
        return redirect("login")

    # login() rotates the session key
    login(request, user)
    messages.success(request, "Logged in successfully")
    return redirect("admin_dashboard")


@require_GET
def logout_view(request):
    logout(request)
    return redirect("login")


@admin_required
def admin_dashboard(request):
    return render(request, "bed_and_breakfast/admin/dashboard.html")


def _reservation_list(request, src, query, title):
    try:
        reservations = list(query())
    except DatabaseError as exc:
        return server_error(request, exc)

    return render(request, "bed_and_breakfast/admin/reservations.html", {
        "reservations": reservations,
        "src": src,
        "title": title,
    })


@admin_required
def admin_new_reservations(request):
    return _reservation_list(request, "new", services.new_reservations, "New Reservations")


@admin_required
def admin_all_reservations(request):
    return _reservation_list(request, "all", services.all_reservations, "All Reservations")


@admin_required
@require_http_methods(["GET", "POST"])
def admin_show_reservation(request, src, reservation_id):
    check_source(src)

    try:
        reservation = services.get_reservation(reservation_id)
    except services.ReservationNotFoundError:
        messages.error(request, "Reservation not found")
        return redirect(admin_return_url(src))

    if request.method == "POST":
        year = request.POST.get("year", "")
        month = request.POST.get("month", "")
        form = AdminReservationForm(request.POST, instance=reservation)
        if form.is_valid():
            try:
                form.save()
            except DatabaseError as exc:
                return server_error(request, exc)
            messages.success(request, "Reservation successfully updated")
            return redirect(admin_return_url(src, year, month))
    else:
        year = request.GET.get("y", "")
        month = request.GET.get("m", "")
        form = AdminReservationForm(instance=reservation)

    return render(request, "bed_and_breakfast/admin/show_reservation.html", {
        "reservation": reservation,
        "form": form,
        "src": src,
        "year": year,
        "month": month,
    })


@admin_required
@require_GET
def admin_process_reservation(request, src, reservation_id):
    check_source(src)

    try:
        services.mark_processed(reservation_id, True)
    except services.ReservationNotFoundError:
        messages.error(request, "Reservation not found")
    except DatabaseError as exc:
        return server_error(request, exc)
    else:
        messages.success(request, "Reservation marked as processed")

    return redirect(admin_return_url(src, request.GET.get("y", ""), request.GET.get("m", "")))


@admin_required
@require_GET
def admin_delete_reservation(request, src, reservation_id):
    check_source(src)

    try:
        services.delete_reservation(reservation_id)
    except services.ReservationNotFoundError:
        messages.error(request, "Reservation not found")
    except DatabaseError as exc:
        return server_error(request, exc)
    else:
        messages.success(request, "Reservation deleted")

    return redirect(admin_return_url(src, request.GET.get("y", ""), request.GET.get("m", "")))


def _parse_month(params):
    year = int(params.get("y", ""))
    month = int(params.get("m", ""))
    first_day, _ = month_bounds(year, month)
    # the page links to both neighbouring months
    shift_month(first_day, -1)
    shift_month(first_day, 1)
    return year, month


@admin_required
@require_http_methods(["GET", "POST"])
def admin_reservations_calendar(request):
    if request.method == "POST":
        return _save_calendar(request)

    today = date.today()
    year, month = today.year, today.month
    if request.GET.get("y"):
        try:
            year, month = _parse_month(request.GET)
        except ValueError:
            messages.error(request, "Invalid month")
            return redirect(calendar_url())

    try:
        month_calendar = build_calendar(year, month)
    except DatabaseError as exc:
        return server_error(request, exc)

    for room_month in month_calendar.rooms:
        request.session[snapshot_key(room_month.room.pk)] = room_month.block_map

    return render(request, "bed_and_breakfast/admin/calendar.html", {"calendar": month_calendar})


def _save_calendar(request):
    try:
        year, month = _parse_month(request.POST)
    except ValueError:
        messages.error(request, "Invalid month")
        return redirect(calendar_url())

    try:
        snapshots = {}
        for room in Room.objects.all():
            snapshot = request.session.get(snapshot_key(room.pk))
            if snapshot is not None:
                snapshots[room.pk] = snapshot

        reconcile_blocks(snapshots, request.POST)
    except (CalendarSubmissionError, services.RoomUnavailableError) as exc:
        messages.error(request, str(exc))
        return redirect(calendar_url(year, month))
    except DatabaseError as exc:
        return server_error(request, exc)

    messages.success(request, "Changes saved")
    return redirect(calendar_url(year, month))
