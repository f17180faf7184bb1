import functools
import logging

from django.contrib import messages
from django.http import Http404, HttpResponseServerError
from django.shortcuts import redirect
from django.urls import reverse

logger = logging.getLogger(__name__)

# list views an admin can act from; decides where to go back afterwards
ADMIN_SOURCES = ("new", "all", "calendar")


def server_error(request, exc):
    logger.exception("Server error on %s %s: %s", request.method, request.path, exc)
    return HttpResponseServerError("Internal Server Error")


def admin_required(view):
    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            messages.error(request, "You first have to log in")
            return redirect("login")
        return view(request, *args, **kwargs)

    return wrapper


def check_source(src):
    if src not in ADMIN_SOURCES:
        raise Http404(f"Unknown reservations list {src!r}")
    return src


def calendar_url(year=None, month=None):
    url = reverse("admin_reservations_calendar")
    if year:
        url = f"{url}?y={year}&m={month}"
    return url


def admin_return_url(src, year="", month=""):
    """Where to send the admin after acting on a reservation."""
    if year:
        return calendar_url(year, month)
    if src == "calendar":
        return calendar_url()
    return reverse(f"admin_{src}_reservations")
