from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register(r"rooms", views.RoomViewSet)

urlpatterns = [
    path("", views.home, name="home"),
    path("about", views.about, name="about"),
    path("contact", views.contact, name="contact"),
    path("generals-quarters", views.room_page, {"slug": "generals-quarters"}, name="generals_quarters"),
    path("majors-suite", views.room_page, {"slug": "majors-suite"}, name="majors_suite"),

    path("search-availability", views.search_availability, name="search_availability"),
    path("search-availability-json", views.AvailabilityJsonView.as_view(), name="search_availability_json"),
    path("choose-room/<int:room_id>", views.choose_room, name="choose_room"),
    path("book-room", views.book_room, name="book_room"),
    path("make-reservation", views.make_reservation, name="make_reservation"),
    path("reservation-summary", views.reservation_summary, name="reservation_summary"),

    path("auth/login", views.login_view, name="login"),
    path("auth/logout", views.logout_view, name="logout"),

    path("admin/dashboard", views.admin_dashboard, name="admin_dashboard"),
    path("admin/new-reservations", views.admin_new_reservations, name="admin_new_reservations"),
    path("admin/all-reservations", views.admin_all_reservations, name="admin_all_reservations"),
    path("admin/reservations-calendar", views.admin_reservations_calendar, name="admin_reservations_calendar"),
    path(
        "admin/reservations/<str:src>/<int:reservation_id>",
        views.admin_show_reservation,
        name="admin_show_reservation",
    ),
    path(
        "admin/process-reservation/<str:src>/<int:reservation_id>",
        views.admin_process_reservation,
        name="admin_process_reservation",
    ),
    path(
        "admin/delete-reservation/<str:src>/<int:reservation_id>",
        views.admin_delete_reservation,
        name="admin_delete_reservation",
    ),

    path("api/", include(router.urls)),
]
