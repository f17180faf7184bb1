from django.db import models


class Room(models.Model):
    room_name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=100, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["room_name"]

    def __str__(self):
        return self.room_name


class Restriction(models.Model):
    """Kind of a room restriction. Rows are seeded by migration."""

    RESERVATION = 1
    OWNER_BLOCK = 2

    restriction_name = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.restriction_name


class Reservation(models.Model):
    first_name = models.CharField(max_length=255)
    last_name = models.CharField(max_length=255)
    email = models.EmailField()
    phone = models.CharField(max_length=50, blank=True)
    start_date = models.DateField()
    end_date = models.DateField()  # exclusive
    room = models.ForeignKey(Room, on_delete=models.PROTECT, related_name="reservations")
    processed = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["start_date"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_date__gt=models.F("start_date")),
                name="reservation_valid_dates",
            ),
        ]

    def __str__(self):
        return f"{self.first_name} {self.last_name} - {self.room_id} ({self.start_date} to {self.end_date})"

    @property
    def nights(self):
        return (self.end_date - self.start_date).days


class RoomRestriction(models.Model):
    """An occupied [start_date, end_date) span for a room.

    Either tied to a reservation, or an owner block entered from the
    admin calendar (no reservation). Deleting a reservation leaves its
    restriction in place, so the reference carries no DB constraint.
    """

    start_date = models.DateField()
    end_date = models.DateField()  # exclusive
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name="restrictions")
    reservation = models.ForeignKey(
        Reservation,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name="restrictions",
    )
    restriction = models.ForeignKey(Restriction, on_delete=models.PROTECT, related_name="room_restrictions")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["room", "start_date", "end_date"], name="restriction_room_dates_idx"),
        ]

    def __str__(self):
        return f"{self.restriction_id} on room {self.room_id} ({self.start_date} to {self.end_date})"

    @property
    def is_owner_block(self):
        return self.reservation_id is None
