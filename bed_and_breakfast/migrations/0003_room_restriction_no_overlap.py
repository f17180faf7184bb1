"""Storage-level guard against double bookings.

On PostgreSQL two restrictions for the same room may not overlap. The
'[)' range matches the application overlap test: a span ending on day D
does not collide with one starting on day D. Other backends rely on the
locked re-check in the reservation workflow.
"""

from django.db import migrations

ADD_CONSTRAINT = [
    "CREATE EXTENSION IF NOT EXISTS btree_gist",
    """
    ALTER TABLE bed_and_breakfast_roomrestriction
        ADD CONSTRAINT room_restriction_no_overlap
        EXCLUDE USING gist (room_id WITH =, daterange(start_date, end_date, '[)') WITH &&)
    """,
]

DROP_CONSTRAINT = "ALTER TABLE bed_and_breakfast_roomrestriction DROP CONSTRAINT IF EXISTS room_restriction_no_overlap"


def add_constraint(apps, schema_editor):
    if schema_editor.connection.vendor != "postgresql":
        return
    for statement in ADD_CONSTRAINT:
        schema_editor.execute(statement)


def drop_constraint(apps, schema_editor):
    if schema_editor.connection.vendor == "postgresql":
        schema_editor.execute(DROP_CONSTRAINT)


class Migration(migrations.Migration):
    dependencies = [
        ("bed_and_breakfast", "0002_seed_restrictions"),
    ]

    operations = [
        migrations.RunPython(add_constraint, drop_constraint),
    ]
