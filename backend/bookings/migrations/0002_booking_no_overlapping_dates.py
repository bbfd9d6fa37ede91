from django.db import migrations

ADD_CONSTRAINT = [
    "CREATE EXTENSION IF NOT EXISTS btree_gist",
    """
ALTER TABLE bookings_booking
    ADD CONSTRAINT booking_no_overlapping_dates
    EXCLUDE USING gist (
        storage_location_id WITH =,
        daterange(start_date, end_date, '[)') WITH &&
    )
    WHERE (status <> 'CANCELLED')
""",
]

DROP_CONSTRAINT = "ALTER TABLE bookings_booking DROP CONSTRAINT IF EXISTS booking_no_overlapping_dates"


def add_overlap_constraint(apps, schema_editor):
    # Range exclusion constraints only exist on PostgreSQL.
    if schema_editor.connection.vendor != "postgresql":
        return
    for statement in ADD_CONSTRAINT:
        schema_editor.execute(statement)


def drop_overlap_constraint(apps, schema_editor):
    if schema_editor.connection.vendor != "postgresql":
        return
    schema_editor.execute(DROP_CONSTRAINT)


class Migration(migrations.Migration):
    dependencies = [
        ("bookings", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(add_overlap_constraint, drop_overlap_constraint),
    ]
