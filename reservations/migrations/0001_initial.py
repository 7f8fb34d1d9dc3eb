import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models

import model_utils.fields


def _base_fields():
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        (
            "created",
            model_utils.fields.AutoCreatedField(
                db_index=True,
                default=django.utils.timezone.now,
                editable=False,
                verbose_name="created",
            ),
        ),
        (
            "modified",
            model_utils.fields.AutoLastModifiedField(
                db_index=True,
                default=django.utils.timezone.now,
                editable=False,
                verbose_name="modified",
            ),
        ),
        ("meta", models.JSONField(blank=True, default=dict, verbose_name="meta")),
    ]


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Building",
            fields=[
                *_base_fields(),
                ("code", models.CharField(max_length=32, unique=True)),
                ("name", models.CharField(blank=True, max_length=255)),
                (
                    "timezone",
                    models.CharField(default="UTC", help_text="IANA timezone name", max_length=64),
                ),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="ConferenceCall",
            fields=[
                *_base_fields(),
                ("name", models.CharField(blank=True, max_length=255)),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="ReservationSeries",
            fields=[
                *_base_fields(),
                ("pattern", models.JSONField(default=dict)),
                ("unique_id", models.CharField(blank=True, db_index=True, max_length=255)),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="Room",
            fields=[
                *_base_fields(),
                ("code", models.CharField(max_length=32)),
                ("name", models.CharField(blank=True, max_length=255)),
                ("capacity", models.PositiveIntegerField(default=1)),
                (
                    "building",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="rooms",
                        to="reservations.building",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("building", "code"), name="unique_room_per_building"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Reservation",
            fields=[
                *_base_fields(),
                ("start_date", models.DateField(db_index=True, verbose_name="start date")),
                ("start_time", models.TimeField(verbose_name="start time")),
                ("end_date", models.DateField(verbose_name="end date")),
                ("end_time", models.TimeField(verbose_name="end time")),
                ("timezone", models.CharField(default="UTC", max_length=64, verbose_name="timezone")),
                (
                    "occurrence_index",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="1-based index within the series, 0 for single reservations",
                    ),
                ),
                (
                    "original_date",
                    models.DateField(
                        blank=True,
                        help_text="Date the recurrence pattern assigned to this occurrence",
                        null=True,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("confirmed", "Confirmed"),
                            ("conflict", "Room Conflict"),
                            ("cancelled", "Cancelled"),
                            ("rejected", "Rejected"),
                        ],
                        db_index=True,
                        default="confirmed",
                        max_length=16,
                    ),
                ),
                (
                    "reservable_type",
                    models.CharField(
                        choices=[("room", "Room"), ("resource", "Resource")],
                        default="room",
                        max_length=16,
                    ),
                ),
                ("name", models.CharField(blank=True, max_length=255)),
                ("comments", models.TextField(blank=True)),
                ("location_summary", models.TextField(blank=True)),
                ("attendees", models.JSONField(blank=True, default=list)),
                ("requested_by", models.EmailField(blank=True, max_length=254)),
                ("unique_id", models.CharField(blank=True, db_index=True, max_length=255)),
                ("sequence", models.PositiveIntegerField(default=0)),
                (
                    "backup_building",
                    models.ForeignKey(
                        blank=True,
                        help_text="Building of the requested room when the occurrence could not be allocated",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="reservations.building",
                    ),
                ),
                (
                    "building",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="reservations",
                        to="reservations.building",
                    ),
                ),
                (
                    "conference_call",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="reservations",
                        to="reservations.conferencecall",
                    ),
                ),
                (
                    "series",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="reservations",
                        to="reservations.reservationseries",
                    ),
                ),
            ],
            options={
                "ordering": ("start_date", "start_time", "id"),
            },
        ),
        migrations.CreateModel(
            name="RoomAllocation",
            fields=[
                *_base_fields(),
                ("comments", models.TextField(blank=True)),
                (
                    "reservation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="room_allocations",
                        to="reservations.reservation",
                    ),
                ),
                (
                    "room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                        to="reservations.room",
                    ),
                ),
            ],
            options={
                "abstract": False,
            },
        ),
    ]
