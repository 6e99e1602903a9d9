import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Video",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("job_id", models.CharField(db_index=True, max_length=128)),
                ("source_path", models.CharField(max_length=512)),
                ("subscribed", models.BooleanField(default=False)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("probing", "Probing"),
                            ("encoding", "Encoding"),
                            ("publishing", "Publishing"),
                            ("cleaning", "Cleaning"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        default="probing",
                        max_length=16,
                    ),
                ),
                ("progress", models.PositiveSmallIntegerField(default=0)),
                ("duration", models.JSONField(blank=True, default=dict)),
                ("urls", models.JSONField(blank=True, default=dict)),
                ("error", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="video",
            constraint=models.UniqueConstraint(
                condition=models.Q(("status__in", ("probing", "encoding", "publishing", "cleaning"))),
                fields=("job_id",),
                name="unique_in_flight_job_id",
            ),
        ),
    ]
