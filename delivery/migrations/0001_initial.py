from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="DeliveryJobRecord",
            fields=[
                (
                    "job_id",
                    models.CharField(max_length=64, primary_key=True, serialize=False),
                ),
                ("notification_id", models.CharField(db_index=True, max_length=64)),
                ("channel", models.CharField(max_length=20)),
                ("priority", models.CharField(max_length=20)),
                ("state", models.CharField(db_index=True, max_length=20)),
                ("attempts_made", models.IntegerField(default=0)),
                ("failure_reason", models.TextField(blank=True, null=True)),
                ("payload", models.JSONField()),
                ("enqueued_at", models.DateTimeField()),
                ("updated_at", models.DateTimeField()),
            ],
            options={
                "db_table": "delivery_jobs",
                "ordering": ["enqueued_at"],
                "indexes": [
                    models.Index(
                        fields=["state", "enqueued_at"],
                        name="delivery_jobs_state_idx",
                    )
                ],
            },
        ),
    ]
