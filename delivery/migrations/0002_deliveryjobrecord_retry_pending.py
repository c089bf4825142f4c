from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("delivery", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="deliveryjobrecord",
            name="retry_pending",
            field=models.BooleanField(default=False),
        ),
    ]
