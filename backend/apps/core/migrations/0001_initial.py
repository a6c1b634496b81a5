from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ProcessedWebhook",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                (
                    "source",
                    models.CharField(help_text="Provider name, e.g. 'stytch'", max_length=50),
                ),
                (
                    "event_id",
                    models.CharField(
                        help_text="Provider delivery ID, e.g. Svix msg_xxx", max_length=255
                    ),
                ),
                ("processed_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("source", "event_id"), name="unique_webhook_event"
                    )
                ],
            },
        ),
    ]
