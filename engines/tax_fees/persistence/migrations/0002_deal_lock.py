from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("tax_fees", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="DealLock",
            fields=[
                ("deal_id", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "deal_locks",
            },
        ),
    ]
