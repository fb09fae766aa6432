from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="OfferRecord",
            fields=[
                ("offer_id", models.CharField(max_length=100, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("marketing_text", models.TextField(blank=True, default="")),
                (
                    "offer_type",
                    models.CharField(
                        choices=[
                            ("percent_discount", "Percent discount"),
                            ("flat_discount", "Flat discount"),
                            ("buy_x_get_y", "Buy X get Y"),
                            ("free_item", "Free item"),
                        ],
                        max_length=32,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("inactive", "Inactive")],
                        default="active",
                        max_length=16,
                    ),
                ),
                ("priority", models.IntegerField(default=0)),
                ("valid_from", models.DateTimeField(blank=True, null=True)),
                ("valid_until", models.DateTimeField(blank=True, null=True)),
                ("exclusivity_group", models.CharField(blank=True, max_length=100, null=True)),
                ("channels", models.JSONField(blank=True, default=list)),
                ("benefit", models.JSONField(blank=True, default=dict)),
                ("qualifying_filters", models.JSONField(blank=True, default=dict)),
                ("caps_config", models.JSONField(blank=True, default=dict)),
                ("conditions", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "shopfront_offers",
                "ordering": ["-priority", "offer_id"],
                "indexes": [
                    models.Index(fields=["status", "priority"], name="idx_offer_status_priority"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ExperimentRecord",
            fields=[
                ("experiment_id", models.CharField(max_length=100, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("running", "Running"),
                            ("paused", "Paused"),
                            ("completed", "Completed"),
                            ("archived", "Archived"),
                        ],
                        default="draft",
                        max_length=16,
                    ),
                ),
                ("traffic_percent", models.PositiveSmallIntegerField(default=100)),
                ("start_date", models.DateTimeField(blank=True, null=True)),
                ("end_date", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "shopfront_experiments",
                "ordering": ["experiment_id"],
            },
        ),
        migrations.CreateModel(
            name="VariantRecord",
            fields=[
                ("variant_id", models.CharField(max_length=100, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("weight", models.PositiveIntegerField(default=1)),
                ("offer_ids", models.JSONField(blank=True, default=list)),
                ("suppress_offer_ids", models.JSONField(blank=True, default=list)),
                ("is_control", models.BooleanField(default=False)),
                ("sort_order", models.IntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "experiment",
                    models.ForeignKey(
                        db_column="experiment_id",
                        on_delete=models.deletion.CASCADE,
                        related_name="variants",
                        to="core_offer_store.experimentrecord",
                    ),
                ),
            ],
            options={
                "db_table": "shopfront_experiment_variants",
                "ordering": ["experiment_id", "sort_order", "variant_id"],
            },
        ),
        migrations.CreateModel(
            name="ExposureRecord",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("experiment_id", models.CharField(max_length=100)),
                ("variant_id", models.CharField(max_length=100)),
                ("visitor_id", models.CharField(max_length=255)),
                ("offer_id", models.CharField(max_length=100)),
                ("user_id", models.CharField(blank=True, max_length=255, null=True)),
                ("session_id", models.CharField(blank=True, max_length=255, null=True)),
                ("channel", models.CharField(default="web", max_length=32)),
                ("occurred_at", models.DateTimeField()),
                ("recorded_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "shopfront_experiment_exposures",
                "ordering": ["experiment_id", "variant_id", "occurred_at", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=["experiment_id", "variant_id", "visitor_id", "offer_id"],
                        name="uq_exposure_exp_variant_visitor_offer",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ConversionRecord",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("experiment_id", models.CharField(max_length=100)),
                ("variant_id", models.CharField(max_length=100)),
                ("visitor_id", models.CharField(max_length=255)),
                ("user_id", models.CharField(blank=True, max_length=255, null=True)),
                ("session_id", models.CharField(blank=True, max_length=255, null=True)),
                ("conversion_type", models.CharField(max_length=64)),
                (
                    "conversion_value",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True),
                ),
                ("order_id", models.CharField(blank=True, max_length=100, null=True)),
                ("properties", models.JSONField(blank=True, default=dict)),
                ("occurred_at", models.DateTimeField()),
                ("recorded_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "shopfront_experiment_conversions",
                "ordering": ["experiment_id", "variant_id", "occurred_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["experiment_id", "variant_id"],
                        name="idx_conversion_exp_variant",
                    ),
                ],
            },
        ),
    ]
