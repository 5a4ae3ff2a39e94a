import django.db.models.deletion
from django.db import migrations, models

import access_control.models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Role",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=50, unique=True)),
                ("description", models.TextField(blank=True)),
                ("is_super_admin", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="PermissionGrant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "resource_type",
                    models.CharField(
                        choices=[
                            ("product", "Product"),
                            ("order", "Order"),
                            ("order_item", "Order Item"),
                            ("customer", "Customer"),
                            ("category", "Category"),
                            ("banner", "Banner"),
                        ],
                        max_length=32,
                    ),
                ),
                (
                    "operation",
                    models.CharField(
                        choices=[
                            ("read", "Read"),
                            ("create", "Create"),
                            ("update", "Update"),
                            ("delete", "Delete"),
                            ("publish", "Publish"),
                        ],
                        max_length=16,
                    ),
                ),
                (
                    "conditions",
                    models.JSONField(
                        blank=True, default=list, validators=[access_control.models._validate_conditions]
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "role",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="grants",
                        to="access_control.role",
                    ),
                ),
            ],
            options={
                "ordering": ["role_id", "resource_type", "operation"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("role", "resource_type", "operation"), name="unique_role_grant"
                    )
                ],
            },
        ),
    ]
