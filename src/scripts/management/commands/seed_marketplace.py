"""Seed roles, grants, admin users and a small demo marketplace."""

from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from access_control.models import PermissionGrant, Role
from catalog.models import Banner, Category, Product
from sales.models import Customer, Order, OrderItem, OrderStatus
from visibility.conditions import IS_CREATOR
from visibility.types import Operation, ResourceType

MERCHANT_ROLE = "Merchant"
SUPPORT_ROLE = "Support"

DEMO_ADMIN_EMAIL = "admin@example.com"
DEMO_MERCHANT_EMAILS = ["merchant-a@example.com", "merchant-b@example.com"]
DEMO_SUPPORT_EMAIL = "support@example.com"

# (resource type, operation, conditions)
MERCHANT_GRANTS = [
    (ResourceType.PRODUCT, Operation.READ, [IS_CREATOR]),
    (ResourceType.PRODUCT, Operation.UPDATE, [IS_CREATOR]),
    (ResourceType.PRODUCT, Operation.DELETE, [IS_CREATOR]),
    (ResourceType.PRODUCT, Operation.PUBLISH, [IS_CREATOR]),
    (ResourceType.ORDER, Operation.READ, [IS_CREATOR]),
    (ResourceType.ORDER, Operation.UPDATE, [IS_CREATOR]),
    (ResourceType.CUSTOMER, Operation.READ, [IS_CREATOR]),
    (ResourceType.CATEGORY, Operation.READ, []),
    (ResourceType.CATEGORY, Operation.CREATE, []),
    (ResourceType.CATEGORY, Operation.UPDATE, [IS_CREATOR]),
    (ResourceType.CATEGORY, Operation.DELETE, [IS_CREATOR]),
    (ResourceType.BANNER, Operation.READ, [IS_CREATOR]),
    (ResourceType.BANNER, Operation.UPDATE, [IS_CREATOR]),
    (ResourceType.BANNER, Operation.DELETE, [IS_CREATOR]),
]

SUPPORT_GRANTS = [
    (ResourceType.PRODUCT, Operation.READ, []),
    (ResourceType.ORDER, Operation.READ, []),
    (ResourceType.ORDER, Operation.UPDATE, []),
    (ResourceType.CUSTOMER, Operation.READ, []),
    (ResourceType.CATEGORY, Operation.READ, []),
]


def seed_roles() -> dict[str, Role]:
    """Create the base roles and their grants; return a name->Role map."""
    super_admin, _ = Role.objects.update_or_create(
        name=Role.SUPER_ADMIN_NAME,
        defaults={"is_super_admin": True, "description": "Unrestricted back-office access."},
    )
    roles = {Role.SUPER_ADMIN_NAME: super_admin}
    for name, description, grants in [
        (MERCHANT_ROLE, "Sees and manages only what they created.", MERCHANT_GRANTS),
        (SUPPORT_ROLE, "Reads the whole catalog and handles orders.", SUPPORT_GRANTS),
    ]:
        role, _ = Role.objects.update_or_create(name=name, defaults={"description": description})
        for resource_type, operation, conditions in grants:
            PermissionGrant.objects.update_or_create(
                role=role,
                resource_type=resource_type.value,
                operation=operation.value,
                defaults={"conditions": conditions},
            )
        roles[name] = role
    return roles


def seed_admin(email: str, password: str, roles, **extra):
    """Create an admin user holding ``roles``, or return the existing one."""
    User = get_user_model()
    user = User.objects.filter(email=email).first()
    if user is None:
        user = User.objects.create_user(email, password, roles=roles, **extra)
    return user


def seed_storefront(merchant, prefix: str, customers, *, product_count: int = 3):
    """Create one category, products, a banner and orders owned by ``merchant``."""
    now = timezone.now()
    category, _ = Category.objects.get_or_create(
        name=f"{prefix} Goods", defaults={"created_by": merchant}
    )
    products = []
    for index in range(product_count):
        product, _ = Product.objects.get_or_create(
            sku=f"{prefix}-{index + 1:03d}",
            defaults={
                "name": f"{prefix} product {index + 1}",
                "price": Decimal("10.00") * (index + 1),
                "stock": 5 if index == 0 else 50,
                "category": category,
                "created_by": merchant,
                "published_at": now if index % 2 == 0 else None,
                "created_at": now - timedelta(days=index * 7),
            },
        )
        products.append(product)

    Banner.objects.get_or_create(
        title=f"{prefix} spring sale", defaults={"created_by": merchant, "is_active": True}
    )

    statuses = [OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.SHIPPED]
    for index, customer in enumerate(customers):
        product = products[index % len(products)]
        order, created = Order.objects.get_or_create(
            order_number=f"{prefix}-ORD-{index + 1:04d}",
            defaults={
                "customer": customer,
                "status": statuses[index % len(statuses)],
                "total_amount": product.price * 2,
                "payment_method": "card",
                "shipping_address": {
                    "street": f"{index + 1} Market Street",
                    "city": "Springfield",
                    "postalCode": "12345",
                    "country": "US",
                },
                "created_at": now - timedelta(days=index * 3),
            },
        )
        if created:
            OrderItem.objects.create(
                order=order,
                product=product,
                product_name=product.name,
                quantity=2,
                unit_price=product.price,
            )
    return products


class Command(BaseCommand):
    """Management command to seed roles, grants and demo marketplace data."""

    help = (
        "Seed back-office roles and grants, demo admin users, and a small marketplace "
        "(categories, products, banners, customers, orders). Use --reset to clear demo data first."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Delete demo users, their catalog and the demo orders before seeding.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if options.get("reset"):
            self._reset_seeded_data()

        self.stdout.write("Seeding marketplace data...")
        roles = seed_roles()
        seed_admin(
            DEMO_ADMIN_EMAIL, "adminpass", [roles[Role.SUPER_ADMIN_NAME]], first_name="Admin"
        )
        seed_admin(DEMO_SUPPORT_EMAIL, "supportpass", [roles[SUPPORT_ROLE]], first_name="Support")

        customers = [
            Customer.objects.get_or_create(
                username=f"customer{index}",
                defaults={"email": f"customer{index}@example.com", "first_name": f"Customer {index}"},
            )[0]
            for index in range(1, 5)
        ]
        for index, email in enumerate(DEMO_MERCHANT_EMAILS):
            merchant = seed_admin(
                email, "merchantpass", [roles[MERCHANT_ROLE]], first_name=f"Merchant {index + 1}"
            )
            # Merchants share the first customer so the customer scope overlaps.
            seed_storefront(merchant, f"M{index + 1}", [customers[0], customers[index + 1]])

        self.stdout.write(self.style.SUCCESS("Marketplace seed completed."))

    def _reset_seeded_data(self) -> None:
        """Remove demo users, catalog rows they created and the demo orders."""
        self.stdout.write("Resetting previously seeded marketplace data...")
        User = get_user_model()
        merchants = User.objects.filter(email__in=DEMO_MERCHANT_EMAILS)

        Order.objects.filter(order_number__contains="-ORD-").delete()
        Product.objects.filter(created_by__in=merchants).delete()
        Banner.objects.filter(created_by__in=merchants).delete()
        Category.objects.filter(created_by__in=merchants).delete()
        Customer.objects.filter(username__startswith="customer").delete()
        User.objects.filter(
            email__in=[DEMO_ADMIN_EMAIL, DEMO_SUPPORT_EMAIL, *DEMO_MERCHANT_EMAILS]
        ).delete()

        self.stdout.write(self.style.WARNING("Seeded marketplace data cleared."))
