"""Response serializers and bulk payload validators for the back office."""

from decimal import Decimal

from rest_framework import serializers

from catalog.models import Banner, Category, Product
from sales.models import Customer, Order, OrderHistory, OrderStatus


class CategoryRefSerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ["id", "name"]


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ["id", "name", "parent", "sort_order", "created_by", "created_at"]
        read_only_fields = fields


class ProductSerializer(serializers.ModelSerializer):
    category = CategoryRefSerializer(read_only=True)
    is_published = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "sku",
            "description",
            "price",
            "stock",
            "category",
            "published_at",
            "is_published",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BannerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Banner
        fields = [
            "id",
            "title",
            "image_url",
            "link_url",
            "sort_order",
            "is_active",
            "created_by",
            "created_at",
        ]
        read_only_fields = fields


class CustomerRefSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ["id", "username", "email"]


class OrderSerializer(serializers.ModelSerializer):
    customer = CustomerRefSerializer(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "status",
            "total_amount",
            "payment_method",
            "shipping_address",
            "customer",
            "created_at",
            "shipped_at",
            "completed_at",
            "cancelled_at",
        ]
        read_only_fields = fields


class CustomerSerializer(serializers.ModelSerializer):
    """Customer row with order totals restricted to the caller's scope.

    Totals come from ``context["totals"]``, a mapping of customer id to
    ``{"totalOrders", "totalSpent"}``.
    """

    totalOrders = serializers.SerializerMethodField()
    totalSpent = serializers.SerializerMethodField()

    class Meta:
        model = Customer
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "created_at",
            "totalOrders",
            "totalSpent",
        ]
        read_only_fields = fields

    def _totals(self, obj) -> dict:
        return self.context.get("totals", {}).get(obj.id, {})

    def get_totalOrders(self, obj) -> int:
        return self._totals(obj).get("totalOrders", 0)

    def get_totalSpent(self, obj) -> float:
        return self._totals(obj).get("totalSpent", 0.0)


class PublishPayloadSerializer(serializers.Serializer):
    shouldPublish = serializers.BooleanField()


class CategoryPayloadSerializer(serializers.Serializer):
    categoryId = serializers.IntegerField(min_value=1, allow_null=True)


class PriceOperationSerializer(serializers.Serializer):
    operation = serializers.ChoiceField(choices=["set", "increase", "decrease", "percentage"])
    value = serializers.DecimalField(max_digits=12, decimal_places=4)

    def validate(self, attrs):
        operation, value = attrs["operation"], attrs["value"]
        if operation == "percentage" and not Decimal("-100") <= value <= Decimal("1000"):
            raise serializers.ValidationError("Percentage must be between -100 and 1000")
        if operation == "set" and value < 0:
            raise serializers.ValidationError("Price cannot be negative")
        return attrs


class StockOperationSerializer(serializers.Serializer):
    operation = serializers.ChoiceField(choices=["set", "increase", "decrease"])
    value = serializers.IntegerField(min_value=0)


class StatusChangeSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    note = serializers.CharField(required=False, allow_blank=True, default="")


class ToggleSerializer(serializers.Serializer):
    isActive = serializers.BooleanField()


NAME_REQUIRED = "Category name is required"


class CategoryCreateSerializer(serializers.Serializer):
    name = serializers.CharField(
        max_length=120,
        error_messages={"required": NAME_REQUIRED, "blank": NAME_REQUIRED},
    )
    parentId = serializers.IntegerField(
        min_value=1, required=False, allow_null=True, default=None
    )
    sortOrder = serializers.IntegerField(min_value=0, required=False, default=0)


class CategoryUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(
        max_length=120,
        error_messages={"required": NAME_REQUIRED, "blank": NAME_REQUIRED},
    )


class CategoryMoveSerializer(serializers.Serializer):
    categoryId = serializers.IntegerField(
        min_value=1, error_messages={"required": "Category ID is required"}
    )
    newParentId = serializers.IntegerField(
        min_value=1, required=False, allow_null=True, default=None
    )
    newSortOrder = serializers.IntegerField(min_value=0, required=False, default=0)


class SortOrderSerializer(serializers.Serializer):
    id = serializers.IntegerField(
        min_value=1, error_messages={"required": "Each update must have a valid id"}
    )
    sortOrder = serializers.IntegerField(min_value=0)


class ReorderSerializer(serializers.Serializer):
    updates = SortOrderSerializer(
        many=True,
        allow_empty=False,
        error_messages={
            "required": "Updates array is required",
            "empty": "Updates array is required",
            "not_a_list": "Updates array is required",
        },
    )

    def positions(self) -> dict[int, int]:
        return {item["id"]: item["sortOrder"] for item in self.validated_data["updates"]}


class BannerUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200, required=False)
    linkUrl = serializers.URLField(required=False, allow_blank=True)
    isActive = serializers.BooleanField(required=False)

    def changes(self) -> dict:
        columns = {"title": "title", "linkUrl": "link_url", "isActive": "is_active"}
        return {columns[key]: value for key, value in self.validated_data.items()}


class OrderHistorySerializer(serializers.ModelSerializer):
    changedBy = serializers.SerializerMethodField()

    class Meta:
        model = OrderHistory
        fields = ["id", "from_status", "to_status", "note", "changedBy", "created_at"]
        read_only_fields = fields

    def get_changedBy(self, obj) -> dict | None:
        user = obj.changed_by
        if user is None:
            return None
        name = f"{user.first_name} {user.last_name}".strip()
        return {"id": str(user.pk), "email": user.email, "name": name}


class OrderExportSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.JSONField(), required=False, allow_empty=False)
    filters = serializers.DictField(required=False)
    fields = serializers.ListField(child=serializers.CharField(), required=False, allow_empty=True)


__all__ = [
    "BannerSerializer",
    "BannerUpdateSerializer",
    "CategoryCreateSerializer",
    "CategoryMoveSerializer",
    "CategoryPayloadSerializer",
    "CategorySerializer",
    "CategoryUpdateSerializer",
    "CustomerSerializer",
    "OrderExportSerializer",
    "OrderHistorySerializer",
    "OrderSerializer",
    "PriceOperationSerializer",
    "ProductSerializer",
    "PublishPayloadSerializer",
    "ReorderSerializer",
    "SortOrderSerializer",
    "StatusChangeSerializer",
    "StockOperationSerializer",
    "ToggleSerializer",
]
