"""CSV rendering for order and product exports.

Files start with a UTF-8 byte order mark so spreadsheet tools pick the
right encoding.
"""

from __future__ import annotations

import csv
import io
from typing import Any, Callable, Iterable, Sequence

from visibility.errors import InvalidInput

BOM = "\ufeff"


def _or_dash(value: Any) -> str:
    return str(value) if value not in (None, "") else "-"


def format_address(address: Any) -> str:
    if not isinstance(address, dict):
        return "-"
    parts = [
        address.get(key)
        for key in ("street", "city", "state", "postalCode", "country")
        if address.get(key)
    ]
    return ", ".join(str(part) for part in parts) or "-"


def _customer(order) -> Any:
    return order.customer if order.customer_id else None


def _customer_name(order) -> str:
    customer = _customer(order)
    return _or_dash(customer and (customer.username or customer.email))


def _customer_email(order) -> str:
    customer = _customer(order)
    return _or_dash(customer and customer.email)


ORDER_COLUMNS: dict[str, tuple[str, Callable[[Any], str]]] = {
    "orderNumber": ("Order Number", lambda order: _or_dash(order.order_number)),
    "customerName": ("Customer Name", _customer_name),
    "customerEmail": ("Customer Email", _customer_email),
    "status": ("Status", lambda order: _or_dash(order.status)),
    "totalAmount": ("Total Amount", lambda order: f"${order.total_amount or 0:.2f}"),
    "createdAt": ("Created At", lambda order: order.created_at.isoformat()),
    "shippingAddress": ("Shipping Address", lambda order: format_address(order.shipping_address)),
    "paymentMethod": ("Payment Method", lambda order: _or_dash(order.payment_method)),
}

PRODUCT_COLUMNS: dict[str, tuple[str, Callable[[Any], str]]] = {
    "id": ("ID", lambda product: str(product.id)),
    "name": ("Name", lambda product: product.name),
    "sku": ("SKU", lambda product: product.sku),
    "price": ("Price", lambda product: f"{product.price:.2f}"),
    "stock": ("Stock", lambda product: str(product.stock)),
    "category": (
        "Category",
        lambda product: _or_dash(product.category.name if product.category_id else None),
    ),
    "status": ("Status", lambda product: "published" if product.published_at else "draft"),
    "createdAt": ("Created At", lambda product: product.created_at.isoformat()),
}


def select_columns(columns: dict, fields: Sequence[str] | None) -> list[str]:
    if not fields:
        return list(columns)
    unknown = [field for field in fields if field not in columns]
    if unknown:
        raise InvalidInput(f"Unknown export fields: {', '.join(unknown)}")
    return list(dict.fromkeys(fields))


def render_csv(rows: Iterable[Any], columns: dict, fields: Sequence[str] | None = None) -> str:
    keys = select_columns(columns, fields)
    buffer = io.StringIO()
    buffer.write(BOM)
    writer = csv.writer(buffer)
    writer.writerow([columns[key][0] for key in keys])
    for row in rows:
        writer.writerow([columns[key][1](row) for key in keys])
    return buffer.getvalue()


__all__ = [
    "BOM",
    "ORDER_COLUMNS",
    "PRODUCT_COLUMNS",
    "format_address",
    "render_csv",
    "select_columns",
]
