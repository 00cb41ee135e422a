"""Translation between JSON-shaped request/response mappings and core objects.

Request keys are camelCase as sent by the front-end. Responses use camelCase
too; monetary values on entities are rendered as fixed-point strings so no
precision is lost, while dashboard metrics are plain numbers.
"""

from __future__ import annotations

import dataclasses
import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from . import log
from .constants import SaleStatus
from .core_logic import (
    CustomerInfo,
    LineSelection,
    PurchaseCommand,
    PurchaseLine,
    SaleCommand,
    SaleDetails,
    SaleResult,
    VehicleInfo,
)
from .errors import InvalidTransitionError, ValidationError
from .metrics import DailyMetrics, PurchaseSummary, RevenueReport


_CAMEL_BOUNDARY = re.compile(r"_([a-z])")

# Fields never sent back to a client.
_PRIVATE_FIELDS = frozenset({"password_hash"})


def to_camel(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(lambda match: match.group(1).upper(), name)


def _require_mapping(payload: Any, label: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise ValidationError(f"{label} must be an object")
    return payload


def _optional_int(payload: Mapping[str, Any], key: str) -> Optional[int]:
    value = payload.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{key} must be an integer, got {value!r}")


def _required_int(payload: Mapping[str, Any], key: str) -> int:
    value = _optional_int(payload, key)
    if value is None:
        raise ValidationError(f"{key} is required")
    return value


def _optional_str(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string, got {value!r}")
    return value


def sale_command_from_payload(payload: Any, *, timestamp: Optional[datetime] = None) -> SaleCommand:
    """Build a :class:`SaleCommand` from a create-sale request body.

    Expected shape::

        {"customerName": "Ana", "customerPhone": "9999-0000",
         "licensePlate": "HAA-1234", "vehicleType": "sedan",
         "color": "rojo", "year": 2019, "paymentMethod": "efectivo",
         "services": [{"serviceId": 1, "quantity": 2}]}

    ``customerId`` and ``vehicleId`` may replace the customer and vehicle
    details. A missing ``quantity`` means one.

    Raises:
        ValidationError: If the body or any field has the wrong shape.
    """

    payload = _require_mapping(payload, "sale request")
    services = payload.get("services")
    if services is None:
        services = []
    if not isinstance(services, list):
        raise ValidationError("services must be a list")

    selections: List[LineSelection] = []
    for entry in services:
        entry = _require_mapping(entry, "service selection")
        selections.append(
            LineSelection(
                service_id=_required_int(entry, "serviceId"),
                quantity=_optional_int(entry, "quantity"),
            )
        )

    payment_method = payload.get("paymentMethod")
    if payment_method is None:
        raise ValidationError("paymentMethod is required")

    command = SaleCommand(
        customer=CustomerInfo(
            name=_optional_str(payload, "customerName"),
            phone=_optional_str(payload, "customerPhone"),
            email=_optional_str(payload, "customerEmail"),
            customer_id=_optional_int(payload, "customerId"),
        ),
        vehicle=VehicleInfo(
            license_plate=_optional_str(payload, "licensePlate"),
            vehicle_type=_optional_str(payload, "vehicleType"),
            color=_optional_str(payload, "color"),
            year=_optional_int(payload, "year"),
            brand=_optional_str(payload, "brand"),
            model=_optional_str(payload, "model"),
            vehicle_id=_optional_int(payload, "vehicleId"),
        ),
        selections=selections,
        payment_method=payment_method,
        timestamp=timestamp,
    )
    log.debug("Parsed sale request with %d selections", len(selections))
    return command


def purchase_command_from_payload(payload: Any) -> PurchaseCommand:
    """Build a :class:`PurchaseCommand` from a purchase request body.

    Quantities and prices are accepted as strings or integers; floats are
    refused by the entity layer.
    """

    payload = _require_mapping(payload, "purchase request")
    raw_items = payload.get("items") or []
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")
    lines = []
    for entry in raw_items:
        entry = _require_mapping(entry, "purchase item")
        lines.append(
            PurchaseLine(
                inventory_item_id=_required_int(entry, "inventoryItemId"),
                quantity=entry.get("quantity"),
                unit_price=entry.get("unitPrice"),
            )
        )
    return PurchaseCommand(
        supplier_id=_optional_int(payload, "supplierId"),
        invoice_number=_optional_str(payload, "invoiceNumber"),
        lines=lines,
        total_amount=payload.get("totalAmount"),
    )


def status_from_payload(payload: Any) -> SaleStatus:
    """Extract the target status of a ``{"status": ...}`` request body.

    Raises:
        ValidationError: If ``status`` is missing.
        InvalidTransitionError: If ``status`` is not a known sale status.
    """

    payload = _require_mapping(payload, "status request")
    value = payload.get("status")
    if value is None:
        raise ValidationError("status is required")
    try:
        return SaleStatus(value)
    except ValueError as exc:
        raise InvalidTransitionError(f"Unknown sale status {value!r}") from exc


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def entity_to_payload(entity: Any) -> Dict[str, Any]:
    """Render an entity dataclass as a camelCase mapping.

    Decimals become fixed-point strings, datetimes ISO strings and enums their
    values. Password hashes are never included.
    """

    return {
        to_camel(field.name): _plain(getattr(entity, field.name))
        for field in dataclasses.fields(entity)
        if field.name not in _PRIVATE_FIELDS
    }


def metrics_to_payload(daily: DailyMetrics) -> Dict[str, Any]:
    return {
        "dailySales": float(daily.daily_sales),
        "servicesCompleted": daily.services_completed,
        "averageTime": daily.average_time,
        "lowStockCount": daily.low_stock_count,
    }


def revenue_report_to_payload(report: RevenueReport) -> Dict[str, Any]:
    return {
        "today": {"revenue": float(report.today.revenue), "transactions": report.today.transactions},
        "week": {"revenue": float(report.week.revenue), "transactions": report.week.transactions},
        "month": {"revenue": float(report.month.revenue), "transactions": report.month.transactions},
        "monthDailyAverage": float(report.month_daily_average),
        "paymentMethods": [
            {
                "paymentMethod": share.payment_method.value,
                "amount": float(share.amount),
                "percentage": float(share.percentage),
            }
            for share in report.payment_methods
        ],
        "lastDays": [
            {
                "day": day.day.isoformat(),
                "transactions": day.transactions,
                "revenue": float(day.revenue),
                "averageTicket": float(day.average_ticket),
            }
            for day in report.last_days
        ],
    }


def purchase_summary_to_payload(summary: PurchaseSummary) -> Dict[str, Any]:
    return {
        "totalAmount": float(summary.total_amount),
        "pendingCount": summary.pending_count,
        "receivedCount": summary.received_count,
        "monthTotal": float(summary.month_total),
    }


def sale_result_to_payload(result: SaleResult) -> Dict[str, Any]:
    payload = entity_to_payload(result.sale)
    payload["services"] = [entity_to_payload(item) for item in result.line_items]
    payload["customer"] = entity_to_payload(result.customer)
    payload["vehicle"] = entity_to_payload(result.vehicle)
    return payload


def sale_details_to_payload(details: SaleDetails) -> Dict[str, Any]:
    payload = entity_to_payload(details.sale)
    payload["services"] = [entity_to_payload(item) for item in details.line_items]
    return payload


__all__ = [
    "to_camel",
    "sale_command_from_payload",
    "purchase_command_from_payload",
    "status_from_payload",
    "entity_to_payload",
    "metrics_to_payload",
    "revenue_report_to_payload",
    "purchase_summary_to_payload",
    "sale_result_to_payload",
    "sale_details_to_payload",
]
