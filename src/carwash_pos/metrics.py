"""Read-only aggregates over sales, inventory and purchases.

Every function here is pure: it receives the collections to aggregate and a
reference moment, never touches storage, and returns zero-valued defaults for
empty input. Monetary sums are accumulated as :class:`~decimal.Decimal` so
totals keep cent precision.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Union

from . import log
from .constants import (
    CENT,
    DAYS_PER_MONTH,
    DEFAULT_SERVICE_MINUTES,
    MEDIUM_STOCK_FACTOR,
    PaymentMethod,
    PurchaseStatus,
    SaleStatus,
    StockLevel,
)
from .entities import InventoryItem, Purchase, Sale


ZERO = Decimal("0")
ONE_DECIMAL = Decimal("0.1")


@dataclass(frozen=True)
class DailyMetrics:
    """Dashboard figures for a single calendar day."""

    daily_sales: Decimal
    services_completed: int
    average_time: int
    low_stock_count: int


@dataclass(frozen=True)
class PeriodRevenue:
    revenue: Decimal
    transactions: int


@dataclass(frozen=True)
class PaymentShare:
    payment_method: PaymentMethod
    amount: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class DayRevenue:
    day: date
    transactions: int
    revenue: Decimal
    average_ticket: Decimal


@dataclass(frozen=True)
class RevenueReport:
    """Bundle of the figures shown on the reports screen."""

    today: PeriodRevenue
    week: PeriodRevenue
    month: PeriodRevenue
    month_daily_average: Decimal
    payment_methods: List[PaymentShare]
    last_days: List[DayRevenue]


@dataclass(frozen=True)
class PurchaseSummary:
    total_amount: Decimal
    pending_count: int
    received_count: int
    month_total: Decimal


def _as_date(reference: Union[date, datetime, None]) -> date:
    if reference is None:
        return date.today()
    if isinstance(reference, datetime):
        return reference.date()
    return reference


def _as_datetime(reference: Union[date, datetime, None]) -> datetime:
    if reference is None:
        return datetime.now()
    if isinstance(reference, datetime):
        return reference
    return datetime.combine(reference, time.max)


def low_stock_items(items: Iterable[InventoryItem]) -> List[InventoryItem]:
    """Return the items whose current stock is at or below their minimum.

    The input order is preserved so callers see items in storage order.
    """

    return [item for item in items if item.current_stock <= item.min_stock]


def stock_level(item: InventoryItem) -> StockLevel:
    """Classify an item as low, medium (within 1.5x of minimum) or ok."""

    if item.current_stock <= item.min_stock:
        return StockLevel.LOW
    if item.current_stock <= item.min_stock * MEDIUM_STOCK_FACTOR:
        return StockLevel.MEDIUM
    return StockLevel.OK


def sales_on(sales: Iterable[Sale], day: date) -> List[Sale]:
    """Return the sales whose ``sale_date`` falls on ``day`` (local calendar)."""

    return [sale for sale in sales if sale.sale_date.date() == day]


def sum_revenue(sales: Iterable[Sale]) -> Decimal:
    return sum((sale.total_amount for sale in sales), ZERO)


def average_completion_minutes(sales: Sequence[Sale]) -> int:
    """Mean of ``estimated_completion_time`` rounded half-up to a whole minute.

    Sales without an estimate count as :data:`DEFAULT_SERVICE_MINUTES`, and an
    empty sequence yields the same default.
    """

    if not sales:
        return DEFAULT_SERVICE_MINUTES
    total_minutes = sum(
        sale.estimated_completion_time
        if sale.estimated_completion_time is not None
        else DEFAULT_SERVICE_MINUTES
        for sale in sales
    )
    mean = Decimal(total_minutes) / Decimal(len(sales))
    return int(mean.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def daily_metrics(
    sales: Iterable[Sale],
    items: Iterable[InventoryItem],
    reference_date: Union[date, datetime, None] = None,
) -> DailyMetrics:
    """Compute the dashboard metrics for the day containing ``reference_date``.

    Args:
        sales: Every recorded sale; only those on the reference day count.
        items: Every inventory item, used for the low-stock count.
        reference_date: Day to report on. Defaults to today.

    Returns:
        DailyMetrics: Revenue, completed count, average service minutes and
            low-stock count. Empty input yields ``0, 0, 30, <low stock>``.
    """

    day = _as_date(reference_date)
    todays = sales_on(sales, day)
    result = DailyMetrics(
        daily_sales=sum_revenue(todays),
        services_completed=sum(1 for sale in todays if sale.status is SaleStatus.COMPLETED),
        average_time=average_completion_minutes(todays),
        low_stock_count=len(low_stock_items(items)),
    )
    log.debug("Computed daily metrics for %s: %s", day.isoformat(), result)
    return result


def _end_of_day(reference: Union[date, datetime, None]) -> datetime:
    return datetime.combine(_as_date(reference), time.max)


def sales_until(sales: Iterable[Sale], reference: Union[date, datetime, None] = None) -> List[Sale]:
    """Return the sales made no later than the end of the reference day."""

    end = _end_of_day(reference)
    return [sale for sale in sales if sale.sale_date <= end]


def revenue_since(sales: Iterable[Sale], start: datetime, end: Optional[datetime] = None) -> PeriodRevenue:
    """Sum the sales made at or after ``start`` and, when given, at or before ``end``."""

    selected = [
        sale for sale in sales if sale.sale_date >= start and (end is None or sale.sale_date <= end)
    ]
    return PeriodRevenue(revenue=sum_revenue(selected), transactions=len(selected))


def weekly_revenue(sales: Iterable[Sale], reference: Union[date, datetime, None] = None) -> PeriodRevenue:
    """Revenue over the rolling seven days ending with the reference day."""

    moment = _as_datetime(reference)
    return revenue_since(sales, moment - timedelta(days=7), _end_of_day(reference))


def monthly_revenue(sales: Iterable[Sale], reference: Union[date, datetime, None] = None) -> PeriodRevenue:
    """Revenue from the first of the month through the end of the reference day."""

    day = _as_date(reference)
    return revenue_since(sales, datetime(day.year, day.month, 1), _end_of_day(reference))


def payment_method_breakdown(sales: Iterable[Sale]) -> List[PaymentShare]:
    """Group revenue by payment method with each group's share of the total.

    Groups appear in the order their method is first seen. Percentages are
    rounded to one decimal place and are zero when the total is zero.
    """

    amounts: Dict[PaymentMethod, Decimal] = {}
    for sale in sales:
        amounts[sale.payment_method] = amounts.get(sale.payment_method, ZERO) + sale.total_amount

    total = sum(amounts.values(), ZERO)
    shares: List[PaymentShare] = []
    for method, amount in amounts.items():
        if total == ZERO:
            percentage = ZERO
        else:
            percentage = (amount / total * 100).quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP)
        shares.append(PaymentShare(payment_method=method, amount=amount, percentage=percentage))
    return shares


def daily_breakdown(
    sales: Iterable[Sale],
    reference: Union[date, datetime, None] = None,
    *,
    days: int = 7,
) -> List[DayRevenue]:
    """Per-day transactions, revenue and average ticket, newest day first."""

    sales = list(sales)
    last_day = _as_date(reference)
    breakdown: List[DayRevenue] = []
    for offset in range(days):
        day = last_day - timedelta(days=offset)
        selected = sales_on(sales, day)
        revenue = sum_revenue(selected)
        average = (revenue / len(selected)).quantize(CENT, rounding=ROUND_HALF_UP) if selected else ZERO
        breakdown.append(
            DayRevenue(day=day, transactions=len(selected), revenue=revenue, average_ticket=average)
        )
    return breakdown


def revenue_report(sales: Iterable[Sale], reference: Union[date, datetime, None] = None) -> RevenueReport:
    """Assemble the reports screen figures relative to ``reference``."""

    sales = sales_until(sales, reference)
    today = sales_on(sales, _as_date(reference))
    month = monthly_revenue(sales, reference)
    month_average = (
        (month.revenue / DAYS_PER_MONTH).quantize(CENT, rounding=ROUND_HALF_UP)
        if month.transactions
        else ZERO
    )
    return RevenueReport(
        today=PeriodRevenue(revenue=sum_revenue(today), transactions=len(today)),
        week=weekly_revenue(sales, reference),
        month=month,
        month_daily_average=month_average,
        payment_methods=payment_method_breakdown(sales),
        last_days=daily_breakdown(sales, reference),
    )


def purchase_summary(
    purchases: Iterable[Purchase],
    reference: Optional[Union[date, datetime]] = None,
) -> PurchaseSummary:
    """Totals shown on the purchases screen."""

    purchases = list(purchases)
    day = _as_date(reference)
    month_total = sum(
        (
            purchase.total_amount
            for purchase in purchases
            if purchase.purchase_date.year == day.year and purchase.purchase_date.month == day.month
        ),
        ZERO,
    )
    return PurchaseSummary(
        total_amount=sum((purchase.total_amount for purchase in purchases), ZERO),
        pending_count=sum(1 for purchase in purchases if purchase.status is PurchaseStatus.PENDING),
        received_count=sum(1 for purchase in purchases if purchase.status is PurchaseStatus.RECEIVED),
        month_total=month_total,
    )


__all__ = [
    "DailyMetrics",
    "PeriodRevenue",
    "PaymentShare",
    "DayRevenue",
    "RevenueReport",
    "PurchaseSummary",
    "low_stock_items",
    "stock_level",
    "sales_on",
    "sales_until",
    "sum_revenue",
    "average_completion_minutes",
    "daily_metrics",
    "revenue_since",
    "weekly_revenue",
    "monthly_revenue",
    "payment_method_breakdown",
    "daily_breakdown",
    "revenue_report",
    "purchase_summary",
]
