"""Unit tests for the pure aggregation functions of the metrics engine."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import pytest

from carwash_pos import metrics
from carwash_pos.constants import PaymentMethod, PurchaseStatus, SaleStatus, StockLevel
from carwash_pos.entities import InventoryItem, Purchase, Sale


def _sale(
    total: str,
    when: datetime,
    *,
    status: SaleStatus = SaleStatus.PENDING,
    method: PaymentMethod = PaymentMethod.CASH,
    minutes: Optional[int] = 30,
) -> Sale:
    return Sale(
        subtotal=Decimal(total),
        tax_amount=Decimal("0"),
        total_amount=Decimal(total),
        payment_method=method,
        sale_date=when,
        status=status,
        estimated_completion_time=minutes,
    )


def _item(name: str, current: str, minimum: str) -> InventoryItem:
    return InventoryItem(name=name, current_stock=current, min_stock=minimum, unit="L", cost_per_unit="1")


REFERENCE = datetime(2025, 3, 10, 18, 0)


def test_low_stock_items_returns_only_items_at_or_below_minimum():
    """2.00/8.00 is low while 45.00/20.00 is not."""

    low = _item("Desengrasante", "2.00", "8.00")
    fine = _item("Toallas", "45.00", "20.00")
    assert metrics.low_stock_items([low, fine]) == [low]


def test_low_stock_items_preserves_input_order():
    first = _item("B", "1", "5")
    second = _item("A", "0", "5")
    assert metrics.low_stock_items([first, second]) == [first, second]


@pytest.mark.parametrize(
    "current, expected",
    [("8", StockLevel.LOW), ("12", StockLevel.MEDIUM), ("12.01", StockLevel.OK)],
)
def test_stock_level_bands(current, expected):
    """Low at or below minimum, medium within 1.5x of it, ok above."""

    assert metrics.stock_level(_item("Cera", current, "8")) is expected


def test_daily_metrics_with_no_sales_uses_defaults():
    """No sales yields zero revenue, zero completed and the 30 minute default."""

    items = [_item("Desengrasante", "2.00", "8.00"), _item("Toallas", "45.00", "20.00")]
    result = metrics.daily_metrics([], items, REFERENCE)
    assert result == metrics.DailyMetrics(
        daily_sales=Decimal("0"), services_completed=0, average_time=30, low_stock_count=1
    )


def test_daily_metrics_is_idempotent():
    """Repeated calls without new sales give identical results."""

    sales = [_sale("115.00", REFERENCE)]
    items = [_item("Cera", "1", "2")]
    assert metrics.daily_metrics(sales, items, REFERENCE) == metrics.daily_metrics(sales, items, REFERENCE)


def test_daily_metrics_only_counts_the_reference_day():
    """Sales from other days do not contribute."""

    sales = [
        _sale("100.10", datetime(2025, 3, 10, 0, 0), status=SaleStatus.COMPLETED, minutes=45),
        _sale("200.20", datetime(2025, 3, 10, 23, 59, 59), minutes=None),
        _sale("999.99", datetime(2025, 3, 9, 23, 59, 59), status=SaleStatus.COMPLETED),
        _sale("999.99", datetime(2025, 3, 11, 0, 0)),
    ]
    result = metrics.daily_metrics(sales, [], date(2025, 3, 10))
    assert result.daily_sales == Decimal("300.30")
    assert result.services_completed == 1
    # (45 + 30 default) / 2 = 37.5 rounds half-up to 38
    assert result.average_time == 38
    assert result.low_stock_count == 0


def test_average_completion_minutes_rounds_half_up():
    sales = [_sale("1", REFERENCE, minutes=30), _sale("1", REFERENCE, minutes=31)]
    assert metrics.average_completion_minutes(sales) == 31


def test_payment_method_breakdown_percentages():
    """Each method reports its amount and share of the total."""

    sales = [
        _sale("75.00", REFERENCE, method=PaymentMethod.CASH),
        _sale("25.00", REFERENCE, method=PaymentMethod.CARD),
    ]
    shares = metrics.payment_method_breakdown(sales)
    assert [(share.payment_method, share.amount, share.percentage) for share in shares] == [
        (PaymentMethod.CASH, Decimal("75.00"), Decimal("75.0")),
        (PaymentMethod.CARD, Decimal("25.00"), Decimal("25.0")),
    ]


def test_payment_method_breakdown_zero_total_has_zero_percentage():
    shares = metrics.payment_method_breakdown([_sale("0", REFERENCE)])
    assert shares[0].percentage == Decimal("0")


def test_weekly_and_monthly_revenue_windows():
    """The week is a rolling seven days; the month starts on the first."""

    sales = [
        _sale("10.00", datetime(2025, 3, 10, 12, 0)),
        _sale("20.00", datetime(2025, 3, 4, 12, 0)),
        _sale("40.00", datetime(2025, 3, 1, 0, 0)),
        _sale("80.00", datetime(2025, 2, 28, 23, 0)),
    ]
    week = metrics.weekly_revenue(sales, REFERENCE)
    month = metrics.monthly_revenue(sales, REFERENCE)
    assert week == metrics.PeriodRevenue(revenue=Decimal("30.00"), transactions=2)
    assert month == metrics.PeriodRevenue(revenue=Decimal("70.00"), transactions=3)


def test_revenue_windows_stop_at_the_end_of_the_reference_day():
    sales = [
        _sale("100.00", datetime(2025, 3, 10, 9, 0)),
        _sale("5.00", datetime(2025, 3, 10, 23, 59)),
        _sale("999.00", datetime(2025, 4, 20, 9, 0)),
        _sale("7.00", datetime(2025, 3, 11, 0, 0)),
    ]
    expected = metrics.PeriodRevenue(revenue=Decimal("105.00"), transactions=2)

    assert metrics.weekly_revenue(sales, date(2025, 3, 10)) == expected
    assert metrics.monthly_revenue(sales, date(2025, 3, 10)) == expected
    assert metrics.weekly_revenue(sales, REFERENCE) == expected


def test_revenue_report_ignores_sales_after_the_reference_day():
    sales = [
        _sale("100.00", datetime(2025, 3, 10, 9, 0)),
        _sale("999.00", datetime(2025, 4, 20, 9, 0), method=PaymentMethod.CARD),
    ]
    report = metrics.revenue_report(sales, date(2025, 3, 10))

    assert report.today == metrics.PeriodRevenue(revenue=Decimal("100.00"), transactions=1)
    assert report.week == report.today
    assert report.month == report.today
    assert report.month_daily_average == Decimal("3.33")
    assert [share.payment_method for share in report.payment_methods] == [PaymentMethod.CASH]


def test_sales_until_keeps_the_whole_reference_day():
    late = _sale("1.00", datetime(2025, 3, 10, 23, 59, 59))
    assert metrics.sales_until([late, _sale("2.00", datetime(2025, 3, 11))], REFERENCE) == [late]


def test_daily_breakdown_lists_newest_day_first_with_average_ticket():
    sales = [
        _sale("10.00", datetime(2025, 3, 10, 9, 0)),
        _sale("15.00", datetime(2025, 3, 10, 10, 0)),
    ]
    days = metrics.daily_breakdown(sales, REFERENCE, days=2)
    assert [day.day for day in days] == [date(2025, 3, 10), date(2025, 3, 9)]
    assert days[0].average_ticket == Decimal("12.50")
    assert days[1] == metrics.DayRevenue(
        day=date(2025, 3, 9), transactions=0, revenue=Decimal("0"), average_ticket=Decimal("0")
    )


def test_revenue_report_month_daily_average():
    """Monthly revenue is averaged over a flat thirty days."""

    report = metrics.revenue_report([_sale("300.00", datetime(2025, 3, 2, 9, 0))], REFERENCE)
    assert report.month_daily_average == Decimal("10.00")
    assert report.today.transactions == 0
    assert len(report.last_days) == 7


def test_purchase_summary_counts_statuses_and_month_total():
    purchases = [
        Purchase(total_amount="100", purchase_date=datetime(2025, 3, 1, 8, 0)),
        Purchase(
            total_amount="50",
            purchase_date=datetime(2025, 2, 20, 8, 0),
            status=PurchaseStatus.RECEIVED,
        ),
    ]
    summary = metrics.purchase_summary(purchases, REFERENCE)
    assert summary == metrics.PurchaseSummary(
        total_amount=Decimal("150.00"),
        pending_count=1,
        received_count=1,
        month_total=Decimal("100.00"),
    )
