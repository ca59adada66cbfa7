"""Bills to pay - recurring expenses and installment plans, no I/O.

Bills are unpaid expense rows in `financial_transactions` that carry a due
date. Fixed and variable bills roll over to the next month when paid;
installment plans are created up front, one row per installment.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone

EXPENSE = "expense"
FIXED = "fixed"
VARIABLE = "variable"
INSTALLMENT = "installment"
ROLLING_TYPES = (FIXED, VARIABLE)

NO_PAYMENT_METHOD = "N/A"
DUE_SOON_DAYS = 7


class InvalidBill(ValueError):
    """Raised when a bill or payment is missing required values."""

    pass


@dataclass
class Bill:
    """An expense with a due date."""

    id: str
    description: str
    amount: float
    due_date: date
    category: str = ""
    recurrence_type: str | None = None
    installment_current: int | None = None
    installment_total: int | None = None
    is_paid: bool = False

    @property
    def rolls_over(self) -> bool:
        """Fixed and variable bills create next month's entry when paid."""
        return self.recurrence_type in ROLLING_TYPES

    @property
    def installments_left(self) -> int:
        """Installments still unpaid after this one; 0 for other bills."""
        if self.recurrence_type != INSTALLMENT or not self.installment_total:
            return 0
        return max(self.installment_total - (self.installment_current or 0), 0)

    @property
    def label(self) -> str:
        match self.recurrence_type:
            case "installment":
                return f"{self.installment_current}/{self.installment_total}"
            case "fixed":
                return "Fixo"
            case "variable":
                return "Variável"
        return ""

    @classmethod
    def from_api(cls, data: dict) -> "Bill":
        """Create Bill from a `financial_transactions` row."""
        return cls(
            id=data["id"],
            description=data.get("description", ""),
            amount=float(data.get("amount") or 0),
            due_date=date.fromisoformat(data["due_date"].split("T")[0]),
            category=data.get("category") or "",
            recurrence_type=data.get("recurrence_type"),
            installment_current=data.get("installment_current"),
            installment_total=data.get("installment_total"),
            is_paid=bool(data.get("is_paid")),
        )


def _on_day(month_start: date, day: int) -> date:
    last = calendar.monthrange(month_start.year, month_start.month)[1]
    return month_start.replace(day=min(day, last))


def add_months(day: date, months: int) -> date:
    """Shift by whole months, clamping to the last day of shorter months."""
    month_index = day.month - 1 + months
    return _on_day(date(day.year + month_index // 12, month_index % 12 + 1, 1), day.day)


def first_due_date(due_day: int, today: date) -> date:
    """
    First due date for a new recurring expense.

    This month if `due_day` hasn't passed yet, otherwise next month. A day
    past the end of the month falls on the month's last day.
    """
    if not 1 <= due_day <= 31:
        raise InvalidBill(f"Due day must be 1-31, got {due_day}")
    this_month = today.replace(day=1)
    candidate = _on_day(this_month, due_day)
    if candidate >= today:
        return candidate
    return _on_day(add_months(this_month, 1), due_day)


def _bill_row(
    description: str,
    category: str,
    amount: float,
    due: date,
    created_by: str,
    recurrence_type: str | None,
) -> dict:
    return {
        "transaction_type": EXPENSE,
        "description": description,
        "category": category,
        "amount": amount,
        "payment_method": NO_PAYMENT_METHOD,
        "transaction_date": datetime.combine(due, time.min, tzinfo=timezone.utc).isoformat(),
        "created_by": created_by,
        "recurrence_type": recurrence_type,
        "due_date": due.isoformat(),
        "is_paid": False,
    }


def recurring_expense_row(
    description: str,
    category: str,
    due_day: int,
    today: date,
    created_by: str,
    amount: float | None = None,
) -> dict:
    """
    Row for a new monthly expense.

    With an amount it is a fixed bill; without one it is variable and the
    amount is filled in when paid.
    """
    if not description.strip() or not category:
        raise InvalidBill("Description and category are required")
    if amount is not None and amount <= 0:
        raise InvalidBill("Fixed expenses need a positive amount")
    kind = FIXED if amount is not None else VARIABLE
    return _bill_row(
        description.strip(),
        category,
        amount or 0.0,
        first_due_date(due_day, today),
        created_by,
        kind,
    )


def installment_rows(
    description: str,
    category: str,
    total_amount: float,
    count: int,
    first_due: date,
    created_by: str,
) -> list[dict]:
    """One row per monthly installment. Rounding cents go to the last one."""
    if count < 1:
        raise InvalidBill(f"Need at least one installment, got {count}")
    if total_amount <= 0:
        raise InvalidBill("Installment plans need a positive total")

    share = round(total_amount / count, 2)
    rows = []
    for i in range(count):
        amount = share if i < count - 1 else round(total_amount - share * (count - 1), 2)
        row = _bill_row(
            f"{description} ({i + 1}/{count})",
            category,
            amount,
            add_months(first_due, i),
            created_by,
            INSTALLMENT,
        )
        row["installment_current"] = i + 1
        row["installment_total"] = count
        rows.append(row)
    return rows


def paid_update(amount: float, now: datetime) -> dict:
    """Patch marking a bill paid with the amount actually paid."""
    if amount <= 0:
        raise InvalidBill("Paid amount must be positive")
    return {"is_paid": True, "amount": amount, "transaction_date": now.isoformat()}


def next_occurrence(bill: Bill, created_by: str) -> dict | None:
    """
    Next month's row after paying `bill`, or None if it doesn't roll over.

    Fixed bills keep their amount; variable bills start at zero.
    """
    if not bill.rolls_over:
        return None
    amount = bill.amount if bill.recurrence_type == FIXED else 0.0
    return _bill_row(
        bill.description,
        bill.category,
        amount,
        add_months(bill.due_date, 1),
        created_by,
        bill.recurrence_type,
    )


@dataclass
class BillSchedule:
    """Unpaid bills bucketed relative to today."""

    overdue: list[Bill] = field(default_factory=list)
    due_soon: list[Bill] = field(default_factory=list)
    upcoming: list[Bill] = field(default_factory=list)

    @property
    def total_overdue(self) -> float:
        return round(sum(b.amount for b in self.overdue), 2)


def group_bills(bills: list[Bill], today: date, days: int = DUE_SOON_DAYS) -> BillSchedule:
    """Split unpaid bills into overdue, due within `days`, and later."""
    horizon = today + timedelta(days=days)
    schedule = BillSchedule()
    for bill in sorted(bills, key=lambda b: b.due_date):
        if bill.is_paid:
            continue
        if bill.due_date < today:
            schedule.overdue.append(bill)
        elif bill.due_date <= horizon:
            schedule.due_soon.append(bill)
        else:
            schedule.upcoming.append(bill)
    return schedule
