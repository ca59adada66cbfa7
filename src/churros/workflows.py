"""Shared workflow layer between the CLI and the scheduler.

Each workflow takes its ports explicitly: fetch through the backend, decide
with the pure core, write back through the backend.
"""

import logging
import random
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from .adapters.supabase_rest import BackendError
from .core.bills import (
    EXPENSE,
    Bill,
    InvalidBill,
    installment_rows,
    next_occurrence,
    paid_update,
    recurring_expense_row,
)
from .core.coupons import (
    Coupon,
    CouponRules,
    FIXED,
    clean_generated_message,
    coupon_code,
    coupon_message_prompt,
    expiring_coupons,
    expiry_for,
    minimum_purchase,
    suggest_loyalty_coupon,
)
from .core.insights import InsightsRequest, build_insights_prompt
from .core.notifications import (
    Notification,
    build_user_notifications,
    resolve_targets,
    select_due,
    sent_update,
)
from .core.recurrence import to_utc
from .core.tasks import Task, TaskCompletion, completion_toggle, is_completed_on, tasks_for_date
from .ports.llm_service import LLMService
from .ports.shop_backend import ShopBackend

logger = logging.getLogger(__name__)

DEFAULT_PERMISSIONS = {
    "can_access_sales": False,
    "can_access_products": False,
    "can_access_stock": False,
    "can_access_financial": False,
    "can_access_reports": False,
    "can_access_settings": False,
}


class ProvisioningError(Exception):
    """Raised when an employee account cannot be created."""

    pass


# ============== Notifications ==============


@dataclass
class ProcessResult:
    """Outcome of one notification polling pass."""

    scheduled: int = 0
    recurring: int = 0
    sent: int = 0
    failed: int = 0


def _active_user_ids(backend: ShopBackend) -> list[str]:
    rows = backend.select("profiles", {"is_active": True}, columns="id")
    return [r["id"] for r in rows]


def send_notification(
    backend: ShopBackend,
    notification: Notification,
    now: datetime,
    active_user_ids: list[str] | None = None,
) -> int:
    """
    Deliver a notification to its recipients' inboxes and record the send.

    Returns the number of recipients. Raises BackendError on failure.
    """
    if active_user_ids is None:
        active_user_ids = _active_user_ids(backend)
    user_ids = resolve_targets(notification, active_user_ids)

    if user_ids:
        backend.insert("user_notifications", build_user_notifications(notification, user_ids))
    else:
        logger.warning(f"Notification {notification.id} has no recipients")

    backend.update("notifications", sent_update(notification, now), {"id": notification.id})
    logger.info(f"Sent notification {notification.id} to {len(user_ids)} users")
    return len(user_ids)


def process_scheduled_notifications(backend: ShopBackend, now: datetime) -> ProcessResult:
    """
    Send every notification due at `now`.

    One-time notifications are due once their scheduled time has passed;
    recurring ones go through the recurrence evaluator. A failure on one
    notification is logged and does not stop the rest.
    """
    now = to_utc(now)
    result = ProcessResult()
    logger.info(f"Processing scheduled notifications at {now.isoformat()}")

    candidates: list[Notification] = []
    try:
        rows = backend.select(
            "notifications",
            {
                "is_active": True,
                "is_sent": False,
                "is_recurring": False,
                "scheduled_at": ("lte", now.isoformat()),
            },
        )
        result.scheduled = len(rows)
        candidates.extend(Notification.from_api(r) for r in rows)
    except BackendError as e:
        logger.error(f"Error fetching scheduled notifications: {e}")

    try:
        rows = backend.select("notifications", {"is_active": True, "is_recurring": True})
        result.recurring = len(rows)
        candidates.extend(Notification.from_api(r) for r in rows)
    except BackendError as e:
        logger.error(f"Error fetching recurring notifications: {e}")

    due = select_due(candidates, now)
    logger.info(
        f"Found {result.scheduled} scheduled and {result.recurring} recurring notifications, "
        f"{len(due)} due"
    )
    if not due:
        return result

    active_user_ids = None
    for notification in due:
        try:
            if active_user_ids is None and notification.target_type == "all":
                active_user_ids = _active_user_ids(backend)
            send_notification(backend, notification, now, active_user_ids or [])
            result.sent += 1
        except BackendError as e:
            logger.error(f"Error sending notification {notification.id}: {e}")
            result.failed += 1

    return result


# ============== Tasks ==============


def tasks_due_on(backend: ShopBackend, day: date) -> list[tuple[Task, bool]]:
    """Active tasks due on `day`, each paired with whether it's been completed."""
    tasks = [Task.from_api(r) for r in backend.select("tasks", {"is_active": True}, order="created_at.desc")]
    completions = [
        TaskCompletion.from_api(r)
        for r in backend.select("task_completions", {"completion_date": day.isoformat()})
    ]
    return [(t, is_completed_on(completions, t.id, day)) for t in tasks_for_date(tasks, day)]


def toggle_task_completion(backend: ShopBackend, task_id: str, day: date, user_id: str) -> bool:
    """Flip a task's completion for `day`. Returns True if it is now completed."""
    rows = backend.select("task_completions", {"task_id": task_id, "completion_date": day.isoformat()})
    completions = [TaskCompletion.from_api(r) for r in rows]

    if completion_toggle(completions, task_id, day) == "delete":
        backend.delete("task_completions", {"task_id": task_id, "completion_date": day.isoformat()})
        return False

    backend.insert(
        "task_completions",
        [{"task_id": task_id, "completion_date": day.isoformat(), "completed_by": user_id}],
    )
    return True


# ============== Coupons ==============


def issue_loyalty_coupon(
    backend: ShopBackend,
    customer_id: str | None,
    total: float,
    now: datetime,
    created_by: str,
    rules: CouponRules | None = None,
    rng: random.Random | None = None,
) -> Coupon | None:
    """Create a cashback coupon if the sale qualifies. Returns None otherwise."""
    value = suggest_loyalty_coupon(customer_id, total, rules)
    if value is None:
        return None

    rows = backend.insert(
        "coupons",
        [
            {
                "customer_id": customer_id,
                "code": coupon_code(rng),
                "discount_type": FIXED,
                "discount_value": value,
                "expire_at": expiry_for(to_utc(now), rules).isoformat(),
                "created_by": created_by,
            }
        ],
    )
    coupon = Coupon.from_api(rows[0])
    logger.info(f"Issued coupon {coupon.code} worth {value} to customer {customer_id}")
    return coupon


def fetch_expiring_coupons(backend: ShopBackend, now: datetime, days: int = 3) -> list[Coupon]:
    """Unused coupons expiring within `days`, with customer name and phone."""
    now = to_utc(now)
    horizon = datetime.combine(now.date() + timedelta(days=days), time.max, tzinfo=now.tzinfo)
    rows = backend.select(
        "coupons",
        {
            "is_active": True,
            "is_used": False,
            "expire_at": [("gte", now.isoformat()), ("lte", horizon.isoformat())],
        },
        columns="id,code,customer_id,discount_value,discount_type,expire_at,is_active,is_used,customers!inner(id,name,phone)",
        order="expire_at",
    )
    return expiring_coupons([Coupon.from_api(r) for r in rows], now, days)


def generate_coupon_message(
    llm: LLMService,
    name: str,
    value: float,
    expires: date,
    rules: CouponRules | None = None,
) -> str:
    """Ask the text generator for a cashback message and tidy it up."""
    prompt = coupon_message_prompt(name, value, expires, minimum_purchase(value, rules))
    message = clean_generated_message(llm.generate(prompt))
    if not message:
        raise RuntimeError("Text generator returned no usable message")
    return message


# ============== Bills ==============


def fetch_open_bills(backend: ShopBackend) -> list[Bill]:
    """Unpaid expenses with a due date, earliest first."""
    rows = backend.select(
        "financial_transactions",
        {"is_paid": False, "transaction_type": EXPENSE, "due_date": ("not.is", None)},
        order="due_date",
    )
    return [Bill.from_api(r) for r in rows]


def pay_bill(
    backend: ShopBackend,
    bill_id: str,
    amount: float,
    now: datetime,
    user_id: str,
) -> Bill | None:
    """
    Mark a bill paid with the amount actually paid.

    Fixed and variable bills get next month's entry created. Returns that
    entry, or None when the bill doesn't roll over.
    """
    rows = backend.select("financial_transactions", {"id": bill_id})
    if not rows:
        raise InvalidBill(f"Bill {bill_id} not found")
    bill = Bill.from_api(rows[0])
    if bill.is_paid:
        raise InvalidBill(f"Bill {bill_id} is already paid")

    backend.update("financial_transactions", paid_update(amount, to_utc(now)), {"id": bill.id})
    logger.info(f"Paid bill {bill.id} ({bill.description}): {amount}")

    row = next_occurrence(bill, user_id)
    if row is None:
        return None
    created = Bill.from_api(backend.insert("financial_transactions", [row])[0])
    logger.info(f"Created next {bill.recurrence_type} bill {created.id} due {created.due_date}")
    return created


def add_recurring_expense(
    backend: ShopBackend,
    description: str,
    category: str,
    due_day: int,
    today: date,
    user_id: str,
    amount: float | None = None,
) -> Bill:
    """Register a monthly expense. Without an amount it is a variable bill."""
    row = recurring_expense_row(description, category, due_day, today, user_id, amount)
    return Bill.from_api(backend.insert("financial_transactions", [row])[0])


def add_installments(
    backend: ShopBackend,
    description: str,
    category: str,
    total: float,
    count: int,
    first_due: date,
    user_id: str,
) -> list[Bill]:
    """Split a purchase into monthly installments, one bill each."""
    rows = installment_rows(description, category, total, count, first_due, user_id)
    created = backend.insert("financial_transactions", rows)
    logger.info(f"Created {count} installments for {description}")
    return [Bill.from_api(r) for r in created]


# ============== Insights ==============


def generate_insights(llm: LLMService, payload: dict) -> str:
    """Validate the figures, run the analyst prompt, return the insights text."""
    request = InsightsRequest.from_payload(payload)
    return llm.generate(build_insights_prompt(request)).strip()


# ============== Employees ==============


def create_employee(
    backend: ShopBackend,
    email: str,
    password: str,
    full_name: str,
    phone: str | None = None,
) -> str:
    """
    Provision an employee login with the employee role and no permissions.

    Steps already done are undone if a later one fails. Returns the user id.
    """
    if not email or not password or not full_name:
        raise ProvisioningError("Email, password and full name are required")

    try:
        user_id = backend.create_auth_user(email, password, {"full_name": full_name, "phone": phone or None})
    except BackendError as e:
        raise ProvisioningError(f"Could not create user: {e}")
    logger.info(f"Created user {user_id} for {email}")

    try:
        backend.insert("user_roles", [{"user_id": user_id, "role": "employee"}])
    except BackendError as e:
        _rollback_user(backend, user_id)
        raise ProvisioningError(f"Could not assign employee role: {e}")

    try:
        backend.insert("user_permissions", [{"user_id": user_id, **DEFAULT_PERMISSIONS}])
    except BackendError as e:
        try:
            backend.delete("user_roles", {"user_id": user_id})
        except BackendError as cleanup_error:
            logger.error(f"Failed to remove role for {user_id}: {cleanup_error}")
        _rollback_user(backend, user_id)
        raise ProvisioningError(f"Could not create permissions: {e}")

    return user_id


def _rollback_user(backend: ShopBackend, user_id: str) -> None:
    try:
        backend.delete_auth_user(user_id)
    except BackendError as e:
        logger.error(f"Failed to remove user {user_id} after provisioning error: {e}")
