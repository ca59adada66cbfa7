"""churros CLI - Churrosteria back-office."""

import json
import logging
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import click

from .adapters.ai_gateway import ChatCompletionService
from .adapters.supabase_rest import BackendError, SupabaseAdapter
from .config import ConfigError, load_config
from .core.bills import InvalidBill, group_bills
from .core.categories import Category, build_tree, format_tree, select_options
from .core.coupons import (
    expiry_for,
    minimum_purchase,
    render_coupon_message,
    suggest_loyalty_coupon,
    template_for,
    whatsapp_link,
)
from .core.formatters import format_money, unformat_currency
from .core.insights import InvalidPayload
from .core.recurrence import (
    InvalidDescriptor,
    RecurrenceDescriptor,
    check_due,
    due_dates,
    parse_kind,
    parse_parity,
    parse_time_of_day,
    validate,
)
from .workflows import (
    ProvisioningError,
    add_installments,
    add_recurring_expense,
    create_employee,
    fetch_expiring_coupons,
    fetch_open_bills,
    generate_coupon_message,
    generate_insights,
    pay_bill,
    process_scheduled_notifications,
    tasks_due_on,
    toggle_task_completion,
)

WEEKDAYS = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]


def _backend() -> SupabaseAdapter:
    try:
        return SupabaseAdapter(load_config())
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)


def _iso_date(ctx, param, value: str | None) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"{value!r} is not a date (YYYY-MM-DD)")


def _iso_datetime(ctx, param, value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise click.BadParameter(f"{value!r} is not an ISO 8601 timestamp")



@click.group()
@click.version_option(package_name="churros")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """churros - Churrosteria back-office CLI."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.DEBUG if verbose else logging.WARNING,
    )


@main.command()
@click.option("--date", "-d", "target_date", default=None, callback=_iso_date,
              help="Date to view (YYYY-MM-DD), defaults to today")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def tasks(target_date: date | None, as_json: bool):
    """List tasks due on a date."""
    target = target_date or date.today()
    try:
        due = tasks_due_on(_backend(), target)
    except BackendError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(
            json.dumps(
                [
                    {
                        "id": t.id,
                        "title": t.title,
                        "assigned_to": t.assigned_to,
                        "recurring": t.is_recurring,
                        "completed": done,
                    }
                    for t, done in due
                ],
                indent=2,
            )
        )
        return

    if not due:
        click.echo(f"No tasks for {target.strftime('%A, %b %d')}.")
        return

    for task, done in due:
        mark = "x" if done else " "
        repeat = " (recurring)" if task.is_recurring else ""
        click.echo(f"[{mark}] {task.title}{repeat}")


@main.command()
@click.argument("task_id")
@click.option("--user", "user_id", required=True, help="Id of the employee completing the task")
@click.option("--date", "-d", "target_date", default=None, callback=_iso_date,
              help="Date (YYYY-MM-DD), defaults to today")
def complete(task_id: str, user_id: str, target_date: date | None):
    """Toggle a task's completion for a date."""
    target = target_date or date.today()
    try:
        done = toggle_task_completion(_backend(), task_id, target, user_id)
    except BackendError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Task {task_id} {'completed' if done else 'reopened'} for {target}.")


@main.command()
@click.option("--kind", required=True,
              type=click.Choice(["daily", "weekly", "biweekly", "monthly_by_date"]))
@click.option("--day-of-week", type=click.Choice(WEEKDAYS), default=None)
@click.option("--day-of-month", type=int, default=None)
@click.option("--parity", type=click.Choice(["odd", "even"]), default=None)
@click.option("--time", "time_of_day", default=None, help="Time of day HH:MM (UTC)")
@click.option("--start", "start", default=None, callback=_iso_date, help="First date to list (YYYY-MM-DD)")
@click.option("--end", "end", default=None, callback=_iso_date, help="Last date to list (YYYY-MM-DD)")
@click.option("--at", "at", default=None, callback=_iso_datetime, help="Check a single UTC instant instead (ISO 8601)")
def check(kind, day_of_week, day_of_month, parity, time_of_day, start, end, at):
    """Preview when a recurrence rule fires."""
    try:
        descriptor = RecurrenceDescriptor(
            kind=parse_kind(kind),
            anchor_day_of_week=WEEKDAYS.index(day_of_week) if day_of_week else None,
            anchor_day_of_month=day_of_month,
            parity=parse_parity(parity),
            time_of_day=parse_time_of_day(time_of_day),
        )
        if at is not None:
            click.echo("due" if check_due(descriptor, at) else "not due")
            return
        first = start or date.today()
        last = end or first + timedelta(days=30)
        if last < first:
            raise click.BadParameter("--end must not be before --start")
        validate(descriptor)
    except InvalidDescriptor as e:
        click.echo(f"Invalid rule: {e}", err=True)
        sys.exit(1)

    for day in due_dates(descriptor, first, last):
        click.echo(day.strftime("%a %Y-%m-%d"))


@main.command()
def notify():
    """Send notifications that are due right now."""
    result = process_scheduled_notifications(_backend(), datetime.now(timezone.utc))
    click.echo(
        f"Checked {result.scheduled} scheduled and {result.recurring} recurring notifications: "
        f"{result.sent} sent, {result.failed} failed."
    )
    if result.failed:
        sys.exit(1)


@main.command()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def scheduler(debug: bool):
    """Poll and send scheduled notifications until stopped."""
    logging.getLogger().setLevel(logging.DEBUG if debug else logging.INFO)

    from .scheduler import run_scheduler

    try:
        click.echo("Starting notification scheduler...")
        click.echo("Press Ctrl+C to stop")
        run_scheduler(load_config())
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)


@main.group()
def coupon():
    """Loyalty coupons."""
    pass


@coupon.command("suggest")
@click.option("--customer", "customer_id", default=None, help="Customer id on the sale")
@click.option("--total", type=float, required=True, help="Sale total")
def coupon_suggest(customer_id: str | None, total: float):
    """Show whether a sale earns a cashback coupon."""
    rules = load_config().coupon_rules
    value = suggest_loyalty_coupon(customer_id, total, rules)
    if value is None:
        click.echo("No coupon for this sale.")
        return
    click.echo(
        f"Offer {format_money(value)} cashback "
        f"(minimum purchase {format_money(minimum_purchase(value, rules))})."
    )


@coupon.command("message")
@click.argument("name")
@click.argument("value", type=float)
@click.option("--expires", default=None, callback=_iso_date, help="Expiry date (YYYY-MM-DD), defaults to the rules' validity")
@click.option("--phone", default=None, help="Also print a WhatsApp link for this phone")
@click.option("--ai", "use_ai", is_flag=True, help="Write the message with the AI gateway")
def coupon_message(name: str, value: float, expires: date | None, phone: str | None, use_ai: bool):
    """Compose the cashback message for a customer."""
    config = load_config()
    rules = config.coupon_rules
    expiry = expires or expiry_for(datetime.now(timezone.utc), rules).date()

    if use_ai:
        try:
            message = generate_coupon_message(ChatCompletionService(config), name, value, expiry, rules)
        except (ConfigError, RuntimeError) as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    else:
        template = template_for(value, rules, config.coupon_template_low, config.coupon_template_high)
        message = render_coupon_message(template, name, value, expiry, minimum_purchase(value, rules))

    click.echo(message)
    if phone:
        click.echo(f"\n{whatsapp_link(phone, message)}")


@main.command()
@click.option("--days", default=3, show_default=True, help="Look-ahead window in days")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def expiring(days: int, as_json: bool):
    """List unused coupons about to expire."""
    try:
        coupons = fetch_expiring_coupons(_backend(), datetime.now(timezone.utc), days)
    except BackendError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(
            json.dumps(
                [
                    {
                        "code": c.code,
                        "customer": c.customer_name,
                        "phone": c.customer_phone,
                        "discount": c.describe(),
                        "expire_at": c.expire_at.isoformat(),
                    }
                    for c in coupons
                ],
                indent=2,
            )
        )
        return

    if not coupons:
        click.echo("No coupons expiring soon.")
        return

    for c in coupons:
        click.echo(f"{c.expire_at:%d/%m} {c.code:8} {c.customer_name} - {c.describe()}")


@main.group()
def bills():
    """Bills to pay: recurring expenses and installments."""
    pass


def _bill_line(bill) -> str:
    label = f" [{bill.label}]" if bill.label else ""
    return f"{bill.due_date:%d/%m} {format_money(bill.amount):>12}  {bill.description}{label}"


@bills.command("list")
@click.option("--days", default=7, show_default=True, help="Window for bills due soon")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def bills_list(days: int, as_json: bool):
    """Show unpaid bills: overdue, due soon and upcoming."""
    try:
        open_bills = fetch_open_bills(_backend())
    except BackendError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    schedule = group_bills(open_bills, date.today(), days)

    if as_json:
        def dump(items):
            return [
                {
                    "id": b.id,
                    "description": b.description,
                    "amount": b.amount,
                    "due_date": b.due_date.isoformat(),
                    "type": b.recurrence_type,
                    "label": b.label,
                }
                for b in items
            ]

        click.echo(
            json.dumps(
                {
                    "overdue": dump(schedule.overdue),
                    "due_soon": dump(schedule.due_soon),
                    "upcoming": dump(schedule.upcoming),
                },
                indent=2,
            )
        )
        return

    if not open_bills:
        click.echo("No bills to pay.")
        return

    sections = [
        (f"Overdue ({format_money(schedule.total_overdue)})", schedule.overdue),
        (f"Due in the next {days} days", schedule.due_soon),
        ("Upcoming", schedule.upcoming),
    ]
    for title, items in sections:
        if not items:
            continue
        click.echo(title)
        for bill in items:
            click.echo(f"  {_bill_line(bill)}")


@bills.command("pay")
@click.argument("bill_id")
@click.argument("amount")
@click.option("--user", "user_id", required=True, help="Id of the user paying the bill")
def bills_pay(bill_id: str, amount: str, user_id: str):
    """Mark a bill paid. AMOUNT accepts 1.234,56 or 1234.56."""
    try:
        created = pay_bill(_backend(), bill_id, unformat_currency(amount), datetime.now(timezone.utc), user_id)
    except (InvalidBill, BackendError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Bill {bill_id} paid.")
    if created:
        click.echo(f"Next bill due {created.due_date:%d/%m/%Y}.")


@bills.command("add-recurring")
@click.argument("description")
@click.argument("category")
@click.option("--due-day", type=click.IntRange(1, 31), required=True, help="Day of the month it is due")
@click.option("--amount", default=None, help="Fixed amount; leave out for a variable bill")
@click.option("--user", "user_id", required=True, help="Id of the user registering the expense")
def bills_add_recurring(description: str, category: str, due_day: int, amount: str | None, user_id: str):
    """Register a monthly expense."""
    value = unformat_currency(amount) if amount is not None else None
    try:
        bill = add_recurring_expense(_backend(), description, category, due_day, date.today(), user_id, value)
    except (InvalidBill, BackendError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"{bill.label} expense created, first due {bill.due_date:%d/%m/%Y}.")


@bills.command("add-installments")
@click.argument("description")
@click.argument("category")
@click.argument("total")
@click.argument("count", type=click.IntRange(1, 120))
@click.option("--first-due", default=None, callback=_iso_date,
              help="First due date (YYYY-MM-DD), defaults to today")
@click.option("--user", "user_id", required=True, help="Id of the user registering the purchase")
def bills_add_installments(
    description: str, category: str, total: str, count: int, first_due: date | None, user_id: str
):
    """Split a purchase into monthly installments."""
    try:
        created = add_installments(
            _backend(), description, category, unformat_currency(total), count,
            first_due or date.today(), user_id,
        )
    except (InvalidBill, BackendError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    for bill in created:
        click.echo(_bill_line(bill))


@main.command()
@click.argument("payload_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def insights(payload_file: Path):
    """Generate business insights from a JSON figures file."""
    try:
        payload = json.loads(payload_file.read_text())
        output = generate_insights(ChatCompletionService(load_config()), payload)
    except json.JSONDecodeError as e:
        click.echo(f"Error: {payload_file} is not valid JSON: {e}", err=True)
        sys.exit(1)
    except InvalidPayload as e:
        click.echo(f"Invalid figures: {e}", err=True)
        sys.exit(1)
    except (ConfigError, RuntimeError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(output)


@main.command()
@click.option("--flat", is_flag=True, help="Picker-style list ordered by name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def categories(flat: bool, as_json: bool):
    """Show the product category tree."""
    try:
        rows = _backend().select("categories", order="sort_order")
    except BackendError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    items = [Category.from_api(r) for r in rows]

    if flat or as_json:
        options = select_options(items)
        if as_json:
            click.echo(json.dumps([{"id": i, "name": n, "level": lvl} for i, n, lvl in options], indent=2))
        else:
            for _, name, level in options:
                click.echo("  " * level + name)
        return

    lines = format_tree(build_tree(items))
    click.echo("\n".join(lines) if lines else "No categories.")


@main.command()
@click.argument("email")
@click.argument("full_name")
@click.option("--phone", default=None)
@click.password_option()
def employee(email: str, full_name: str, phone: str | None, password: str):
    """Create an employee login with no permissions."""
    try:
        user_id = create_employee(_backend(), email, password, full_name, phone)
    except ProvisioningError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Employee created: {user_id}")
