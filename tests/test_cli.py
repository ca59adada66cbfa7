"""Tests for the churros CLI."""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from churros.cli import main
from churros.config import Config
from churros.core.bills import Bill, InvalidBill
from churros.core.tasks import Task
from churros.workflows import ProvisioningError


@pytest.fixture
def runner():
    return CliRunner()


class TestCheck:
    def test_lists_weekly_dates(self, runner):
        result = runner.invoke(
            main,
            ["check", "--kind", "weekly", "--day-of-week", "tue", "--start", "2024-01-01", "--end", "2024-01-14"],
        )
        assert result.exit_code == 0
        assert result.output.splitlines() == ["Tue 2024-01-02", "Tue 2024-01-09"]

    def test_single_instant(self, runner):
        result = runner.invoke(
            main, ["check", "--kind", "daily", "--time", "09:00", "--at", "2024-01-10T09:01:00Z"]
        )
        assert result.exit_code == 0
        assert result.output.strip() == "due"

    def test_single_instant_outside_window(self, runner):
        result = runner.invoke(
            main, ["check", "--kind", "daily", "--time", "09:00", "--at", "2024-01-10T09:02:00Z"]
        )
        assert result.output.strip() == "not due"

    @pytest.mark.parametrize(
        "args",
        [
            ["--start", "2024-13-40"],
            ["--end", "tomorrow"],
            ["--time", "09:00", "--at", "2024-01-10 nine"],
        ],
    )
    def test_malformed_dates_are_usage_errors(self, runner, args):
        result = runner.invoke(main, ["check", "--kind", "daily", *args])
        assert result.exit_code == 2
        assert "Invalid value" in result.output
        assert not isinstance(result.exception, ValueError)

    def test_invalid_rule(self, runner):
        result = runner.invoke(main, ["check", "--kind", "weekly", "--start", "2024-01-01"])
        assert result.exit_code == 1
        assert "Invalid rule" in result.output


@patch("churros.cli.load_config", return_value=Config())
class TestCoupon:
    def test_suggest(self, mock_load, runner):
        result = runner.invoke(main, ["coupon", "suggest", "--customer", "c1", "--total", "120"])
        assert result.exit_code == 0
        assert "R$ 10,00 cashback" in result.output
        assert "minimum purchase R$ 50,00" in result.output

    def test_suggest_small_sale(self, mock_load, runner):
        result = runner.invoke(main, ["coupon", "suggest", "--customer", "c1", "--total", "20"])
        assert "R$ 5,00 cashback" in result.output
        assert "minimum purchase R$ 30,00" in result.output

    def test_suggest_without_customer(self, mock_load, runner):
        result = runner.invoke(main, ["coupon", "suggest", "--total", "120"])
        assert "No coupon" in result.output

    def test_message_with_link(self, mock_load, runner):
        result = runner.invoke(
            main, ["coupon", "message", "Ana", "5", "--expires", "2025-01-22", "--phone", "(11) 98765-4321"]
        )
        assert result.exit_code == 0
        assert "Olá Ana!" in result.output
        assert "Validade: 22/01/2025" in result.output
        assert "https://wa.me/11987654321?text=" in result.output

    def test_message_uses_high_tier_template(self, mock_load, runner):
        result = runner.invoke(main, ["coupon", "message", "Ana", "10", "--expires", "2025-01-22"])
        assert "já garanta um novo cupom" in result.output
        assert "a partir de R$50,00" in result.output

    def test_message_tier_override(self, mock_load, runner):
        mock_load.return_value = Config(coupon_template_high="Oba {nome}, R${valor}!")
        result = runner.invoke(main, ["coupon", "message", "Ana", "10", "--expires", "2025-01-22"])
        assert result.output.strip() == "Oba Ana, R$10,00!"

    def test_message_bad_expiry(self, mock_load, runner):
        result = runner.invoke(main, ["coupon", "message", "Ana", "5", "--expires", "22/01/2025"])
        assert result.exit_code == 2
        assert "Invalid value" in result.output


class TestTasksCommand:
    @patch("churros.cli.tasks_due_on")
    @patch("churros.cli._backend")
    def test_lists_tasks(self, mock_backend, mock_due, runner):
        mock_due.return_value = [
            (Task(id="t1", title="Clean fryer", assigned_to="u1"), True),
            (Task(id="t2", title="Count register", assigned_to="u1", is_recurring=True), False),
        ]

        result = runner.invoke(main, ["tasks", "--date", "2025-01-15"])

        assert result.exit_code == 0
        assert "[x] Clean fryer" in result.output
        assert "[ ] Count register (recurring)" in result.output

    @patch("churros.cli.tasks_due_on", return_value=[])
    @patch("churros.cli._backend")
    def test_no_tasks(self, mock_backend, mock_due, runner):
        result = runner.invoke(main, ["tasks", "--date", "2025-01-15"])
        assert "No tasks for Wednesday, Jan 15." in result.output

    def test_bad_date(self, runner):
        result = runner.invoke(main, ["tasks", "--date", "2025-13-40"])
        assert result.exit_code == 2
        assert "Invalid value for '--date'" in result.output

    def test_complete_bad_date(self, runner):
        result = runner.invoke(main, ["complete", "t1", "--user", "u1", "--date", "15/01/2025"])
        assert result.exit_code == 2
        assert "Invalid value for '--date'" in result.output


class TestBillsCommand:
    @patch("churros.cli.date")
    @patch("churros.cli.fetch_open_bills")
    @patch("churros.cli._backend")
    def test_list_groups_bills(self, mock_backend, mock_fetch, mock_date, runner):
        mock_date.today.return_value = date(2025, 1, 15)
        mock_fetch.return_value = [
            Bill(id="b1", description="Luz", amount=180.5, due_date=date(2025, 1, 10), recurrence_type="variable"),
            Bill(id="b2", description="Aluguel", amount=1500, due_date=date(2025, 1, 20), recurrence_type="fixed"),
            Bill(
                id="b3",
                description="Freezer (2/4)",
                amount=250,
                due_date=date(2025, 2, 5),
                recurrence_type="installment",
                installment_current=2,
                installment_total=4,
            ),
        ]

        result = runner.invoke(main, ["bills", "list"])

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0] == "Overdue (R$ 180,50)"
        assert "Luz [Variável]" in lines[1]
        assert lines[2] == "Due in the next 7 days"
        assert "Aluguel [Fixo]" in lines[3]
        assert lines[4] == "Upcoming"
        assert "Freezer (2/4) [2/4]" in lines[5]

    @patch("churros.cli.fetch_open_bills", return_value=[])
    @patch("churros.cli._backend")
    def test_list_empty(self, mock_backend, mock_fetch, runner):
        result = runner.invoke(main, ["bills", "list"])
        assert "No bills to pay." in result.output

    @patch("churros.cli.pay_bill")
    @patch("churros.cli._backend")
    def test_pay_parses_brl_amount(self, mock_backend, mock_pay, runner):
        mock_pay.return_value = Bill(id="b2", description="Aluguel", amount=1500, due_date=date(2025, 2, 28))

        result = runner.invoke(main, ["bills", "pay", "b1", "1.500,00", "--user", "u1"])

        assert result.exit_code == 0
        assert mock_pay.call_args.args[2] == 1500.0
        assert "Next bill due 28/02/2025." in result.output

    @patch("churros.cli.pay_bill", side_effect=InvalidBill("Bill b1 is already paid"))
    @patch("churros.cli._backend")
    def test_pay_failure(self, mock_backend, mock_pay, runner):
        result = runner.invoke(main, ["bills", "pay", "b1", "10", "--user", "u1"])
        assert result.exit_code == 1
        assert "already paid" in result.output

    @patch("churros.cli.add_recurring_expense")
    @patch("churros.cli._backend")
    def test_add_variable_expense(self, mock_backend, mock_add, runner):
        mock_add.return_value = Bill(
            id="b9", description="Água", amount=0, due_date=date(2025, 2, 10), recurrence_type="variable"
        )

        result = runner.invoke(main, ["bills", "add-recurring", "Água", "Contas", "--due-day", "10", "--user", "u1"])

        assert result.exit_code == 0
        assert mock_add.call_args.args[-1] is None
        assert "first due 10/02/2025" in result.output

    def test_add_recurring_rejects_bad_day(self, runner):
        result = runner.invoke(main, ["bills", "add-recurring", "Água", "Contas", "--due-day", "32", "--user", "u1"])
        assert result.exit_code == 2

    def test_add_installments_bad_first_due(self, runner):
        result = runner.invoke(
            main,
            ["bills", "add-installments", "Freezer", "Equipamentos", "1000", "4", "--first-due", "amanhã", "--user", "u1"],
        )
        assert result.exit_code == 2
        assert "Invalid value for '--first-due'" in result.output


@patch("churros.cli.load_config", return_value=Config(ai_api_key="k"))
def test_insights_rejects_non_object_payload(mock_load, runner, tmp_path):
    payload = tmp_path / "figures.json"
    payload.write_text("[1, 2, 3]")

    result = runner.invoke(main, ["insights", str(payload)])

    assert result.exit_code == 1
    assert "Invalid figures: Request body must be a JSON object" in result.output


class TestEmployeeCommand:
    @patch("churros.cli.create_employee", return_value="u1")
    @patch("churros.cli._backend")
    def test_creates(self, mock_backend, mock_create, runner):
        result = runner.invoke(main, ["employee", "a@b.c", "Ana", "--password", "pw"])
        assert result.exit_code == 0
        assert "Employee created: u1" in result.output
        mock_create.assert_called_once_with(mock_backend.return_value, "a@b.c", "pw", "Ana", None)

    @patch("churros.cli.create_employee", side_effect=ProvisioningError("email taken"))
    @patch("churros.cli._backend")
    def test_failure(self, mock_backend, mock_create, runner):
        result = runner.invoke(main, ["employee", "a@b.c", "Ana", "--password", "pw"])
        assert result.exit_code == 1
        assert "email taken" in result.output


@patch("churros.cli._backend")
def test_categories_tree(mock_backend, runner):
    mock_backend.return_value = MagicMock()
    mock_backend.return_value.select.return_value = [
        {"id": "d", "name": "Doces", "parent_id": None, "sort_order": 0},
        {"id": "c", "name": "Churros", "parent_id": "d", "sort_order": 0},
    ]

    result = runner.invoke(main, ["categories"])

    assert result.output.splitlines() == ["Doces", "  └ Churros"]
