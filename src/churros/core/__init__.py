"""Functional core - pure business logic with no I/O."""

from .recurrence import (
    InvalidDescriptor,
    RecurrenceDescriptor,
    RecurrenceKind,
    WeekParity,
    is_due,
    due_dates,
)
from .tasks import Task, TaskCompletion, is_task_due_on, tasks_for_date
from .notifications import Notification, UserNotification, is_notification_due, select_due
from .coupons import Coupon, CouponRules, suggest_loyalty_coupon, render_coupon_message, template_for
from .bills import Bill, BillSchedule, InvalidBill, group_bills, next_occurrence
from .categories import Category, CategoryNode, build_tree, select_options
from .insights import InsightsRequest, InvalidPayload, build_insights_prompt

__all__ = [
    # Recurrence
    "InvalidDescriptor",
    "RecurrenceDescriptor",
    "RecurrenceKind",
    "WeekParity",
    "is_due",
    "due_dates",
    # Tasks
    "Task",
    "TaskCompletion",
    "is_task_due_on",
    "tasks_for_date",
    # Notifications
    "Notification",
    "UserNotification",
    "is_notification_due",
    "select_due",
    # Coupons
    "Coupon",
    "CouponRules",
    "suggest_loyalty_coupon",
    "render_coupon_message",
    "template_for",
    # Bills
    "Bill",
    "BillSchedule",
    "InvalidBill",
    "group_bills",
    "next_occurrence",
    # Categories
    "Category",
    "CategoryNode",
    "build_tree",
    "select_options",
    # Insights
    "InsightsRequest",
    "InvalidPayload",
    "build_insights_prompt",
]
