"""Back-office templates: stock alerts, reports, incentives and system alerts."""

from notifications.notification.notification import NotificationChannel
from notifications.templates.base import ChannelContent, NotificationTemplate


class LowStockAlertTemplate(NotificationTemplate):
    template_id = "low-stock-alert"
    variables = ("product_name", "current_stock", "branch_name")
    channels = {
        NotificationChannel.EMAIL.value: ChannelContent(
            subject="[Low Stock] {product_name} at {branch_name}",
            body=(
                "Low stock alert\n\n"
                "Product: {product_name}\n"
                "Branch: {branch_name}\n"
                "Current stock: {current_stock}\n\n"
                "Please review and reorder as needed."
            ),
        ),
        NotificationChannel.IN_APP.value: ChannelContent(
            subject="Low stock: {product_name}",
            body="{product_name} is down to {current_stock} at {branch_name}.",
        ),
    }


class DailySalesReportTemplate(NotificationTemplate):
    template_id = "daily-sales-report"
    variables = ("branch_name", "date", "total_sales", "total_bills")
    channels = {
        NotificationChannel.EMAIL.value: ChannelContent(
            subject="Daily sales report: {branch_name} ({date})",
            body=(
                "Sales summary for {branch_name} on {date}\n\n"
                "Total sales: {total_sales}\n"
                "Bills: {total_bills}\n"
            ),
        ),
    }


class IncentiveEarnedTemplate(NotificationTemplate):
    template_id = "incentive-earned"
    variables = ("staff_name", "amount", "period")
    channels = {
        NotificationChannel.IN_APP.value: ChannelContent(
            subject="Incentive earned",
            body="Well done {staff_name}! You earned {amount} in incentives for {period}.",
        ),
        NotificationChannel.PUSH.value: ChannelContent(
            subject="Incentive earned",
            body="You earned {amount} for {period}",
        ),
        NotificationChannel.EMAIL.value: ChannelContent(
            subject="You earned {amount} in incentives",
            body="Hi {staff_name},\n\nYou earned {amount} in incentives for {period}.\n",
        ),
    }


class SystemAlertTemplate(NotificationTemplate):
    template_id = "system-alert"
    variables = ("title", "message")
    channels = {
        NotificationChannel.EMAIL.value: ChannelContent(subject="[System] {title}", body="{message}"),
        NotificationChannel.PUSH.value: ChannelContent(subject="{title}", body="{message}"),
        NotificationChannel.SMS.value: ChannelContent(body="{title}: {message}"),
        NotificationChannel.IN_APP.value: ChannelContent(subject="{title}", body="{message}"),
    }
