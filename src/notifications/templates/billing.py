"""Billing templates: receipt to the customer, high-value alert to managers."""

from notifications.notification.notification import NotificationChannel
from notifications.templates.base import ChannelContent, NotificationTemplate


class BillCreatedTemplate(NotificationTemplate):
    template_id = "bill-created"
    variables = ("customer_name", "bill_number", "amount", "store_name", "bill_date")
    channels = {
        NotificationChannel.EMAIL.value: ChannelContent(
            subject="Your bill {bill_number} from {store_name}",
            body=(
                "Hi {customer_name},\n\n"
                "Thank you for shopping at {store_name}.\n"
                "Bill number: {bill_number}\n"
                "Amount: {amount}\n"
                "Date: {bill_date}\n"
            ),
        ),
        NotificationChannel.SMS.value: ChannelContent(
            body="{store_name}: bill {bill_number} for {amount} created. Thank you for shopping with us!",
        ),
    }


class HighValueSaleTemplate(NotificationTemplate):
    template_id = "high-value-sale"
    variables = ("bill_number", "amount", "sales_person")
    channels = {
        NotificationChannel.IN_APP.value: ChannelContent(
            subject="High-value sale {bill_number}",
            body="Bill {bill_number} for {amount} was created by {sales_person}.",
        ),
        NotificationChannel.PUSH.value: ChannelContent(
            subject="High-value sale",
            body="{sales_person} billed {amount} ({bill_number})",
        ),
    }
