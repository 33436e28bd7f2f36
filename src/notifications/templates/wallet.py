"""Wallet templates: credits and upcoming expiry."""

from notifications.notification.notification import NotificationChannel
from notifications.templates.base import ChannelContent, NotificationTemplate


class WalletCreditedTemplate(NotificationTemplate):
    template_id = "wallet-credited"
    variables = ("customer_name", "amount", "new_balance", "bill_ref")
    channels = {
        NotificationChannel.EMAIL.value: ChannelContent(
            subject="{amount} added to your wallet",
            body=(
                "Hi {customer_name},\n\n"
                "{amount} was credited to your wallet for bill {bill_ref}.\n"
                "Your new balance is {new_balance}.\n"
            ),
        ),
        NotificationChannel.PUSH.value: ChannelContent(
            subject="Wallet credited",
            body="{amount} added. Balance: {new_balance}",
        ),
        NotificationChannel.SMS.value: ChannelContent(
            body="{amount} credited to your wallet. New balance {new_balance}.",
        ),
    }


class WalletExpiringTemplate(NotificationTemplate):
    template_id = "wallet-expiring"
    variables = ("customer_name", "amount", "expiry_date")
    channels = {
        NotificationChannel.EMAIL.value: ChannelContent(
            subject="Your wallet balance expires on {expiry_date}",
            body=(
                "Hi {customer_name},\n\n"
                "{amount} in your wallet expires on {expiry_date}. "
                "Use it on your next visit.\n"
            ),
        ),
        NotificationChannel.PUSH.value: ChannelContent(
            subject="Wallet balance expiring",
            body="{amount} expires on {expiry_date}",
        ),
    }
