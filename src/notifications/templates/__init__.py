"""Template registry: maps template ids to template classes."""

from notifications.channel.errors import TemplateNotFoundError
from notifications.templates.billing import BillCreatedTemplate, HighValueSaleTemplate
from notifications.templates.operations import (
    DailySalesReportTemplate,
    IncentiveEarnedTemplate,
    LowStockAlertTemplate,
    SystemAlertTemplate,
)
from notifications.templates.wallet import WalletCreditedTemplate, WalletExpiringTemplate

BUILTIN_TEMPLATES = (
    BillCreatedTemplate,
    HighValueSaleTemplate,
    WalletCreditedTemplate,
    WalletExpiringTemplate,
    LowStockAlertTemplate,
    DailySalesReportTemplate,
    IncentiveEarnedTemplate,
    SystemAlertTemplate,
)


class TemplateRegistry:
    """Template lookup by id. Instances are independent; no module-level state is mutated."""

    def __init__(self, templates=BUILTIN_TEMPLATES):
        self._templates = {t.template_id: t for t in templates}

    def register(self, template_cls):
        self._templates[template_cls.template_id] = template_cls
        return template_cls

    def has(self, template_id):
        return template_id in self._templates

    def get(self, template_id):
        template_cls = self._templates.get(template_id)
        if template_cls is None:
            raise TemplateNotFoundError(template_id)
        return template_cls

    def render(self, template_id, channel, context):
        return self.get(template_id).render(channel, context)
