"""
Invoice adapters.

- HtmlInvoiceRenderer: renders the invoice with the Django template
  engine and stores it through a Django storage backend
- DjangoPartyDirectory: customer snapshots from the auth user table;
  projects are known by id only (the catalog lives elsewhere)
"""

import logging
from typing import Any, Dict, Optional

from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from django.core.files.storage import Storage, default_storage
from django.template import Context, Engine

from src.core.payments.entities import RECEIPT_NUMBER_PREFIX
from src.core.payments.ports import InvoiceSnapshot, RenderedInvoice

logger = logging.getLogger(__name__)

INVOICE_NUMBER_PREFIX = "INV"

INVOICE_TEMPLATE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Invoice {{ number }}</title></head>
<body>
  <h1>Invoice {{ number }}</h1>
  <p>Receipt: {{ payment.receipt_number }}<br>Paid at: {{ payment.paid_at }}</p>
  <h2>Billed to</h2>
  <p>{{ customer.name|default:customer.id }}{% if customer.email %}<br>{{ customer.email }}{% endif %}</p>
  <h2>Project</h2>
  <p>{{ project.name|default:project.id }}{% if project.metadata.unit_number %}, unit {{ project.metadata.unit_number }}{% endif %}</p>
  <table>
    <tr><th>Description</th><th>Method</th><th>Amount</th></tr>
    <tr>
      <td>{{ payment.payment_type }}{% if payment.metadata.installment_number %} (instalment {{ payment.metadata.installment_number }}{% if payment.metadata.total_installments %} of {{ payment.metadata.total_installments }}{% endif %}){% endif %}</td>
      <td>{{ payment.method }}</td>
      <td>{{ payment.currency }} {{ payment.amount }}</td>
    </tr>
  </table>
  {% if payment.gateway.transaction_id %}<p>Transaction: {{ payment.gateway.transaction_id }}</p>{% endif %}
</body>
</html>
"""


def invoice_number_for(payment: Dict[str, Any]) -> str:
    """
    INV + the digits of the receipt number.

    Example:
        invoice_number_for({"receipt_number": "REC202405000012"})  # "INV202405000012"
    """
    receipt = payment.get("receipt_number")
    if receipt and receipt.startswith(RECEIPT_NUMBER_PREFIX):
        return INVOICE_NUMBER_PREFIX + receipt[len(RECEIPT_NUMBER_PREFIX):]
    return INVOICE_NUMBER_PREFIX + payment["id"].replace("-", "")[:12].upper()


class HtmlInvoiceRenderer:
    """
    Example:
        renderer = HtmlInvoiceRenderer()
        rendered = renderer.render(InvoiceSnapshot(payment=..., customer=..., project=...))
        rendered.url  # "/media/invoices/INV202405000012.html"
    """

    def __init__(self, storage: Optional[Storage] = None, directory: str = "invoices"):
        self._storage = storage or default_storage
        self._directory = directory.strip("/")
        self._template = Engine(autoescape=True).from_string(INVOICE_TEMPLATE)

    def render(self, snapshot: InvoiceSnapshot) -> RenderedInvoice:
        number = invoice_number_for(snapshot.payment)
        html = self._template.render(Context({
            "number": number,
            "payment": snapshot.payment,
            "customer": snapshot.customer,
            "project": {**snapshot.project, "metadata": snapshot.payment.get("metadata") or {}},
        }))

        name = self._storage.save(f"{self._directory}/{number}.html", ContentFile(html.encode("utf-8")))
        url = self._storage.url(name)
        logger.debug("Invoice %s stored at %s", number, name)
        return RenderedInvoice(number=number, url=url, content=html)


class DjangoPartyDirectory:
    """Party snapshots for invoices. Unknown customers degrade to id only."""

    def customer_snapshot(self, customer_id: str) -> Dict[str, Any]:
        User = get_user_model()
        try:
            user = User.objects.get(pk=customer_id)
        except (User.DoesNotExist, ValueError, TypeError):
            logger.debug("Customer %s not in the user table", customer_id)
            return {"id": customer_id}
        return {
            "id": customer_id,
            "name": user.get_full_name() or user.get_username(),
            "email": user.email,
        }

    def project_snapshot(self, project_id: str) -> Dict[str, Any]:
        return {"id": project_id}
