"""
JSON API for payments.

Endpoints:
- GET  /api/payments/                        List payments
- POST /api/payments/                        Initiate payment
- POST /api/payments/verify/                 Verify a gateway checkout
- POST /api/payments/webhook/                Gateway notification (signed, no actor)
- GET  /api/payments/emi-calculator/         EMI quote
- GET  /api/payments/<id>/                   Payment detail
- POST /api/payments/<id>/status/            Update status (admin)
- POST /api/payments/<id>/refund/            Initiate refund (admin)
- POST /api/payments/<id>/refund/status/     Update refund status (admin)
- POST /api/payments/<id>/invoice/           Generate invoice (admin)
"""

import json
import logging

from django.http import HttpRequest, JsonResponse

from src.core.payments.dtos import (
    GatewayWebhookInputDTO,
    InitiatePaymentInputDTO,
    ListPaymentsQueryDTO,
    RefundPaymentInputDTO,
    UpdatePaymentStatusInputDTO,
    UpdateRefundStatusInputDTO,
    VerifyPaymentInputDTO,
)
from src.core.payments.emi import calculate_emi
from src.core.shared.exceptions import ValidationError

from ..shared.api import BaseAPIView, json_response, query_int

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = 'HTTP_X_RAZORPAY_SIGNATURE'


def _require(data: dict, *names: str) -> None:
    for name in names:
        if data.get(name) in (None, ''):
            raise ValidationError(f"{name} is required", field=name)


class PaymentAPIListView(BaseAPIView):
    """
    GET  /api/payments/ - list
    POST /api/payments/ - initiate
    """

    def get(self, request: HttpRequest) -> JsonResponse:
        """
        Query params:
        - status, type, project_id
        - page (default 1), per_page (default 20, max 100)
        """
        try:
            actor = self.get_actor(request)
            query = ListPaymentsQueryDTO(
                status=request.GET.get('status') or None,
                payment_type=request.GET.get('type') or None,
                project_id=request.GET.get('project_id') or None,
                page=query_int(request, 'page', 1),
                per_page=query_int(request, 'per_page', 20),
            )
            page = self.get_service('list_payments_service').execute(actor, query).to_dict()
            items = page.pop('items')
            return json_response(success=True, data=items, meta=page)

        except Exception as e:
            return self.handle_exception(e)

    def post(self, request: HttpRequest) -> JsonResponse:
        """
        Body:
        {
            "project_id": "string (required)",
            "amount": "decimal (required)",
            "type": "booking|down_payment|emi|full_payment|other",
            "method": "card|bank_transfer|upi|cash|cheque",
            "currency": "INR",
            "metadata": {"unit_number": "...", "installment_number": 1, ...},
            "notes": "string"
        }
        """
        try:
            actor = self.get_actor(request)
            data = self.parse_body(request)
            _require(data, 'project_id', 'amount')

            input_dto = InitiatePaymentInputDTO(
                project_id=data['project_id'],
                amount=data['amount'],
                payment_type=data.get('type', 'other'),
                method=data.get('method', 'bank_transfer'),
                currency=data.get('currency') or 'INR',
                metadata=data.get('metadata') or {},
                notes=data.get('notes'),
            )
            output = self.get_service('initiate_payment_service').execute(actor, input_dto)

            logger.info("API: payment %s initiated", output.id)
            return json_response(success=True, data=output.to_dict(), status=201)

        except Exception as e:
            return self.handle_exception(e)


class PaymentAPIDetailView(BaseAPIView):

    def get(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            actor = self.get_actor(request)
            output = self.get_service('get_payment_service').execute(actor, pk)
            return json_response(success=True, data=output.to_dict())

        except Exception as e:
            return self.handle_exception(e)


class PaymentAPIVerifyView(BaseAPIView):

    def post(self, request: HttpRequest) -> JsonResponse:
        """
        Body (as returned by the checkout widget):
        {"order_id": "...", "payment_id": "...", "signature": "..."}
        """
        try:
            actor = self.get_actor(request)
            data = self.parse_body(request)
            _require(data, 'order_id', 'payment_id')

            output = self.get_service('verify_payment_service').execute(
                actor,
                VerifyPaymentInputDTO(
                    order_id=data['order_id'],
                    payment_id=data['payment_id'],
                    signature=data.get('signature'),
                ),
            )
            return json_response(success=True, data=output.to_dict())

        except Exception as e:
            return self.handle_exception(e)


class PaymentAPIStatusView(BaseAPIView):

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        """
        Body:
        {"status": "processing|success|failed", "reason": "...", "transaction_id": "..."}
        """
        try:
            actor = self.get_actor(request)
            data = self.parse_body(request)
            _require(data, 'status')

            output = self.get_service('update_payment_status_service').execute(
                actor,
                UpdatePaymentStatusInputDTO(
                    payment_id=pk,
                    status=data['status'],
                    reason=data.get('reason'),
                    transaction_id=data.get('transaction_id'),
                ),
            )
            logger.info("API: payment %s set to %s", pk, output.status)
            return json_response(success=True, data=output.to_dict())

        except Exception as e:
            return self.handle_exception(e)


class PaymentAPIRefundView(BaseAPIView):

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        """
        Body:
        {"amount": "decimal (required)", "reason": "string (required)"}
        """
        try:
            actor = self.get_actor(request)
            data = self.parse_body(request)
            _require(data, 'amount', 'reason')

            output = self.get_service('initiate_refund_service').execute(
                actor, RefundPaymentInputDTO(payment_id=pk, amount=data['amount'], reason=data['reason'])
            )
            return json_response(success=True, data=output.to_dict())

        except Exception as e:
            return self.handle_exception(e)


class PaymentAPIRefundStatusView(BaseAPIView):

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        """
        Body:
        {"status": "processing|completed|failed", "refund_id": "...", "reason": "..."}
        """
        try:
            actor = self.get_actor(request)
            data = self.parse_body(request)
            _require(data, 'status')

            output = self.get_service('update_refund_status_service').execute(
                actor,
                UpdateRefundStatusInputDTO(
                    payment_id=pk,
                    status=data['status'],
                    refund_id=data.get('refund_id'),
                    reason=data.get('reason'),
                ),
            )
            return json_response(success=True, data=output.to_dict())

        except Exception as e:
            return self.handle_exception(e)


class PaymentAPIInvoiceView(BaseAPIView):

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            actor = self.get_actor(request)
            output = self.get_service('generate_invoice_service').execute(actor, pk)
            return json_response(success=True, data=output.to_dict())

        except Exception as e:
            return self.handle_exception(e)


class PaymentWebhookView(BaseAPIView):
    """
    Gateway callback. Authenticated by the body signature, not by an actor.

    Always answers 200 for events we do not handle so the gateway stops
    retrying them.
    """

    def post(self, request: HttpRequest) -> JsonResponse:
        try:
            try:
                data = json.loads(request.body or b'{}')
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise ValidationError(f"Invalid JSON: {e}", field="body")
            if not isinstance(data, dict):
                raise ValidationError("JSON body must be an object", field="body")

            payment_id = self.get_service('process_webhook_service').execute(
                GatewayWebhookInputDTO(
                    body=request.body,
                    signature=request.META.get(SIGNATURE_HEADER),
                    event=data.get('event', ''),
                    payload=data.get('payload') or {},
                )
            )
            return json_response(success=True, data={'payment_id': payment_id})

        except Exception as e:
            return self.handle_exception(e)


class EMICalculatorView(BaseAPIView):

    def get(self, request: HttpRequest) -> JsonResponse:
        """
        Query params:
        - principal: loan amount
        - rate: yearly interest in percent
        - tenure: months
        """
        try:
            quote = calculate_emi(
                request.GET.get('principal'),
                request.GET.get('rate', '0'),
                request.GET.get('tenure'),
            )
            return json_response(success=True, data=quote.to_dict())

        except Exception as e:
            return self.handle_exception(e)
