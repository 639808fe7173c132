"""
URL patterns for the payment API (mounted under /api/payments/).
"""

from django.urls import path

from . import api_views

app_name = 'payments'

urlpatterns = [
    path('', api_views.PaymentAPIListView.as_view(), name='list'),
    path('verify/', api_views.PaymentAPIVerifyView.as_view(), name='verify'),
    path('webhook/', api_views.PaymentWebhookView.as_view(), name='webhook'),
    path('emi-calculator/', api_views.EMICalculatorView.as_view(), name='emi_calculator'),
    path('<str:pk>/', api_views.PaymentAPIDetailView.as_view(), name='detail'),

    # Admin actions
    path('<str:pk>/status/', api_views.PaymentAPIStatusView.as_view(), name='status'),
    path('<str:pk>/refund/', api_views.PaymentAPIRefundView.as_view(), name='refund'),
    path('<str:pk>/refund/status/', api_views.PaymentAPIRefundStatusView.as_view(), name='refund_status'),
    path('<str:pk>/invoice/', api_views.PaymentAPIInvoiceView.as_view(), name='invoice'),
]
