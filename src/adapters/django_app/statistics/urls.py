"""
URL patterns for the statistics API (mounted under /api/statistics/).
"""

from django.urls import path

from . import api_views

app_name = 'statistics'

urlpatterns = [
    path('tickets/', api_views.TicketStatisticsView.as_view(), name='tickets'),
    path('payments/', api_views.PaymentStatisticsView.as_view(), name='payments'),
    path('emi-defaulters/', api_views.EMIDefaultersView.as_view(), name='emi_defaulters'),
]
