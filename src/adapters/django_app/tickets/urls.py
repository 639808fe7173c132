"""
URL patterns for the ticket API (mounted under /api/tickets/).
"""

from django.urls import path

from . import api_views

app_name = 'tickets'

urlpatterns = [
    path('', api_views.TicketAPIListView.as_view(), name='list'),
    path('<str:pk>/', api_views.TicketAPIDetailView.as_view(), name='detail'),

    # Lifecycle actions
    path('<str:pk>/comments/', api_views.TicketAPICommentView.as_view(), name='comment'),
    path('<str:pk>/assign/', api_views.TicketAPIAssignView.as_view(), name='assign'),
    path('<str:pk>/request-info/', api_views.TicketAPIRequestInfoView.as_view(), name='request_info'),
    path('<str:pk>/resolve/', api_views.TicketAPIResolveView.as_view(), name='resolve'),
    path('<str:pk>/close/', api_views.TicketAPICloseView.as_view(), name='close'),
    path('<str:pk>/reopen/', api_views.TicketAPIReopenView.as_view(), name='reopen'),
    path('<str:pk>/rate/', api_views.TicketAPIRateView.as_view(), name='rate'),
]
