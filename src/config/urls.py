"""
Root URL configuration.

- /admin/            Django admin
- /api/tickets/      Ticket API
- /api/payments/     Payment API (including the gateway webhook)
- /api/statistics/   Statistics API (admin)
- /health/           Liveness plus database check
"""

from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path

from src.adapters.django_app.shared.database import check_database_connection


def health(request):
    database = check_database_connection()
    return JsonResponse(
        {'status': 'ok' if database['healthy'] else 'degraded', 'database': database},
        status=200 if database['healthy'] else 503,
    )


urlpatterns = [
    path('admin/', admin.site.urls),

    path('api/tickets/', include('src.adapters.django_app.tickets.urls')),
    path('api/payments/', include('src.adapters.django_app.payments.urls')),
    path('api/statistics/', include('src.adapters.django_app.statistics.urls')),

    path('health/', health, name='health'),
]
