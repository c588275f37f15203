"""
URL configuration for khholdings project.
"""
from django.urls import path, include

from .health import HealthCheckView


urlpatterns = [
    path('health/', HealthCheckView.as_view(), name='health_check'),
    path('payments/', include('payments.urls')),
]
