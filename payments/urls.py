from django.urls import path
from . import views

urlpatterns = [
	path('webhooks/curlec/', views.CurlecWebhookView.as_view(), name='curlec_webhook'),
]
