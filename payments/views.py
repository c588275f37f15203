import logging
from collections.abc import Mapping

from django.db import DatabaseError
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from rest_framework import status

from .reconciliation import WebhookOutcome, handle_curlec_webhook

logger = logging.getLogger(__name__)


class CurlecWebhookView(APIView):
	"""Gateway callback. Answers 200 for every handled outcome so the gateway stops retrying."""
	permission_classes = [AllowAny]
	authentication_classes = []

	def post(self, request):
		data = request.data
		if hasattr(data, "dict"):
			payload = data.dict()
		elif isinstance(data, Mapping):
			payload = dict(data)
		else:
			# Arrays and scalars are passed through and rejected as malformed
			payload = data

		signature = request.META.get("HTTP_X_CURLEC_SIGNATURE")
		if not signature and isinstance(payload, dict):
			signature = payload.pop("signature", None)

		try:
			outcome = handle_curlec_webhook(payload, signature)
		except DatabaseError as e:
			logger.exception(f"Curlec webhook storage failure: {e}")
			return Response(
				{"error": "Temporary failure, please retry delivery"},
				status=status.HTTP_500_INTERNAL_SERVER_ERROR,
			)

		if outcome is WebhookOutcome.INVALID_SIGNATURE:
			return Response({"error": "Invalid signature"}, status=status.HTTP_401_UNAUTHORIZED)

		return Response({"status": "ok"}, status=status.HTTP_200_OK)
