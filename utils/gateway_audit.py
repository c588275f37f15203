# utils/gateway_audit.py
from typing import Optional, Dict, Any

from payments.models import GatewayRecord

CURLEC_PROVIDER = "curlec"


def record_gateway_interaction(
    *,
    direction: str,
    payload: Optional[Dict[str, Any]],
    external_ref: Optional[str] = None,
    status_code: Optional[int] = None,
    response: Any = None,
    provider: str = CURLEC_PROVIDER,
) -> GatewayRecord:
    """Append one audit row for a request to, or a webhook from, the gateway."""
    return GatewayRecord.objects.create(
        provider=provider,
        direction=direction,
        external_ref=str(external_ref)[:100] if external_ref else None,
        payload=payload if isinstance(payload, dict) else {"raw": payload},
        response=response,
        status_code=status_code,
    )
