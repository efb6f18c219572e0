"""
Development webhook sink.

Accepts deliveries produced by the webhook worker and logs them, so the
whole pipeline can be exercised against a single running instance by
pointing WEBHOOK_URL at this route.
"""

import structlog
from fastapi import APIRouter, Request
from pydantic import ValidationError

from ...services.webhooks.tasks import DeliveryEnvelope

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.api_route("/echo", methods=["GET", "POST"])
async def echo_webhook(request: Request) -> dict:
    body = await request.body()
    if not body:
        logger.info("Webhook received", method=request.method, body=False)
        return {"status": "ok"}

    try:
        envelope = DeliveryEnvelope.model_validate_json(body)
    except ValidationError as e:
        logger.warning("Webhook received with unexpected body", error=str(e))
        return {"status": "ok", "recognized": False}

    logger.info(
        "Webhook received",
        method=request.method,
        check_id=str(envelope.payload.check_id),
        user_id=envelope.payload.user_id,
        detected=len(envelope.payload.detected_incidents),
        sent_at=envelope.sent_at.isoformat(),
    )
    return {"status": "ok", "recognized": True}
