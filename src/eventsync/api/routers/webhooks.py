"""Webhook delivery endpoint.

``POST /webhooks`` accepts a JSON array of ``{"type", "data"}`` batches.
Checks run in this order, each one short-circuiting:

====  ==============================================  ======
Step  Condition                                        Status
====  ==============================================  ======
1     body is not a JSON array of objects              400
2     non-empty delivery without a known batch type    404
3     shared secret not configured                     503
3     secret header missing or wrong                   401
4     empty delivery                                   400
5     stale or duplicate event                         404
6     dispatched: all ok / mixed / all failed          200 / 207 / 500
====  ==============================================  ======
"""

from __future__ import annotations

import hmac
import json
import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from eventsync.api.deps import WebhookServices, get_webhook_services
from eventsync.config import WebhookConfig
from eventsync.core.logging import set_delivery_context
from eventsync.core.telemetry import sync_span
from eventsync.dispatch import EnvelopeError, has_handled_batch, parse_envelope
from eventsync.models import DeliveryReport
from eventsync.outcome import Err

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _authenticate(request: Request, webhook: WebhookConfig) -> JSONResponse | None:
    if not webhook.is_configured:
        logger.warning("Webhook secret not configured; rejecting delivery")
        return _error(503, "Webhook not configured")

    provided = request.headers.get(webhook.secret_header)
    if not provided or not hmac.compare_digest(
        provided.encode("utf-8"), webhook.secret.encode("utf-8")
    ):
        logger.warning("Webhook delivery with missing or invalid secret")
        return _error(401, "Unauthorized")
    return None


def _report_response(report: DeliveryReport) -> tuple[JSONResponse, str]:
    topics = [result.model_dump(mode="json") for result in report.results]
    errors = [error.model_dump(mode="json", exclude_none=True) for error in report.errors]

    if errors and not topics:
        return JSONResponse(status_code=500, content={"success": False, "errors": errors}), "failed"

    body: dict[str, Any] = {"success": True, "processed": len(topics), "topics": topics}
    if errors:
        body["errors"] = errors
        return JSONResponse(status_code=207, content=body), "partial"
    return JSONResponse(status_code=200, content=body), "ok"


@router.post("")
async def receive_webhook(
    request: Request,
    services: WebhookServices = Depends(get_webhook_services),
) -> Response:
    """Authenticate, fence and apply one webhook delivery."""
    delivery_id = uuid.uuid4().hex
    set_delivery_context(delivery_id)

    with sync_span("eventsync.delivery", delivery_id=delivery_id):
        try:
            batches = parse_envelope(json.loads(await request.body()))
        except (json.JSONDecodeError, UnicodeDecodeError, EnvelopeError) as exc:
            logger.info("Rejecting malformed delivery: %s", exc)
            services.metrics.record_delivery("rejected")
            return _error(400, "Invalid payload")

        if batches and not has_handled_batch(batches):
            logger.info("Ignoring delivery without a handled batch type")
            services.metrics.record_delivery("rejected")
            return Response(status_code=404)

        rejection = _authenticate(request, services.webhook)
        if rejection is not None:
            services.metrics.record_delivery("rejected")
            return rejection

        if not batches:
            services.metrics.record_delivery("rejected")
            return _error(400, "Empty payload")

        gate = await services.gate.check(batches)
        if isinstance(gate, Err):
            services.metrics.record_delivery("stale")
            return Response(status_code=404)

        report = await services.dispatcher.dispatch(batches)
        response, outcome = _report_response(report)
        logger.info(
            "Delivery processed: %d result(s), %d error(s)",
            len(report.results),
            len(report.errors),
        )
        services.metrics.record_delivery(outcome)
        return response
