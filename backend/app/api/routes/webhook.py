from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.core.errors import InvalidSignatureError
from app.core.logging import get_logger
from app.deps import NotifierDep, PaymentGatewayDep, RedisDep, SessionDep
from app.services import PaymentService

router = APIRouter(prefix="/webhook", tags=["webhook"])
logger = get_logger(__name__)


@router.post("/paystack")
async def paystack_webhook(
    request: Request,
    session: SessionDep,
    gateway: PaymentGatewayDep,
    notifier: NotifierDep,
    redis: RedisDep,
) -> Any:
    """
    Paystack event delivery. The signature is checked against the raw body
    bytes, so the payload must not be parsed before verification.
    """
    raw_body = await request.body()
    signature = request.headers.get("x-paystack-signature")

    try:
        result = await PaymentService(session, gateway, notifier, redis).handle_webhook(
            raw_body, signature
        )
    except InvalidSignatureError as e:
        return JSONResponse(status_code=400, content={"status": False, "message": e.message})

    logger.debug("webhook_acknowledged", result=result)
    return {"status": True}
