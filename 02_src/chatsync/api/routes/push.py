"""Push ingest route: the broker bridge posts MessageSent broadcasts here."""

from typing import Any

from fastapi import APIRouter, Body, HTTPException
from pydantic import BaseModel

from ...app import Application
from ...logging_config import get_logger

logger = get_logger(__name__)


class PushResponse(BaseModel):
    """Response model for an ingested push."""

    status: str
    message_id: str
    chat_id: str


def create_push_router(app: Application) -> APIRouter:
    """Create push router."""
    router = APIRouter(prefix="/api", tags=["push"])

    @router.post("/push", response_model=PushResponse)
    async def ingest_push(payload: Any = Body(...)) -> dict:
        """Deliver a broadcast payload to the chat and inbox subscribers."""
        transport = app.transport
        if not hasattr(transport, "ingest_push"):
            raise HTTPException(
                status_code=404, detail="Push ingest not supported by this transport"
            )

        try:
            message = await transport.ingest_push(payload)
        except Exception as e:
            logger.error("Push ingest failed: %s", e, exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

        if message is None:
            raise HTTPException(status_code=400, detail="Unrecognized push payload")
        return {"status": "ok", "message_id": message.id, "chat_id": message.chat_id}

    return router
