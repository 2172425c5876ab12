"""Chat and message API routes."""

from datetime import datetime

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel
from starlette.datastructures import UploadFile

from ...app import Application
from ...models import AttachmentFile, ContainerMetrics, Message, SyncResult


class AttachmentResponse(BaseModel):
    """Response model for an attachment descriptor."""

    id: str | None
    file_name: str
    file_size: int
    file_type: str


class MessageResponse(BaseModel):
    """Response model for a message."""

    id: str
    chat_id: str
    user_id: str
    content: str
    created_at: datetime
    status: str
    local_id: str | None
    attachments: list[AttachmentResponse]


class ChatResponse(BaseModel):
    """Response model for a chat with its unread badge."""

    id: str
    name: str
    is_group: bool
    participants: list[str]
    last_message_at: datetime | None
    unread_count: int


class OpenChatResponse(BaseModel):
    """Response model for opening a chat."""

    chat_id: str
    messages: list[MessageResponse]


class SendMessageRequest(BaseModel):
    """JSON request model for sending a message."""

    content: str = ""


class SendResponse(BaseModel):
    """Outcome of a send or retry; a failed send still returns its entry."""

    success: bool
    error: str | None = None
    message: MessageResponse | None = None


class ReconcileResponse(BaseModel):
    """Response model for a manual refresh."""

    new_messages: list[MessageResponse]


class ScrollMetricsRequest(BaseModel):
    """Scroll container geometry reported by the UI."""

    scroll_top: float
    scroll_height: float
    client_height: float


class ScrollStateResponse(BaseModel):
    """Response model for scroll state."""

    is_near_bottom: bool
    user_has_scrolled_away: bool


class UnreadCountsResponse(BaseModel):
    """Response model for unread counts."""

    counts: dict[str, int]
    total: int


def _raise_for(result: SyncResult) -> None:
    if result.success:
        return
    status_code = 404 if result.status_code == 404 else 500
    raise HTTPException(status_code=status_code, detail=result.error)


def _send_response(result: SyncResult) -> dict:
    if not result.success and result.data is None:
        # Rejected before anything was queued
        status_code = 404 if result.status_code == 404 else 400
        raise HTTPException(status_code=status_code, detail=result.error)

    message = result.data if isinstance(result.data, Message) else None
    return {
        "success": result.success,
        "error": result.error,
        "message": message.to_dict() if message else None,
    }


def create_messaging_router(app: Application) -> APIRouter:
    """Create messaging router."""
    router = APIRouter(prefix="/api", tags=["messaging"])

    @router.get("/chats", response_model=list[ChatResponse])
    async def list_chats(
        is_group: bool | None = Query(None, description="Only group or private chats"),
    ) -> list[dict]:
        """List known chats, most recent activity first."""
        try:
            controller = app.controller
            return [
                {**chat.to_dict(), "unread_count": controller.unread.get(chat.id)}
                for chat in controller.list_chats(is_group=is_group)
            ]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/chats/refresh", response_model=list[ChatResponse])
    async def refresh_chats() -> list[dict]:
        """Reload chats and unread counts from the backend."""
        try:
            controller = app.controller
            _raise_for(await controller.load_chats())
            _raise_for(await controller.refresh_unread_counts())
            return [
                {**chat.to_dict(), "unread_count": controller.unread.get(chat.id)}
                for chat in controller.list_chats()
            ]
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.get("/chats/unread-counts", response_model=UnreadCountsResponse)
    async def get_unread_counts() -> dict:
        """Current unread badges."""
        unread = app.controller.unread
        return {"counts": unread.snapshot(), "total": unread.total()}

    @router.post("/chats/close")
    async def close_chat() -> dict:
        """Navigate away from the active chat."""
        await app.controller.close_chat()
        return {"status": "ok"}

    @router.post("/chats/{chat_id}/open", response_model=OpenChatResponse)
    async def open_chat(chat_id: str) -> dict:
        """Make a chat active and load its history."""
        try:
            result = await app.controller.open_chat(chat_id)
            _raise_for(result)
            return {
                "chat_id": chat_id,
                "messages": [m.to_dict() for m in app.controller.get_messages(chat_id)],
            }
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.get("/chats/{chat_id}/messages", response_model=list[MessageResponse])
    async def get_messages(chat_id: str) -> list[dict]:
        """Local ordered view of a chat, including pending and failed entries."""
        return [m.to_dict() for m in app.controller.get_messages(chat_id)]

    @router.post("/chats/{chat_id}/messages", response_model=SendResponse)
    async def send_message(chat_id: str, request: Request) -> dict:
        """Send a message as JSON ``{"content"}`` or multipart with ``attachments[]``."""
        content_type = request.headers.get("content-type", "")
        files: list[AttachmentFile] = []

        if content_type.startswith("multipart/form-data"):
            form = await request.form()
            content = str(form.get("content") or "")
            for upload in form.getlist("attachments[]"):
                if isinstance(upload, UploadFile):
                    files.append(
                        AttachmentFile(
                            file_name=upload.filename or "attachment",
                            content=await upload.read(),
                            content_type=upload.content_type or "application/octet-stream",
                        )
                    )
        else:
            try:
                content = SendMessageRequest.model_validate(await request.json()).content
            except ValueError:
                raise HTTPException(status_code=400, detail="Invalid request body")

        try:
            result = await app.controller.send_message(chat_id, content, files)
            return _send_response(result)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/chats/{chat_id}/messages/{local_id}/retry", response_model=SendResponse)
    async def retry_message(chat_id: str, local_id: str) -> dict:
        """Retry a failed message."""
        try:
            return _send_response(await app.controller.retry_send(chat_id, local_id))
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.delete("/chats/{chat_id}/messages/{local_id}")
    async def discard_message(chat_id: str, local_id: str) -> dict:
        """Drop a failed message."""
        if not await app.controller.discard_failed(chat_id, local_id):
            raise HTTPException(status_code=404, detail="Failed message not found")
        return {"status": "ok"}

    @router.post("/chats/{chat_id}/reconcile", response_model=ReconcileResponse)
    async def reconcile(chat_id: str, force: bool = Query(True)) -> dict:
        """Manual refresh of a chat."""
        try:
            result = await app.controller.reconcile(chat_id, force=force)
            _raise_for(result)
            return {"new_messages": [m.to_dict() for m in result.data or []]}
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/chats/{chat_id}/scroll", response_model=ScrollStateResponse)
    async def update_scroll(chat_id: str, request: ScrollMetricsRequest) -> dict:
        """Report scroll container geometry."""
        state = app.controller.update_scroll(
            chat_id,
            ContainerMetrics(
                scroll_top=request.scroll_top,
                scroll_height=request.scroll_height,
                client_height=request.client_height,
            ),
        )
        return {
            "is_near_bottom": state.is_near_bottom,
            "user_has_scrolled_away": state.user_has_scrolled_away,
        }

    return router
