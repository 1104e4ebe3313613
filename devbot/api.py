from __future__ import annotations

import logging

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .models import ChatRequest, ChatResponse, ErrorResponse
from .service import ChatService


CHAT_ERROR = "メッセージの処理中にエラーが発生しました。"

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.api_title, version=settings.api_version)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_methods=["POST", "GET", "OPTIONS"],
    allow_headers=["Content-Type"],
)

router = APIRouter(prefix="/api", tags=["chat"])


@app.get("/healthz")
async def healthz() -> dict:
    return {"status": "ok"}


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={500: {"model": ErrorResponse}},
)
async def chat(request: Request):
    # Body is parsed by hand so malformed JSON gets the same 500 payload as any other failure
    try:
        req = ChatRequest.model_validate(await request.json())
        answer = await ChatService.instance().ask(req.message)
        return ChatResponse(response=answer)
    except Exception as e:
        logger.exception("Chat API error: %s", e)
        return JSONResponse(
            status_code=500, content=ErrorResponse(error=CHAT_ERROR).model_dump()
        )


app.include_router(router)
