from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from starlette.requests import Request

from pricescan.api.v1.errors import server_error
from pricescan.common.auth import chat_id
from pricescan.common.logger import logger
from pricescan.common.Schemas.product_schemas import ChatMessageOut, ChatRequest, ChatResponse
from pricescan.common.tools.ReAct_agent import ask_agent, get_agent
from pricescan.db import CRUD
from pricescan.db.database import get_db

router: APIRouter = APIRouter()

# ---------------- Chat ---------------- #

@router.get("/chat/{user_id}", response_model=List[ChatMessageOut], tags=["Chat"])
async def get_chat_history(user_id: str, db: Session = Depends(get_db)) -> Any:
    try:
        return CRUD.get_chat_history(db, user_id)
    except Exception as e:
        raise server_error("Chat history", e)


@router.post("/chat", response_model=ChatResponse, tags=["Chat"])
def chat(
    payload: ChatRequest,
    request: Request,
    db: Session = Depends(get_db),
    agent: Any = Depends(get_agent),
) -> ChatResponse:
    thread = payload.user_id or chat_id(request)
    try:
        CRUD.add_chat_message(db, thread, payload.message, is_user=True)
        answer = ask_agent(agent, thread, payload.message)
        logger.info("Chat %s: %s -> %s", thread, payload.message, answer)
        CRUD.add_chat_message(db, thread, answer, is_user=False)
        return ChatResponse(response=answer, user_id=thread)
    except Exception as e:
        raise server_error("Chat", e)


@router.delete("/chat/{user_id}", tags=["Chat"])
async def clear_chat_history(user_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    try:
        CRUD.clear_chat_history(db, user_id)
        return {"success": True}
    except Exception as e:
        raise server_error("Clear chat", e)
