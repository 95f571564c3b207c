from datetime import datetime, timezone as dt_timezone
from functools import lru_cache
from typing import Annotated, Any, Dict, List, Optional, Sequence, TypedDict
from zoneinfo import ZoneInfo

from langchain_core.messages import AIMessage, BaseMessage, RemoveMessage, SystemMessage, trim_messages
from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool, tool
from langgraph.checkpoint.memory import InMemorySaver
from langgraph.graph import END, StateGraph, add_messages
from langgraph.prebuilt import ToolNode

from pricescan.common.auth import is_anonymous_id
from pricescan.common.catalog import best_price_of
from pricescan.common.eco import eco_score_label
from pricescan.common.llm_model import get_llm
from pricescan.common.pricing import calculate_savings, format_price, parse_price
from pricescan.db import CRUD
from pricescan.db.database import SessionLocal
from pricescan.settings.config import AGENT_PROMPT

# messages per thread kept in memory and sent to the model; above the recursion limit
MAX_HISTORY_MESSAGES = 40
RECURSION_LIMIT = 25

@tool
def get_current_time(timezone: Optional[str] = "UTC") -> dict:
    """
    Return the current date and time.

    Args:
      - timezone: IANA zone name (e.g. 'America/New_York'). Unknown zones fall back to UTC.
    """
    tz = dt_timezone.utc
    tz_name = "UTC"
    if timezone:
        try:
            tz = ZoneInfo(timezone)
            tz_name = timezone
        except (KeyError, ValueError):
            tz = dt_timezone.utc
    now = datetime.now(tz)
    return {
        "result": now.isoformat(),
        "timezone": tz_name,
        "date": now.date().isoformat(),
        "weekday": now.strftime("%A"),
    }

class AgentState(TypedDict):
    messages: Annotated[Sequence[BaseMessage], add_messages]

@tool  # type: ignore
def find_product(product_name: str) -> List[Dict[str, Any]]:
    """
    Find products in the catalogue by (partial) name or brand.
    Returns up to 5 matches with barcode and best known price.
    """
    with SessionLocal() as db:
        out = []
        for p in CRUD.search_products(db, product_name, limit=5):
            best = best_price_of(p)
            out.append({
                "barcode": p.barcode,
                "name": p.name,
                "brand": p.brand,
                "best_price": best.price if best else None,
            })
        return out

@tool
def get_best_price(barcode: str) -> Optional[Dict[str, Any]]:
    """
    Price comparison for one product by barcode.
    Returns every retailer's price, the cheapest retailer, the savings and the eco score, or None.
    """
    with SessionLocal() as db:
        product = CRUD.get_product_by_barcode(db, barcode.strip())
        if product is None:
            return None
        best = best_price_of(product)
        return {
            "name": product.name,
            "brand": product.brand,
            "prices": {p.retailer.name: p.price for p in product.prices},
            "best_price": best.price if best else None,
            "best_retailer": best.retailer.name if best else None,
            "savings": calculate_savings(list(product.prices), key=lambda p: p.price),
            "eco_score": product.eco_score,
            "eco_label": eco_score_label(product.eco_score),
        }

@tool
def get_shopping_list_summary(config: RunnableConfig) -> Dict[str, Any]:
    """
    The current user's shopping list with an estimated total.
    Uses the user's own unit price when set, else the best known price.
    """
    user_id = (config.get("configurable") or {}).get("thread_id")
    with SessionLocal() as db:
        items = CRUD.get_shopping_list(db, None if is_anonymous_id(user_id) else user_id)
        lines = []
        total = 0.0
        for it in items:
            best = best_price_of(it.product)
            unit = parse_price(it.unit_price) if it.unit_price else None
            if unit is None and best is not None:
                unit = parse_price(best.price)
            if unit is not None and not it.completed:
                total += unit * it.quantity
            lines.append({
                "name": it.product.name,
                "quantity": it.quantity,
                "unit_price": format_price(unit) if unit is not None else None,
                "completed": it.completed,
            })
        return {"items": lines, "estimated_total": format_price(total)}

tools: List[BaseTool] = [
    find_product,
    get_best_price,
    get_shopping_list_summary,
    get_current_time,
]

def build_agent():
    llm = get_llm().bind_tools(tools)

    def model_call(state: AgentState) -> AgentState:
        history = list(state["messages"])
        recent = recent_messages(history)
        kept = {m.id for m in recent}
        stale = [RemoveMessage(id=m.id) for m in history if m.id not in kept]
        response = llm.invoke([SystemMessage(content=AGENT_PROMPT)] + recent)
        return {"messages": stale + [response]}

    graph = StateGraph(AgentState)
    graph.add_node("agent", model_call)
    graph.add_node("tools", ToolNode(tools))
    graph.set_entry_point("agent")
    graph.add_conditional_edges("agent", should_continue, {"continue": "tools", "end": END})
    graph.add_edge("tools", "agent")
    return graph.compile(checkpointer=InMemorySaver())

def recent_messages(messages: List[BaseMessage]) -> List[BaseMessage]:
    """Tail of the thread, starting on a user turn so tool calls keep their results."""
    return trim_messages(
        messages,
        strategy="last",
        token_counter=len,
        max_tokens=MAX_HISTORY_MESSAGES,
        start_on="human",
    )

def should_continue(state: AgentState) -> str:
    last = state["messages"][-1]
    if isinstance(last, AIMessage) and last.tool_calls:
        return "continue"
    return "end"

@lru_cache
def get_agent():
    """Compiled once per process; FastAPI dependency, overridden in tests."""
    return build_agent()

def ask_agent(agent: Any, user_id: str, message: str) -> str:
    config = {
        "configurable": {"thread_id": user_id},
        "recursion_limit": RECURSION_LIMIT,
    }
    answer = agent.invoke({"messages": [("user", message)]}, config=config)
    return answer["messages"][-1].content
