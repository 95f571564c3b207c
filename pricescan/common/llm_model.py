from functools import lru_cache

from langchain_openai import ChatOpenAI

from pricescan.settings.db_settings import settings


@lru_cache
def get_llm() -> ChatOpenAI:
    """Built on first use so the app starts without an OpenAI key."""
    return ChatOpenAI(
        model=settings.OPENAI_MODEL,
        api_key=settings.OPENAI_API_KEY or None,
        temperature=0.2,
    )
