"""Chat message assembly and the chat-completion call.

The caller owns the conversation history. We only insert one system
message carrying the retrieved context right before the last user
message, then forward everything to an OpenAI-compatible endpoint.
"""

import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI

from feedsync.config import require_setting
from feedsync.store import CatalogStore

from shopassist.config import (
    LLM_BASE_URL,
    LLM_MAX_TOKENS,
    LLM_MODEL,
    LLM_TEMPERATURE,
    LLM_TIMEOUT,
    RESPONSE_LANGUAGE,
)
from shopassist.logging_utils import log_interaction
from shopassist.rag import process_query

__all__ = [
    "ChatCompletionError",
    "get_last_user_message",
    "build_system_message",
    "insert_context_message",
    "create_client",
    "call_chat_completion",
    "answer_chat",
]

logger = logging.getLogger(__name__)

Message = Dict[str, Any]


class ChatCompletionError(Exception):
    """The completion service failed or returned an unusable response."""
    pass


def _message_text(content: Any) -> str:
    """Text of a message whose content is a string or a list of parts."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return " ".join(
            part.get("text", "") for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        ).strip()
    return ""


def get_last_user_message(messages: List[Message]) -> str:
    """Text of the most recent user message, or "" when there is none."""
    for message in reversed(messages or []):
        if isinstance(message, dict) and message.get("role") == "user":
            return _message_text(message.get("content"))
    return ""


def build_system_message(context: str, extra_context: str = "", language: str = RESPONSE_LANGUAGE) -> str:
    """Wrap the context block with the grounding rules for the model."""
    combined = context
    if extra_context:
        combined += f"\n\nADDITIONAL INFORMATION:\n{extra_context}"

    return f"""IMPORTANT - use EXACTLY this product information:

{combined}

RULES:
- Quote ONLY prices that appear in this context
- For every product you mention, state its exact price and availability
- If a product is not listed, say we do not carry it or could not find it
- Never invent prices or products
- Answer in {language}"""


def insert_context_message(messages: List[Message], content: str) -> List[Message]:
    """Copy of ``messages`` with a system message before the last user message.

    Without a user message, or with empty ``content``, the copy is
    returned unchanged.
    """
    enhanced = list(messages)
    if not content:
        return enhanced
    for index in range(len(enhanced) - 1, -1, -1):
        if isinstance(enhanced[index], dict) and enhanced[index].get("role") == "user":
            enhanced.insert(index, {"role": "system", "content": content})
            break
    return enhanced


def create_client() -> OpenAI:
    """OpenAI client for the configured endpoint.

    Raises:
        ConfigError: If no API key is configured
    """
    return OpenAI(
        api_key=require_setting("LLM_API_KEY", "API_KEY"),
        base_url=LLM_BASE_URL,
        timeout=LLM_TIMEOUT,
    )


def call_chat_completion(messages: List[Message], client: Optional[OpenAI] = None) -> Dict[str, Any]:
    """Send ``messages`` to the chat-completion endpoint.

    Returns:
        The completion as a JSON-serializable dict

    Raises:
        ConfigError: If no API key is configured
        ChatCompletionError: If the call fails
    """
    client = client or create_client()

    log_interaction("llm_call", {"model": LLM_MODEL, "message_count": len(messages)})
    try:
        completion = client.chat.completions.create(
            model=LLM_MODEL,
            messages=messages,
            temperature=LLM_TEMPERATURE,
            max_tokens=LLM_MAX_TOKENS,
            stream=False,
        )
    except Exception as e:
        log_interaction("llm_error", {"model": LLM_MODEL, "error": str(e)})
        logger.exception("Error calling chat completion")
        raise ChatCompletionError(str(e)) from e

    data = completion.model_dump()
    choices = data.get("choices") or []
    answer = choices[0].get("message", {}).get("content") if choices else None
    log_interaction("llm_response", {"model": LLM_MODEL, "raw_response": answer})
    return data


def answer_chat(
    messages: List[Message],
    rag_context: str = "",
    store: Optional[CatalogStore] = None,
    client: Optional[OpenAI] = None,
) -> Dict[str, Any]:
    """Full chat turn: retrieve, insert context, call the model.

    Returns:
        Completion dict with a ``_debug`` block describing retrieval
    """
    query = get_last_user_message(messages)
    rag = process_query(query, store=store)
    logger.info(f"RAG: intent={rag.intent} matched={len(rag.products)} by={rag.matched_by}")

    system_message = build_system_message(rag.context, rag_context) if rag.context else ""
    enhanced = insert_context_message(messages, system_message)

    data = call_chat_completion(enhanced, client=client)
    data["_debug"] = {
        "intent": rag.intent,
        "strategy": rag.strategy,
        "matchedBy": rag.matched_by,
        "terms": rag.terms,
        "matchedProducts": len(rag.products),
        "topProducts": rag.top_products(),
        "contextLength": len(system_message),
    }
    return data
