"""Backend communication with OpenAI-compatible chat completion endpoints."""

from typing import TYPE_CHECKING, Dict, List, Tuple

import requests

if TYPE_CHECKING:
    from .rag.models import SearchResult

NO_RESULTS_MESSAGE = (
    "I couldn't find any relevant information to answer your question. "
    "Please try rephrasing your query or asking about different topics."
)
EMPTY_RESPONSE_MESSAGE = "Sorry, I could not generate a response."

SYSTEM_PROMPT_TEMPLATE = """You are a helpful AI assistant that answers questions based on web content that has been scraped and indexed.

Your task is to:
1. Answer the user's question based ONLY on the provided context
2. Always cite your sources using the source URLs
3. Be concise but comprehensive
4. If the context doesn't contain enough information, say so clearly
5. Format your response in a clear, readable way

Context from web scraping:
{context}"""


def call_chat_completion(messages: List[Dict], config, temperature: float = 0.7, max_tokens: int = 1000):
    """Call the chat completion endpoint."""
    endpoint = f"{config.OPENAI_BASE_URL.rstrip('/')}/chat/completions"

    payload = {
        "model": config.CHAT_MODEL,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    headers = {"Authorization": f"Bearer {config.require_api_key()}"}

    # Set timeout as tuple (connect_timeout, read_timeout)
    timeout = (config.BACKEND_CONNECT_TIMEOUT, config.BACKEND_READ_TIMEOUT)

    response = requests.post(endpoint, json=payload, headers=headers, timeout=timeout)
    response.raise_for_status()
    return response


def build_context(results: List["SearchResult"], max_results: int = 5, max_chars: int = 1000) -> str:
    """Format the top results as numbered, source-attributed context blocks."""
    blocks = []
    for index, result in enumerate(results[:max_results], 1):
        document = result.document
        content = document.content[:max_chars]
        ellipsis = "..." if len(document.content) > max_chars else ""
        blocks.append(f"[{index}] Source: {document.title} ({document.url})\nContent: {content}{ellipsis}")
    return "\n\n".join(blocks)


def generate_chat_response(
    query: str, results: List["SearchResult"], config, max_results: int = 5, max_chars: int = 1000
) -> str:
    """Answer ``query`` from already-retrieved results.

    Returns a fixed message without calling the model when there are no
    results, and an explanatory error text when the backend times out or is
    unreachable.
    """
    if not results:
        return NO_RESULTS_MESSAGE

    context = build_context(results, max_results=max_results, max_chars=max_chars)
    messages = [
        {"role": "system", "content": SYSTEM_PROMPT_TEMPLATE.format(context=context)},
        {"role": "user", "content": query},
    ]

    try:
        response = call_chat_completion(
            messages, config, temperature=config.CHAT_TEMPERATURE, max_tokens=config.CHAT_MAX_TOKENS
        )
    except requests.Timeout:
        return (
            f"Error: Backend request timed out after {config.BACKEND_READ_TIMEOUT}s. "
            "The model may be overloaded or unresponsive."
        )
    except requests.ConnectionError:
        return f"Error: Could not connect to the language model at {config.OPENAI_BASE_URL}. Please ensure it is reachable."

    choice = response.json().get("choices", [{}])[0]
    content = (choice.get("message") or {}).get("content")
    return content or EMPTY_RESPONSE_MESSAGE


def check_openai_health(config, timeout: int = 5) -> Tuple[bool, str]:
    """Check if the OpenAI-compatible backend is reachable and serves the configured models.

    Args:
        config: ServerConfig instance
        timeout: Request timeout in seconds

    Returns:
        Tuple of (is_healthy: bool, message: str)
    """
    try:
        endpoint = f"{config.OPENAI_BASE_URL.rstrip('/')}/models"
        headers = {"Authorization": f"Bearer {config.OPENAI_API_KEY}"}
        response = requests.get(endpoint, headers=headers, timeout=timeout)
        response.raise_for_status()

        data = response.json()
        model_ids = {model.get("id", "") for model in data.get("data", [])}
        missing = [name for name in (config.EMBEDDING_MODEL, config.CHAT_MODEL) if name not in model_ids]

        if missing:
            return False, f"Backend is reachable but model(s) not available: {', '.join(missing)}"
        return True, f"Backend is healthy. Models '{config.EMBEDDING_MODEL}' and '{config.CHAT_MODEL}' are available."

    except requests.Timeout:
        return False, f"Backend health check timed out after {timeout}s. Backend may be unresponsive."
    except requests.ConnectionError:
        return False, f"Cannot connect to backend at {config.OPENAI_BASE_URL}. Is it reachable?"
    except Exception as e:
        return False, f"Backend health check failed: {e!s}"
