import asyncio
import json
import logging
import time

from openai import AsyncOpenAI

from core.config import COLLABORATOR_TIMEOUT_SEC, LLM_RETRIES, OPENAI_API_KEY
from interview_room.errors import TransientCollaboratorError
from interview_room.system_metrics import observe_collaborator_latency_ms, record_collaborator_failure

logger = logging.getLogger("interview_room.collaborators.llm")

_client: AsyncOpenAI | None = None


def get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        _client = AsyncOpenAI(api_key=OPENAI_API_KEY or None)
    return _client


async def call_bounded(name: str, factory, timeout_sec: float = COLLABORATOR_TIMEOUT_SEC, retries: int = LLM_RETRIES):
    """Await ``factory()`` under a timeout; raise TransientCollaboratorError once attempts run out."""
    last_error: Exception | None = None
    for attempt in range(max(1, retries + 1)):
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(factory(), timeout=timeout_sec)
            observe_collaborator_latency_ms((time.perf_counter() - started) * 1000.0)
            return result
        except asyncio.TimeoutError as exc:
            last_error = exc
            logger.warning("%s timeout | attempt=%s", name, attempt + 1)
        except TransientCollaboratorError:
            raise
        except Exception as exc:
            last_error = exc
            logger.warning("%s failure | attempt=%s err=%s", name, attempt + 1, exc)

        if attempt < retries:
            await asyncio.sleep(0.35 * (attempt + 1))

    record_collaborator_failure(name)
    raise TransientCollaboratorError(name, f"{name} unavailable: {last_error}")


async def chat_text(
    name: str,
    system_prompt: str,
    user_prompt: str,
    model: str,
    temperature: float = 0.7,
    max_tokens: int = 400,
) -> str:
    async def _create():
        return await get_client().chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )

    response = await call_bounded(name, _create)
    text = str(response.choices[0].message.content or "").strip()
    if not text:
        raise TransientCollaboratorError(name, f"{name} returned empty text")
    return text


async def chat_json(
    name: str,
    system_prompt: str,
    user_prompt: str,
    model: str,
    temperature: float = 0.3,
    max_tokens: int = 800,
) -> dict:
    async def _create():
        return await get_client().chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            response_format={"type": "json_object"},
        )

    response = await call_bounded(name, _create)
    raw = str(response.choices[0].message.content or "{}").strip() or "{}"
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        record_collaborator_failure(name)
        raise TransientCollaboratorError(name, f"{name} returned invalid JSON") from exc
    if not isinstance(data, dict):
        raise TransientCollaboratorError(name, f"{name} returned non-object JSON")
    return data
