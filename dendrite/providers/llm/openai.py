"""
OpenAI LLM Provider (LangChain-based)

Implements LLMProvider using LangChain's ChatOpenAI.

Supports:
    - Text generation (generate): recommendations, query expansion
    - Structured output with Pydantic schemas (generate_structured):
      skill extraction, profile synthesis, tag classification

Every call emits a CostUsageRecord to the active cost collector. When the
response carries no usage metadata, tokens are estimated with tiktoken.

Example:
    >>> provider = OpenAILLMProvider(model="gpt-5-mini")
    >>> result = await provider.generate_structured(prompt, SkillExtractionResponse)
    >>> [s.skill_name for s in result.skills]
    ['Redis troubleshooting']
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, TypeVar

from dendrite.providers.base import LLMProvider
from dendrite.types.results import CostUsageRecord
from dendrite.utils.cost_telemetry import current_stage, estimate_cost_usd, record_usage
from dendrite.utils.token_count import count_chat_tokens, count_text_tokens

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage
    from langchain_openai import ChatOpenAI
    from pydantic import BaseModel

T = TypeVar("T", bound="BaseModel")


def _as_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _extract_token_usage(response: Any) -> tuple[int | None, int | None, int | None]:
    """
    Extract token usage from LangChain response metadata.

    Returns:
        (input_tokens, output_tokens, total_tokens)
    """
    if response is None:
        return None, None, None

    usage = getattr(response, "usage_metadata", None)
    if isinstance(usage, dict):
        input_tokens = _as_int(usage.get("input_tokens") or usage.get("prompt_tokens"))
        output_tokens = _as_int(usage.get("output_tokens") or usage.get("completion_tokens"))
        total_tokens = _as_int(usage.get("total_tokens"))
        if any(v is not None for v in (input_tokens, output_tokens, total_tokens)):
            return input_tokens, output_tokens, total_tokens

    response_metadata = getattr(response, "response_metadata", None)
    if isinstance(response_metadata, dict):
        token_usage = response_metadata.get("token_usage") or response_metadata.get("usage")
        if isinstance(token_usage, dict):
            return (
                _as_int(token_usage.get("input_tokens") or token_usage.get("prompt_tokens")),
                _as_int(token_usage.get("output_tokens") or token_usage.get("completion_tokens")),
                _as_int(token_usage.get("total_tokens")),
            )

    return None, None, None


def _get_chat_openai(
    api_key: str | None = None,
    model: str = "gpt-5-mini",
    temperature: float = 0.0,
) -> "ChatOpenAI":
    """Create a ChatOpenAI client (imported lazily so tests never touch it)."""
    from langchain_openai import ChatOpenAI

    kwargs: dict[str, Any] = {"model": model, "temperature": temperature}
    if api_key:
        kwargs["api_key"] = api_key
    return ChatOpenAI(**kwargs)


def _build_messages(prompt: str, system: str | None) -> list["BaseMessage"]:
    from langchain_core.messages import HumanMessage, SystemMessage

    messages: list[BaseMessage] = []
    if system:
        messages.append(SystemMessage(content=system))
    messages.append(HumanMessage(content=prompt))
    return messages


class OpenAILLMProvider(LLMProvider):
    """
    OpenAI LLM provider implementation using LangChain.

    Args:
        api_key: OpenAI API key. If None, uses OPENAI_API_KEY environment variable.
        model: Model to use
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-5-mini",
    ) -> None:
        self._api_key = api_key
        self._model = model

    @property
    def model_name(self) -> str:
        return self._model

    def _record_call(
        self,
        *,
        operation: str,
        prompt: str,
        system: str | None,
        output_text: str,
        raw_response: Any,
        started_ns: int,
        metadata: dict[str, Any],
    ) -> None:
        input_tokens, output_tokens, total_tokens = _extract_token_usage(raw_response)
        estimated = False

        if input_tokens is None:
            chat_messages = [system, prompt] if system else [prompt]
            input_tokens = count_chat_tokens(chat_messages, self._model)
            estimated = True
        if output_tokens is None:
            output_tokens = count_text_tokens(output_text, self._model)
            estimated = True
        if total_tokens is None:
            total_tokens = input_tokens + output_tokens

        estimated_cost, pricing_found = estimate_cost_usd(self._model, input_tokens, output_tokens)
        elapsed_ms = (time.perf_counter_ns() - started_ns) // 1_000_000

        record_usage(
            CostUsageRecord(
                provider="openai",
                model=self._model,
                operation=operation,
                stage=current_stage(),
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=total_tokens,
                estimated_cost_usd=estimated_cost,
                latency_ms=int(elapsed_ms),
                estimated=estimated,
                metadata={**metadata, "pricing_found": pricing_found},
            )
        )

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> str:
        """
        Generate a text completion.

        Args:
            prompt: User prompt/question
            system: Optional system message for context
            temperature: Sampling temperature (0.0 = deterministic)
            max_tokens: Maximum tokens in response

        Returns:
            Generated text response
        """
        start = time.perf_counter_ns()

        client = _get_chat_openai(
            api_key=self._api_key,
            model=self._model,
            temperature=temperature,
        ).bind(max_tokens=max_tokens)

        response = await client.ainvoke(_build_messages(prompt, system))
        output_text = str(response.content)

        self._record_call(
            operation="generate",
            prompt=prompt,
            system=system,
            output_text=output_text,
            raw_response=response,
            started_ns=start,
            metadata={"temperature": temperature, "max_tokens": max_tokens},
        )
        return output_text

    async def generate_structured(
        self,
        prompt: str,
        schema: type[T],
        *,
        system: str | None = None,
    ) -> T:
        """
        Generate a structured response matching a Pydantic schema.

        Uses LangChain's with_structured_output. ``include_raw=True`` keeps
        the raw message around so its usage metadata can be recorded.
        """
        start = time.perf_counter_ns()

        client = _get_chat_openai(
            api_key=self._api_key,
            model=self._model,
            temperature=0.0,
        )
        structured_client = client.with_structured_output(schema, include_raw=True)
        result_obj = await structured_client.ainvoke(_build_messages(prompt, system))

        raw_response: Any = None
        if isinstance(result_obj, dict) and "parsed" in result_obj:
            result = result_obj["parsed"]
            raw_response = result_obj.get("raw")
            if result is None and result_obj.get("parsing_error") is not None:
                raise result_obj["parsing_error"]
        else:
            result = result_obj

        output_text = (
            result.model_dump_json()
            if hasattr(result, "model_dump_json")
            else str(result)
        )
        self._record_call(
            operation="generate_structured",
            prompt=prompt,
            system=system,
            output_text=output_text,
            raw_response=raw_response,
            started_ns=start,
            metadata={"schema": getattr(schema, "__name__", str(schema))},
        )
        return result  # type: ignore[return-value]
