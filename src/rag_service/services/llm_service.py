"""LLM service for answer generation using LiteLLM.

Provides a plain-text interface over LiteLLM's `acompletion`: one call that
returns the whole answer and one that streams text fragments.
"""

import os
from typing import Any, AsyncIterator, Dict, List, Optional

from litellm import acompletion
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from rag_service.config import Settings, get_settings
from rag_service.utils.errors import GenerationError
from rag_service.utils.logging import get_logger

logger = get_logger("llm_service")


def _field(obj: Any, name: str) -> Any:
    """Read a field from either a LiteLLM object or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def extract_message_text(response: Any) -> str:
    """Pull the assistant text out of a non-streaming completion response."""
    choices = _field(response, "choices") or []
    if not choices:
        return ""
    message = _field(choices[0], "message")
    content = _field(message, "content") if message is not None else None
    if content is None:
        return ""
    return content if isinstance(content, str) else str(content)


def extract_delta_text(chunk: Any) -> str:
    """Pull the incremental text out of one streaming chunk."""
    choices = _field(chunk, "choices") or []
    if not choices:
        return ""
    delta = _field(choices[0], "delta")
    content = _field(delta, "content") if delta is not None else None
    if content is None:
        return ""
    return content if isinstance(content, str) else str(content)


class LLMService:
    """Service for chat-completion calls.

    Handles:
    - Default model with optional fallback model
    - Retry with exponential backoff for non-streaming calls
    - Streaming responses re-exposed as text fragments
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.default_model = self.settings.llm.default_model_name
        self.fallback_model = self.settings.llm.fallback_model_name
        self.enable_fallbacks = self.settings.llm.enable_fallbacks

        self._configure_litellm_environment()

    def _configure_litellm_environment(self) -> None:
        """Export provider keys from settings; LiteLLM reads them from the environment."""
        llm = self.settings.llm
        env_map = {
            "OPENAI_API_KEY": llm.openai_api_key,
            "ANTHROPIC_API_KEY": llm.anthropic_api_key,
            "GEMINI_API_KEY": llm.gemini_api_key,
            "AZURE_API_KEY": llm.azure_api_key,
            "AZURE_API_BASE": llm.azure_api_base,
            "AZURE_API_VERSION": llm.azure_api_version,
        }
        for key, value in env_map.items():
            if value:
                os.environ[key] = value

        logger.debug("LiteLLM environment variables configured")

    def _models(self) -> List[str]:
        models = [self.default_model]
        if self.enable_fallbacks and self.fallback_model and self.fallback_model != self.default_model:
            models.append(self.fallback_model)
        return models

    def _messages(self, prompt: str) -> List[Dict[str, str]]:
        return [{"role": "user", "content": prompt}]

    async def _call_llm(self, model: str, prompt: str, stream: bool) -> Any:
        """Call LiteLLM once.

        Raises:
            GenerationError: If the call fails.
        """
        try:
            logger.debug(f"Calling LLM model: {model}, stream={stream}")
            return await acompletion(
                model=model,
                messages=self._messages(prompt),
                stream=stream,
                temperature=self.settings.llm.temperature,
                max_tokens=self.settings.llm.max_tokens,
            )
        except Exception as e:
            logger.error(
                f"LLM call failed for model {model}: {e}",
                extra={"model": model, "error_type": type(e).__name__},
            )
            raise GenerationError(
                message=f"LLM call failed: {str(e)}",
                model=model,
                details={"error_type": type(e).__name__, "error_message": str(e)},
            ) from e

    async def _call_with_retry(self, model: str, prompt: str) -> Any:
        async for attempt in AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self.settings.llm.llm_max_retries)),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            retry=retry_if_exception_type(GenerationError),
        ):
            with attempt:
                return await self._call_llm(model, prompt, stream=False)
        raise GenerationError("LLM retries exhausted", model=model)

    async def generate(self, prompt: str) -> str:
        """Generate a complete answer for a prompt.

        Tries the default model, then the fallback model when enabled.

        Raises:
            GenerationError: If every model fails.
        """
        errors: List[str] = []
        for model in self._models():
            try:
                response = await self._call_with_retry(model, prompt)
            except GenerationError as e:
                errors.append(f"{model}: {e.message}")
                logger.warning(f"Model {model} failed, trying next model if configured")
                continue
            logger.info(f"Generated response using model: {model}")
            return extract_message_text(response)

        raise GenerationError(
            message=f"All models failed. {'; '.join(errors)}",
            model=self.default_model,
            details={"errors": errors},
        )

    async def generate_stream(self, prompt: str) -> AsyncIterator[str]:
        """Stream an answer as text fragments.

        The fallback model is only tried when opening the stream fails; errors
        after the first fragment propagate to the consumer.
        """
        response = None
        last_error: Optional[GenerationError] = None
        for model in self._models():
            try:
                response = await self._call_llm(model, prompt, stream=True)
                break
            except GenerationError as e:
                last_error = e
                logger.warning(f"Opening stream on model {model} failed: {e.message}")
        if response is None:
            raise last_error or GenerationError("No model available", model=self.default_model)

        try:
            async for chunk in response:
                text = extract_delta_text(chunk)
                if text:
                    yield text
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"Streaming failed: {e}", model=self.default_model) from e
        finally:
            close = getattr(response, "aclose", None)
            if close is not None:
                try:
                    await close()
                except Exception as close_error:
                    logger.debug(f"Closing LLM stream failed: {close_error}")

