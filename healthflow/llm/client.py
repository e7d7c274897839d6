"""
OpenAI-compatible chat model client.

The runtime only sees ``ainvoke(messages) -> AIMessage``; retries and
timeouts are handled by the underlying SDK client.
"""

from typing import Any, Dict, List, Optional
import logging

from openai import AsyncOpenAI

from healthflow.config import LLMSettings, Settings, settings as default_settings
from healthflow.messages import AIMessage, BaseMessage, to_openai_message


logger = logging.getLogger(__name__)


class ChatModel:
    """Chat-completions client bound to one model endpoint."""

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.0,
        timeout: float = 60.0,
        max_retries: int = 2,
        client: Optional[Any] = None,
    ):
        """
        Initialize the chat model.

        Args:
            model: Model or endpoint identifier
            api_key: API key for the endpoint
            base_url: Base URL of the OpenAI-compatible API
            temperature: Sampling temperature
            timeout: Request timeout in seconds
            max_retries: Retry attempts made by the SDK
            client: Pre-built AsyncOpenAI-like client (used instead of creating one)
        """
        self.model = model
        self.temperature = temperature
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )

    @classmethod
    def from_settings(
        cls,
        llm_settings: LLMSettings,
        app_settings: Optional[Settings] = None,
    ) -> "ChatModel":
        app_settings = app_settings or default_settings
        model = cls(
            model=llm_settings.ENDPOINT_ID,
            api_key=llm_settings.ENDPOINT_API_KEY,
            base_url=llm_settings.ARK_BASE_URL,
            temperature=app_settings.LLM_TEMPERATURE,
            timeout=app_settings.LLM_TIMEOUT,
            max_retries=app_settings.LLM_MAX_RETRIES,
        )
        logger.info(f"Chat model initialized for endpoint '{llm_settings.ENDPOINT_ID}'")
        return model

    async def ainvoke(self, messages: List[BaseMessage]) -> AIMessage:
        """Send the conversation and return the model's reply."""
        payload = [to_openai_message(m) for m in messages]
        logger.debug(f"Calling model '{self.model}' with {len(payload)} messages")

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=payload,
            temperature=self.temperature,
        )

        choice = response.choices[0]
        return AIMessage(
            content=choice.message.content or "",
            response_metadata=self._response_metadata(response, choice),
        )

    @staticmethod
    def _response_metadata(response: Any, choice: Any) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {
            "model_name": getattr(response, "model", None),
            "finish_reason": getattr(choice, "finish_reason", None),
        }
        usage = getattr(response, "usage", None)
        if usage is not None:
            metadata["token_usage"] = {
                "prompt_tokens": usage.prompt_tokens,
                "completion_tokens": usage.completion_tokens,
                "total_tokens": usage.total_tokens,
            }
        return metadata
