"""
Chat model client for the ArteVida agent (OpenRouter through LangChain).

Optional: without an API key no model is built, is_configured() is False
and the SQL generator and summarizer use their offline fallbacks.
"""

from typing import Any, Dict, List, Optional
from langchain_openai import ChatOpenAI
from langchain_core.messages import HumanMessage, SystemMessage, BaseMessage
from pydantic import SecretStr

from ..config import LLMConfig
from ..utils.logging import get_module_logger
from ..utils.text_utils import InputValidator
from ..domain.errors import LLMError


logger = get_module_logger()


class LLMClient:
    """
    Thin async wrapper around one ChatOpenAI instance.

    Prompt construction lives in the repositories (SQL generation,
    summaries); this class only sends messages and returns text.

    Usage:
        client = LLMClient(config)
        await client.connect()

        if client.is_connected():
            sql_text = await client.generate(
                "¿Qué conciertos hay en Madrid?",
                system_prompt=SQL_SYSTEM_PROMPT
            )

        await client.close()
    """

    def __init__(self, config: LLMConfig):
        self.config = config
        self._llm: Optional[ChatOpenAI] = None
        self._is_connected = False

        logger.info(
            "LLMClient initialized",
            model=config.default_model,
            base_url=config.base_url,
            configured=self.is_configured()
        )

    def is_configured(self) -> bool:
        """True when an API key is available."""
        return bool(self.config.openrouter_api_key.strip())

    async def connect(self) -> None:
        """
        Build the chat model.

        No request is sent here; a bad key only shows up on the first
        generate() call. Without a key this is a logged no-op.

        Raises:
            LLMError: If the model cannot be built
        """
        if self._is_connected:
            logger.warning("LLM client already connected")
            return

        if not self.is_configured():
            logger.warning("No OpenRouter API key configured, LLM disabled")
            return

        try:
            self._llm = ChatOpenAI(
                model=self.config.default_model,
                api_key=SecretStr(self.config.openrouter_api_key),
                base_url=self.config.base_url,
                temperature=self.config.temperature,
                max_completion_tokens=self.config.max_tokens,
                top_p=self.config.top_p,
                timeout=self.config.timeout_seconds,
                max_retries=self.config.max_retries
            )
        except Exception as e:
            logger.error("Chat model initialization failed", error=str(e), error_type=type(e).__name__)
            raise LLMError(f"Failed to initialize LLM client: {e}") from e

        self._is_connected = True
        logger.info("LLM client ready", model=self.config.default_model)

    async def close(self) -> None:
        """Drop the chat model; ChatOpenAI holds nothing that needs closing."""
        self._is_connected = False
        self._llm = None
        logger.info("LLM client closed")

    def is_connected(self) -> bool:
        return self._is_connected and self._llm is not None

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None
    ) -> str:
        """
        Send one system + user exchange and return the reply text.

        Per-call overrides (temperature, max_tokens, model) are bound on a
        copy of the model; the configured defaults stay untouched.

        Raises:
            LLMError: Not connected, prompt over max_input_chars, API
                      failure or empty reply
        """
        if not self.is_connected() or self._llm is None:
            raise LLMError("LLM client is not connected")

        try:
            InputValidator.validate_total_chars(
                prompt=prompt,
                system_prompt=system_prompt,
                max_chars=self.config.max_input_chars
            )
        except ValueError as e:
            raise LLMError(str(e)) from e

        messages: List[BaseMessage] = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=prompt))

        overrides = self._overrides(temperature, max_tokens, model)
        llm = self._llm.bind(**overrides) if overrides else self._llm

        logger.debug(
            "Sending LLM request",
            prompt_length=len(prompt),
            system_prompt_length=len(system_prompt) if system_prompt else 0,
            overrides=sorted(overrides)
        )

        try:
            response = await llm.ainvoke(messages)
        except Exception as e:
            logger.error("LLM request failed", error=str(e), error_type=type(e).__name__, prompt_length=len(prompt))
            raise LLMError(f"LLM generation failed: {e}") from e

        if not response or not response.content:
            raise LLMError("LLM returned empty response")

        content = str(response.content)
        logger.info("LLM reply received", response_length=len(content))
        return content

    @staticmethod
    def _overrides(
        temperature: Optional[float],
        max_tokens: Optional[int],
        model: Optional[str],
    ) -> Dict[str, Any]:
        overrides: Dict[str, Any] = {}
        if model is not None:
            overrides["model"] = model
        if temperature is not None:
            overrides["temperature"] = temperature
        if max_tokens is not None:
            overrides["max_completion_tokens"] = max_tokens
        return overrides
