"""
LLM service for generating answers using OpenAI chat models.
"""
import logging
from typing import Optional

# OpenAI and LangChain imports
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from ..core.exceptions import LLMError

logger = logging.getLogger(__name__)


class LLMService:
    """Service for single-shot answer generation."""

    def __init__(
        self,
        api_key: str,
        model_name: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.default_temperature = temperature
        self.default_max_tokens = max_tokens
        self.chat_model = self._build_model(temperature, max_tokens)
        logger.info(f"LLM service initialized with {model_name}")

    @classmethod
    def from_settings(cls, settings) -> "LLMService":
        return cls(
            api_key=settings.openai_api_key,
            model_name=settings.llm_model,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    def _build_model(self, temperature: float, max_tokens: Optional[int]) -> BaseChatModel:
        return ChatOpenAI(
            api_key=self.api_key,
            model=self.model_name,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    def model_for(self, temperature: Optional[float] = None, max_tokens: Optional[int] = None) -> BaseChatModel:
        """The default model, or a temporary one when overrides differ."""
        temperature = self.default_temperature if temperature is None else temperature
        max_tokens = max_tokens or self.default_max_tokens
        if temperature == self.default_temperature and max_tokens == self.default_max_tokens:
            return self.chat_model
        return self._build_model(temperature, max_tokens)

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Invoke the model once and return the answer text.

        Raises:
            LLMError: the model call failed
        """
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        model = self.model_for(temperature, max_tokens)
        try:
            response = await model.ainvoke(messages)
        except Exception as e:
            logger.error(f"Error generating LLM response: {str(e)}")
            raise LLMError(str(e)) from e
        return response.content if isinstance(response.content, str) else str(response.content)

    async def health_check(self) -> bool:
        """Check if LLM service is healthy."""
        try:
            response = await self.chat_model.ainvoke([HumanMessage(content="Hello")])
            return bool(response.content)
        except Exception as e:
            logger.error(f"LLM service health check failed: {str(e)}")
            return False
