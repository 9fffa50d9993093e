"""Language-model agent that recommends labels for issues.

The agent is a collaborator of the classify step. It receives chat
messages and returns an instance of the requested output model, using
LangChain's structured output support against an OpenAI-compatible
endpoint. Every user message passes through the injection guard first.

Source:
- src/triage/classifier/guard.py (InjectionGuard, PromptInjectionError)
- src/triage/classifier/prompts.py (build_system_prompt)
- src/triage/config.py (openai_api_key, llm_model, llm_base_url)
"""

import logging
from typing import Any, Optional, Protocol, Sequence, Type, TypeVar

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel

from src.triage.classifier.guard import (
    AllowAllGuard,
    InjectionGuard,
    PromptInjectionError,
)
from src.triage.classifier.prompts import build_system_prompt


logger = logging.getLogger(__name__)


OutputT = TypeVar("OutputT", bound=BaseModel)


class ClassificationError(Exception):
    """Raised when the agent cannot produce a classification.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception that caused the failure.
    """

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class TriagerAgent(Protocol):
    """Produces structured output from chat messages."""

    async def generate(
        self,
        messages: Sequence[BaseMessage],
        output_model: Type[OutputT],
    ) -> OutputT:
        ...


class LangChainTriagerAgent:
    """Triager agent backed by a LangChain ChatOpenAI model.

    Attributes:
        system_prompt: Instructions prepended to every conversation.
        model_name: Name of the model to use for inference.
        temperature: Sampling temperature for the LLM.
        timeout: Request timeout in seconds.
        guard: Injection guard applied to user messages.

    Example:
        >>> agent = LangChainTriagerAgent(
        ...     model_name="gpt-4o-mini",
        ...     api_key="sk-...",
        ...     guard=LLMInjectionGuard(model_name="gpt-4o-mini", api_key="sk-..."),
        ... )
        >>> output = await agent.generate(
        ...     [HumanMessage(content=prompt)],
        ...     ClassifyOutput,
        ... )
    """

    def __init__(
        self,
        model_name: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        system_prompt: Optional[str] = None,
        temperature: float = 0.0,
        timeout: float = 60.0,
        guard: Optional[InjectionGuard] = None,
        llm: Optional[Any] = None,
    ):
        """Initialize the triager agent.

        Args:
            model_name: Name of the model to use for inference.
            api_key: API key for the model endpoint.
            base_url: Optional OpenAI-compatible endpoint URL.
            system_prompt: System prompt; defaults to build_system_prompt().
            temperature: Sampling temperature (lower = more deterministic).
            timeout: Request timeout in seconds.
            guard: Injection guard; defaults to AllowAllGuard.
            llm: Optional pre-built chat model, used instead of ChatOpenAI.
        """
        self.model_name = model_name
        self.api_key = api_key
        self.base_url = base_url
        self.system_prompt = system_prompt or build_system_prompt()
        self.temperature = temperature
        self.timeout = timeout
        self.guard = guard or AllowAllGuard()
        self._llm = llm

    @property
    def llm(self) -> Any:
        """Get the LLM client, creating it if necessary."""
        if self._llm is None:
            self._llm = ChatOpenAI(
                model=self.model_name,
                api_key=self.api_key,
                base_url=self.base_url,
                temperature=self.temperature,
                timeout=self.timeout,
            )
        return self._llm

    async def _check_messages(self, messages: Sequence[BaseMessage]) -> None:
        for message in messages:
            if not isinstance(message, HumanMessage):
                continue
            verdict = await self.guard.check(str(message.content))
            if not verdict.accepted:
                raise PromptInjectionError(verdict.reason)

    async def generate(
        self,
        messages: Sequence[BaseMessage],
        output_model: Type[OutputT],
    ) -> OutputT:
        """Generate structured output for the conversation.

        Args:
            messages: Conversation without system prompt.
            output_model: Pydantic model the answer must conform to.

        Returns:
            An instance of output_model.

        Raises:
            PromptInjectionError: If the guard rejects a user message.
            ClassificationError: If the model call fails or returns
                nothing usable.
        """
        await self._check_messages(messages)

        conversation = [SystemMessage(content=self.system_prompt), *messages]
        structured_llm = self.llm.with_structured_output(output_model)

        try:
            result = await structured_llm.ainvoke(conversation)
        except Exception as e:
            logger.error(
                "Triager model invocation failed",
                extra={
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "model": self.model_name,
                },
            )
            raise ClassificationError(f"LLM invocation failed: {e}", cause=e) from e

        if result is None:
            raise ClassificationError("LLM returned no structured output")

        if isinstance(result, dict):
            result = output_model.model_validate(result)

        logger.info(
            "Triager model produced output",
            extra={
                "model": self.model_name,
                "output_type": output_model.__name__,
            },
        )
        return result
