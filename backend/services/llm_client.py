"""LLM Client for Groq API integration."""
import time
from dataclasses import dataclass
from typing import List, Optional, Dict, Any
from groq import Groq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from config import (
    GROQ_API_KEY,
    CHAT_MODEL,
    MAX_RESPONSE_TOKENS,
    TEMPERATURE,
    GENERATION_TIMEOUT_SECONDS,
)
from models.conversation import ConversationTurn

logger = logging.getLogger(__name__)

SYSTEM_PREAMBLE = (
    "You are a helpful AI assistant that answers questions based on the provided knowledge base.\n"
    "Use only the information from the knowledge base context below to answer questions.\n"
    "If the answer is not in the knowledge base, politely say that you don't have that information."
)


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(Exception):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)


class LLMClient:
    """Client for interfacing with Groq API for chat completions."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = CHAT_MODEL,
        timeout_seconds: float = GENERATION_TIMEOUT_SECONDS
    ):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            model: Chat model used for every completion
            timeout_seconds: Upper bound on a single completion request
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.model = model
        self.timeout_seconds = timeout_seconds
        # Generation failure is terminal per request, so the SDK must not retry
        self.client = Groq(api_key=self.api_key, timeout=timeout_seconds, max_retries=0)
        logger.info(f"LLMClient initialized successfully (model={model}, timeout={timeout_seconds}s)")

    def generate(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int = MAX_RESPONSE_TOKENS
    ) -> LLMResponse:
        """
        Generate a reply to role-tagged messages using Groq API.

        Args:
            messages: Ordered chat messages ({"role": ..., "content": ...})
            max_tokens: Maximum tokens to generate

        Returns:
            LLMResponse with text, token counts, and latency

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        start_time = time.time()
        model = self.model

        try:
            logger.debug(f"Generating response with model: {model} ({len(messages)} messages)")

            response = self.client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=TEMPERATURE,
                timeout=self.timeout_seconds
            )

            latency_ms = int((time.time() - start_time) * 1000)
            text = response.choices[0].message.content
        except RateLimitError as e:
            raise self._error(
                "RATE_LIMIT_ERROR",
                "Rate limit exceeded. Please try again in a few moments.",
                model, start_time, e, retry_after=60
            )
        except AuthenticationError as e:
            raise self._error(
                "AUTHENTICATION_ERROR",
                "Authentication failed. Please check your API key.",
                model, start_time, e
            )
        except APITimeoutError as e:
            raise self._error(
                "TIMEOUT_ERROR",
                "Request timed out. Please try again.",
                model, start_time, e
            )
        except APIError as e:
            raise self._error("API_ERROR", f"Groq API error: {str(e)}", model, start_time, e)
        except Exception as e:
            raise self._error(
                "UNKNOWN_ERROR",
                f"Unexpected error during generation: {str(e)}",
                model, start_time, e, error_type=type(e).__name__
            )

        if not text or not text.strip():
            raise self._error("EMPTY_RESPONSE", "Model returned an empty response.", model, start_time)

        tokens_input = response.usage.prompt_tokens
        tokens_output = response.usage.completion_tokens

        logger.info(
            f"Generated response: model={model}, "
            f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
            f"latency={latency_ms}ms"
        )

        return LLMResponse(
            text=text,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            latency_ms=latency_ms,
            model_used=model
        )

    @staticmethod
    def _error(
        code: str,
        message: str,
        model: str,
        start_time: float,
        cause: Optional[Exception] = None,
        **extra: Any
    ) -> LLMClientError:
        latency_ms = int((time.time() - start_time) * 1000)
        details: Dict[str, Any] = {"model": model, "latency_ms": latency_ms, **extra}
        if cause is not None:
            details["original_error"] = str(cause)
        error = LLMError(code=code, message=message, details=details)
        logger.error(
            f"{code}: model={model}, latency={latency_ms}ms, error={cause}",
            exc_info=cause is not None,
            extra={"error_code": code, "error_details": details}
        )
        return LLMClientError(error)

    @staticmethod
    def build_messages(
        context: str,
        history: List[ConversationTurn],
        preamble: str = SYSTEM_PREAMBLE
    ) -> List[Dict[str, str]]:
        """
        Build the chat payload: a system message with the knowledge base context
        followed by the windowed conversation history in chronological order.

        Args:
            context: Assembled knowledge base context
            history: Recent turns, oldest first, ending with the new user turn
            preamble: Fixed instruction text

        Returns:
            List of role-tagged messages
        """
        system_message = {
            "role": "system",
            "content": f"{preamble}\n\nKnowledge Base Context:\n{context}"
        }
        return [system_message] + [turn.to_message() for turn in history]
