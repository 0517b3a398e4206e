"""
AI Health Assistant.

Stateless wrapper around the Azure OpenAI chat completions API. Each call
makes exactly one attempt: the client is built with retries disabled and
every request carries an explicit timeout. Provider failures of any kind are
logged and surfaced as a single ``AssistantError``; the caller decides
whether to try again.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from openai import AsyncAzureOpenAI, OpenAIError

from core.domain import AssistantError

from .schemas import ConversationTurn, SentimentResult

logger = logging.getLogger(__name__)


# =============================================================================
# PROMPTS AND FALLBACKS
# =============================================================================

HEALTH_ASSISTANT_PROMPT = """You are a helpful AI health assistant for a clinic management app. You can:
- Answer general health questions
- Provide information about symptoms and conditions
- Suggest when to see a doctor
- Give general wellness advice
- Help with appointment-related questions

Important guidelines:
- Always recommend consulting a healthcare professional for serious concerns
- Do not provide specific medical diagnoses
- Keep responses helpful but not overly medical
- Be empathetic and supportive
- Suggest using the app's features when appropriate (booking appointments, finding doctors, etc.)"""

SENTIMENT_PROMPT = (
    "You are a sentiment analysis expert. Analyze the sentiment of the text and provide "
    "a rating from 1 to 5 stars and a confidence score between 0 and 1. Respond with JSON "
    "in this format: { 'rating': number, 'confidence': number }"
)

SUMMARY_PROMPT = "Please summarize the following text concisely while maintaining key points:\n\n{text}"

CHAT_FALLBACK = "I'm sorry, I couldn't process your request right now."
SUMMARY_FALLBACK = "Unable to summarize text."
SENTIMENT_FALLBACK = {"rating": 3, "confidence": 0.5}

# Conversation roles the model should see as its own earlier replies
ASSISTANT_ROLES = {"assistant", "AI Assistant"}

ClientProvider = Callable[[], Awaitable[AsyncAzureOpenAI]]


class HealthAssistant:
    """
    Conversational health assistant backed by a chat completion deployment.

    The client is obtained lazily from ``client_provider`` so the application
    can start without the provider being reachable.
    """

    def __init__(
        self,
        client_provider: ClientProvider,
        deployment: str,
        timeout_seconds: float = 30.0,
        history_limit: int = 5,
    ):
        """
        Initialize the assistant.

        Args:
            client_provider: Coroutine function returning the OpenAI client
            deployment: Model deployment name
            timeout_seconds: Upper bound for a single provider call
            history_limit: Number of prior turns forwarded with each message
        """
        self._client_provider = client_provider
        self.deployment = deployment
        self.timeout_seconds = timeout_seconds
        self.history_limit = history_limit

    # =========================================================================
    # PROMPT CONSTRUCTION
    # =========================================================================

    def build_messages(
        self,
        message: str,
        history: Sequence[ConversationTurn] = (),
    ) -> List[Dict[str, str]]:
        """
        Build the chat payload: system prompt, the most recent history turns
        in their original order, then the new user message.
        """
        recent = list(history)[-self.history_limit:] if self.history_limit > 0 else []

        messages = [{"role": "system", "content": HEALTH_ASSISTANT_PROMPT}]
        for turn in recent:
            role = "assistant" if turn.is_ai or turn.role in ASSISTANT_ROLES else "user"
            messages.append({"role": role, "content": turn.content})
        messages.append({"role": "user", "content": message})
        return messages

    # =========================================================================
    # PROVIDER CALLS
    # =========================================================================

    async def _complete(self, operation: str, **kwargs: Any) -> Optional[str]:
        """Run one completion and return the text of the first choice."""
        try:
            client = await self._client_provider()
            response = await asyncio.wait_for(
                client.chat.completions.create(model=self.deployment, **kwargs),
                timeout=self.timeout_seconds,
            )
            return response.choices[0].message.content
        except asyncio.TimeoutError as e:
            logger.error(f"{operation} timed out after {self.timeout_seconds}s")
            raise AssistantError("AI response failed") from e
        except OpenAIError as e:
            logger.error(f"{operation} provider error: {e}")
            raise AssistantError("AI response failed") from e
        except (AttributeError, IndexError, TypeError) as e:
            logger.error(f"{operation} returned a malformed response: {e}")
            raise AssistantError("AI response failed") from e

    async def chat(self, message: str, history: Sequence[ConversationTurn] = ()) -> str:
        """
        Reply to ``message`` given the prior conversation.

        Raises:
            AssistantError: If the provider call fails
        """
        messages = self.build_messages(message, history)
        logger.info(f"Sending AI chat request with {len(messages) - 2} history turns")

        content = await self._complete(
            "AI chat",
            messages=messages,
            max_tokens=500,
            temperature=0.7,
        )
        return content or CHAT_FALLBACK

    async def analyze_sentiment(self, text: str) -> SentimentResult:
        """
        Rate the sentiment of ``text`` from 1 to 5 with a confidence in [0, 1].
        Out-of-range values from the model are clamped.

        Raises:
            AssistantError: If the provider call fails or returns invalid JSON
        """
        content = await self._complete(
            "Sentiment analysis",
            messages=[
                {"role": "system", "content": SENTIMENT_PROMPT},
                {"role": "user", "content": text},
            ],
            response_format={"type": "json_object"},
        )

        try:
            result = json.loads(content) if content else dict(SENTIMENT_FALLBACK)
            rating = float(result.get("rating", SENTIMENT_FALLBACK["rating"]))
            confidence = float(result.get("confidence", SENTIMENT_FALLBACK["confidence"]))
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(f"Sentiment analysis returned unparseable content: {content!r}")
            raise AssistantError("AI response failed") from e

        return SentimentResult(
            rating=max(1, min(5, round(rating))),
            confidence=max(0.0, min(1.0, confidence)),
        )

    async def summarize(self, text: str) -> str:
        """
        Summarize ``text`` concisely.

        Raises:
            AssistantError: If the provider call fails
        """
        content = await self._complete(
            "Text summarization",
            messages=[{"role": "user", "content": SUMMARY_PROMPT.format(text=text)}],
            max_tokens=300,
        )
        return content or SUMMARY_FALLBACK
