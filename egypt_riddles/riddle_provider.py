"""
Riddle providers: the backends that generate riddles and judge answers.

The game controller only depends on the RiddleProvider interface. The
OllamaRiddleProvider talks to an Ollama-compatible /api/generate endpoint in
JSON mode; payloads coming back from the model are untrusted and validated
before a Riddle is built.
"""
import json
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .models import Era, Riddle
from .riddle_engine import RiddleEngine

logger = logging.getLogger(__name__)

REQUIRED_OPTION_COUNT = 4
REQUIRED_HINT_COUNT = 3

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama3.1"


class RiddleProviderError(Exception):
    """Base exception for riddle provider errors."""
    pass


class ProviderUnavailable(RiddleProviderError):
    """Raised when the provider call fails outright (network, HTTP or parse error)."""
    pass


class MalformedRiddle(ProviderUnavailable):
    """Raised when the provider returns a structurally invalid riddle."""
    pass


class MalformedResponse(ProviderUnavailable):
    """Raised when a judgment payload is missing or has the wrong shape."""
    pass


class RiddlesExhausted(ProviderUnavailable):
    """Raised when every riddle for the era has already been asked."""
    pass


def _require_text(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise MalformedRiddle(f"Riddle field '{key}' must be a non-empty string")
    return value.strip()


def _require_text_list(payload: Dict[str, Any], key: str, count: int) -> List[str]:
    values = payload.get(key)
    if not isinstance(values, list):
        raise MalformedRiddle(f"Riddle field '{key}' must be an array")
    if len(values) != count:
        raise MalformedRiddle(f"Riddle field '{key}' must have exactly {count} entries, got {len(values)}")
    cleaned = []
    for i, value in enumerate(values):
        if not isinstance(value, str) or not value.strip():
            raise MalformedRiddle(f"Riddle field '{key}' entry {i} must be a non-empty string")
        cleaned.append(value.strip())
    return cleaned


def parse_riddle(payload: Any, era: Era, engine: Optional[RiddleEngine] = None) -> Riddle:
    """
    Validate an untrusted riddle payload and build a Riddle from it.

    Expected structure:
    {
        "question": str,
        "answer": str,
        "options": [str, str, str, str],
        "hints": [str, str, str],
        "funFact": str,
        "era": str  # Optional
    }

    Args:
        payload: Decoded JSON object returned by the provider
        era: Era the riddle was requested for, used when the payload's era
            does not name a known era
        engine: Engine used to shuffle the options

    Returns:
        Riddle with its options shuffled once

    Raises:
        MalformedRiddle: If a required field is missing or has the wrong shape
    """
    if not isinstance(payload, dict):
        raise MalformedRiddle("Riddle payload must be a JSON object")

    question = _require_text(payload, "question")
    answer = _require_text(payload, "answer")
    fun_fact = _require_text(payload, "funFact")
    options = _require_text_list(payload, "options", REQUIRED_OPTION_COUNT)
    hints = _require_text_list(payload, "hints", REQUIRED_HINT_COUNT)

    if len(set(options)) != len(options):
        raise MalformedRiddle("Riddle options must be distinct")

    if answer not in options:
        logger.warning(
            f"Riddle answer '{answer}' is not among its options",
            extra={
                'event_type': 'riddle_answer_not_in_options',
                'question': question,
                'timestamp': time.time()
            }
        )

    riddle_era = Era.from_text(payload.get("era")) or era
    engine = engine or RiddleEngine()

    return Riddle(
        question=question,
        answer=answer,
        options=engine.shuffle_options(options),
        hints=tuple(hints),
        fun_fact=fun_fact,
        era=riddle_era
    )


def parse_judgment(payload: Any) -> bool:
    """
    Extract the verdict from a judgment payload of the form {"isCorrect": bool}.

    Raises:
        MalformedResponse: If the payload has no boolean isCorrect field
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("isCorrect"), bool):
        raise MalformedResponse("Judgment payload must contain a boolean 'isCorrect'")
    return payload["isCorrect"]


def answers_match(candidate: str, correct_answer: str) -> bool:
    """Exact comparison of trimmed answers, used when no semantic judgment is available."""
    return candidate.strip() == correct_answer.strip()


class RiddleProvider:
    """Interface every riddle backend implements."""

    async def generate_riddle(self, era: Era, asked_questions: Sequence[str] = ()) -> Riddle:
        """
        Produce a new riddle for the era, avoiding the already asked questions.

        Raises:
            ProviderUnavailable: If the riddle cannot be produced
            MalformedRiddle: If the produced riddle is structurally invalid
        """
        raise NotImplementedError

    async def judge_answer(self, candidate: str, correct_answer: str, question: str) -> bool:
        """
        Decide whether candidate is an acceptable answer to question.

        Raises:
            ProviderUnavailable: If the judgment cannot be obtained
            MalformedResponse: If the judgment payload is invalid
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release any resources held by the provider."""
        return None


class OllamaRiddleProvider(RiddleProvider):
    """
    Riddle provider backed by an Ollama-compatible large language model.

    Both riddle generation and answer judging are single non-streaming
    /api/generate calls with JSON output.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.8,
        request_timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
        engine: Optional[RiddleEngine] = None
    ):
        """
        Initialize the provider.

        Args:
            base_url: Root URL of the Ollama server
            model: Model name to generate with
            temperature: Sampling temperature for riddle generation
            request_timeout: HTTP timeout in seconds
            client: Optional pre-built HTTP client (not closed by close())
            engine: Engine used to shuffle riddle options
        """
        self.logger = logging.getLogger(__name__)
        self._generate_url = f"{base_url.rstrip('/')}/api/generate"
        self._model = model
        self._temperature = temperature
        self._request_timeout = request_timeout
        self._client = client
        self._owns_client = client is None
        self._engine = engine or RiddleEngine()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._request_timeout)
        return self._client

    async def _generate_json(self, prompt: str, temperature: float) -> Any:
        """
        Run one generation and decode the model's text as JSON.

        Raises:
            ProviderUnavailable: On transport/HTTP errors or an unreadable body
            ValueError: If the model text is not valid JSON
        """
        body = {
            "model": self._model,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {"temperature": temperature}
        }
        client = await self._get_client()
        request_start = time.time()

        try:
            response = await client.post(self._generate_url, json=body)
            response.raise_for_status()
            text = response.json().get("response", "")
        except httpx.HTTPError as e:
            self.logger.error(
                f"Ollama request failed: {e}",
                extra={
                    'event_type': 'provider_request_failed',
                    'url': self._generate_url,
                    'timestamp': time.time()
                }
            )
            raise ProviderUnavailable(f"Riddle provider request failed: {e}") from e
        except (ValueError, AttributeError) as e:
            raise ProviderUnavailable(f"Riddle provider returned an unreadable body: {e}") from e

        if not isinstance(text, str):
            raise ProviderUnavailable("Riddle provider response has no generated text")

        self.logger.debug(
            f"Ollama generation finished in {time.time() - request_start:.2f}s",
            extra={
                'event_type': 'provider_request_completed',
                'model': self._model,
                'duration': time.time() - request_start,
                'timestamp': time.time()
            }
        )
        return json.loads(text.strip())

    def _build_riddle_prompt(self, era: Era, asked_questions: Sequence[str]) -> str:
        prompt = (
            f"You are an expert in the history of Egypt. Write a fun historical riddle about {era.prompt_phrase}. "
            "The riddle must be about an important person, place or event. "
            f"Provide {REQUIRED_OPTION_COUNT} answer options, exactly one of them correct, "
            "and make the options plausible and close to each other to keep it challenging. "
            f"Provide {REQUIRED_HINT_COUNT} progressive hints, each more revealing than the last, "
            "and one fun historical fact about the subject of the riddle.\n"
            "Reply with a JSON object with the keys: "
            '"question" (string), "answer" (string, one of the options), '
            '"options" (array of 4 strings), "hints" (array of 3 strings), '
            '"funFact" (string) and "era" (string).'
        )
        if asked_questions:
            asked = "\n".join(f"- {question}" for question in asked_questions)
            prompt += f"\nDo not repeat or paraphrase any of these earlier riddles:\n{asked}"
        return prompt

    async def generate_riddle(self, era: Era, asked_questions: Sequence[str] = ()) -> Riddle:
        prompt = self._build_riddle_prompt(era, asked_questions)
        try:
            payload = await self._generate_json(prompt, self._temperature)
        except ValueError as e:
            raise MalformedRiddle(f"Riddle response is not valid JSON: {e}") from e

        riddle = parse_riddle(payload, era, self._engine)
        self.logger.info(
            f"Generated riddle for era {era.value}",
            extra={
                'event_type': 'riddle_generated',
                'era': era.value,
                'asked_count': len(asked_questions),
                'timestamp': time.time()
            }
        )
        return riddle

    async def judge_answer(self, candidate: str, correct_answer: str, question: str) -> bool:
        prompt = (
            f'Question: "{question}"\n'
            f'The correct answer is: "{correct_answer}"\n'
            f'The player answered: "{candidate}"\n'
            "Is the player's answer correct? Accept paraphrases and partial matches that clearly "
            'name the same thing. Reply with a JSON object {"isCorrect": true} or {"isCorrect": false}.'
        )
        try:
            payload = await self._generate_json(prompt, 0.0)
        except ValueError as e:
            raise MalformedResponse(f"Judgment response is not valid JSON: {e}") from e
        return parse_judgment(payload)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
