"""Chat-completion client for the summarization provider (OpenRouter/DeepSeek)."""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from summaryscribe.config import get_settings
from summaryscribe.errors import ConfigError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)
settings = get_settings()


SYSTEM_PROMPT = (
    "You are an expert assistant that summarizes workplace conversations. "
    "Write clear markdown with short sections for key points, decisions and "
    "action items. Do not invent facts that are not in the transcript."
)

SUMMARIZATION_PROMPT = """Summarize the following {source} transcript.

{context}After the summary, add one final line starting with "Skills:" listing
any professional skills the participants demonstrated, comma separated, or
"Skills: none".

Transcript:
{transcript}"""

_SKILLS_LINE = re.compile(r"^\s*\**skills\**\s*:\s*\**\s*(?P<skills>.*)$", re.IGNORECASE)


@dataclass
class LLMSummary:
    """Structured output of one summarization call."""

    content: str
    ai_model: str | None = None
    skills_detected: list[str] = field(default_factory=list)


def build_prompt(transcript: str, context: dict[str, Any] | None = None) -> str:
    """Render the user prompt for a transcript and optional context."""
    context = context or {}
    lines = []
    if context.get("channel"):
        lines.append(f"Channel: #{context['channel']}")
    if context.get("participants"):
        lines.append(f"Participants: {', '.join(context['participants'])}")
    if context.get("file_name"):
        lines.append(f"Document: {context['file_name']}")
    context_block = "\n".join(lines) + "\n\n" if lines else ""
    return SUMMARIZATION_PROMPT.format(
        source=context.get("source", "conversation"),
        context=context_block,
        transcript=transcript.strip(),
    )


def split_skills(text: str) -> tuple[str, list[str]]:
    """Strip a trailing ``Skills:`` line from the reply and parse it."""
    lines = text.rstrip().splitlines()
    if not lines:
        return "", []
    match = _SKILLS_LINE.match(lines[-1])
    if not match:
        return text.strip(), []
    raw = match.group("skills").strip().rstrip(".")
    skills = [] if raw.lower() in ("", "none", "n/a") else [
        s.strip() for s in raw.split(",") if s.strip()
    ]
    return "\n".join(lines[:-1]).strip(), skills


class LLMClient:
    """Sends a whole transcript as one prompt. Single attempt, no streaming."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
    ) -> None:
        self.api_key = settings.llm_api_key if api_key is None else api_key
        self.base_url = settings.openrouter_api_url if base_url is None else base_url
        self.model = model or settings.model_id
        self._client: AsyncOpenAI | None = None

    def _get_client(self) -> AsyncOpenAI:
        if not self.api_key:
            raise ConfigError("Summarization API key is not configured")
        if not self.base_url:
            raise ConfigError("Summarization API URL is not configured")
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                max_retries=0,
                default_headers={
                    "HTTP-Referer": settings.site_url,
                    "X-Title": "Slack Summary Scribe",
                },
            )
        return self._client

    async def summarize(
        self, transcript: str | None, context: dict[str, Any] | None = None
    ) -> LLMSummary:
        """Summarize a transcript.

        Raises:
            ValidationError: transcript is missing or blank (no network call made)
            ConfigError: credentials or endpoint are absent
            UpstreamError: the provider answered non-2xx or was unreachable
        """
        if not transcript or not transcript.strip():
            raise ValidationError("Transcript is required")

        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(transcript, context)},
                ],
                temperature=settings.llm_temperature,
                max_tokens=settings.llm_max_tokens,
            )
        except APIStatusError as e:
            logger.error(f"Summarization API returned {e.status_code}: {e.message}")
            raise UpstreamError(
                f"Summarization API error: {e.message}", upstream_status=e.status_code
            ) from e
        except APIConnectionError as e:
            logger.error(f"Summarization API unreachable: {e}")
            raise UpstreamError("Summarization API is unreachable") from e

        choices = response.choices or []
        text = choices[0].message.content if choices else None
        if not text or not text.strip():
            raise UpstreamError("Summarization API returned an empty response")

        content, skills = split_skills(text)
        return LLMSummary(
            content=content or text.strip(),
            ai_model=getattr(response, "model", None) or self.model,
            skills_detected=skills,
        )
