"""AI flashcard generation: turn a passage of text into card specs."""

import json
import logging

from backend.config import settings
from backend.llm_client import LLMClient
from backend.srs.flashcard import (
    CardSpec,
    CardType,
    Difficulty,
    SourcePlatform,
    card_spec_from_payload,
    normalize_tags,
)
from backend.utils import parse_llm_json_response

logger = logging.getLogger(__name__)

GENERATION_SYSTEM_PROMPT = """\
You write study flashcards for programmers and learners. Each card tests one idea.

Rules:
- "front" is a focused question or prompt; "back" is a concise, correct answer
- Prefer understanding over trivia; keep code snippets short
- Do not invent facts that are not supported by the source text
- Use 1-4 short lowercase tags per card"""

GENERATION_USER_PROMPT = """\
Create up to {count} flashcards from the following content.

Content:
{content}

Each flashcard is an object with:
- "front": the question
- "back": the answer or explanation
- "type": one of {types}
- "difficulty": one of {difficulties}
- "tags": array of strings

Return ONLY a JSON array of flashcard objects."""


class FlashcardGenerator:
    """Asks the LLM for flashcards and validates what comes back.

    The generator never touches the store; callers pass the returned
    specs to ``FlashcardStore.add_flashcards``.
    """

    def __init__(self, llm: LLMClient, max_cards: int | None = None) -> None:
        self.llm = llm
        self.max_cards = max_cards or settings.generation_max_cards

    def build_prompt(self, content: str, count: int) -> str:
        return GENERATION_USER_PROMPT.format(
            count=count,
            content=content.strip(),
            types=", ".join(t.value for t in CardType),
            difficulties=", ".join(d.value for d in Difficulty),
        )

    def generate(
        self,
        content: str,
        count: int | None = None,
        extra_tags: list[str] | None = None,
        source_platform: SourcePlatform | str | None = None,
        source_url: str | None = None,
        source_note_id: str | None = None,
    ) -> list[CardSpec]:
        """Generate card specs from ``content``.

        Items that fail validation are skipped with a warning; an
        unparseable reply yields an empty list.

        Args:
            content: Source text (article, transcript, problem statement...).
            count: Maximum cards to keep (defaults to the configured limit).
            extra_tags: Tags added to every generated card.
            source_platform: Provenance label applied to every card.
            source_url: Provenance URL applied to every card.
            source_note_id: Note the cards were generated from, if any.
        """
        count = min(count or self.max_cards, self.max_cards)
        if not content.strip():
            return []

        reply = self.llm.complete(
            self.build_prompt(content, count),
            system=GENERATION_SYSTEM_PROMPT,
            prefill="[",
        )
        logger.info(
            "Generation reply: %d input tokens, %d output tokens",
            reply.input_tokens,
            reply.output_tokens,
        )
        text = reply.text
        if reply.truncated:
            logger.warning("Generation reply hit max_tokens, keeping complete cards only")
            text = close_truncated_array(text)

        parsed = parse_llm_json_response(text, context="flashcard generation")
        if isinstance(parsed, dict):
            # Some replies wrap the array: {"flashcards": [...]}
            parsed = parsed.get("flashcards", [])
        if not isinstance(parsed, list):
            logger.warning("Generation reply was not a list of cards")
            return []

        provenance = {
            "source_platform": source_platform.value
            if isinstance(source_platform, SourcePlatform)
            else source_platform,
            "source_url": source_url,
            "source_note_id": source_note_id,
        }

        specs: list[CardSpec] = []
        for item in parsed[:count]:
            if not isinstance(item, dict):
                logger.warning("Skipping non-object card: %s", json.dumps(item)[:100])
                continue
            payload = {**item, **{k: v for k, v in provenance.items() if v is not None}}
            try:
                if extra_tags:
                    payload["tags"] = [*normalize_tags(item.get("tags")), *extra_tags]
                specs.append(card_spec_from_payload(payload))
            except ValueError as exc:  # includes InvalidCardPayloadError
                logger.warning("Skipping generated card: %s", exc)

        logger.info("Generated %d flashcards (%d requested)", len(specs), count)
        return specs


def close_truncated_array(text: str) -> str:
    """Cut a JSON array after its last complete object and close it."""
    end = text.rfind("}")
    if end == -1:
        return "[]"
    return text[: end + 1] + "]"
