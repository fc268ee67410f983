"""
Claude-backed suggestion oracle.

Sends prepared master/target item sets to Claude and returns the raw
`mappings` list of its JSON answer. Sanitizing the answer against the
real item sets is the caller's job.
"""

import json
import re
from typing import Optional, Protocol
import anthropic
import structlog

from config import settings
from exceptions import ConfigurationError, UpstreamUnavailableError
from models.attribute import AttributeType

logger = structlog.get_logger(__name__)

SERVICE_NAME = "ai"


class SuggestionOracle(Protocol):
    """Capabilities the engine needs from the suggestion backend."""

    def suggest_category_mappings(self, payload: dict) -> list[dict]: ...

    def suggest_attribute_mappings(self, attribute_type: AttributeType, payload: dict) -> list[dict]: ...


CATEGORY_SYSTEM_PROMPT = """You are an expert multilingual e-commerce merchandiser. Map master categories to target shop categories.

IMPORTANT: Return ONLY valid JSON, no markdown, no explanation, no code blocks.

Return this shape:
{"mappings": [{"canonical_id": "<id>", "target_id": "<id or null>", "confidence": <0..1>, "reason": "<short reason or null>"}]}"""

ATTRIBUTE_TYPE_LABELS = {
    AttributeType.FLAGS: "product flags (badges)",
    AttributeType.FILTERING_PARAMETERS: "filtering parameters used in category filters",
    AttributeType.VARIANTS: "variant parameters (e.g. size, color)",
}


def build_attribute_system_prompt(attribute_type: AttributeType) -> str:
    """System prompt for matching one attribute type."""
    if attribute_type.supports_values:
        values_instruction = (
            "If a master attribute is matched with a target attribute, map child values only "
            "when their meaning clearly matches. Leave value target_key null for uncertain cases."
        )
        shape = (
            '{"mappings": [{"master_key": "<key>", "target_key": "<key or null>", '
            '"confidence": <0..1>, "reason": "<short reason>", '
            '"values": [{"master_key": "<key>", "target_key": "<key or null>"}]}]}'
        )
    else:
        values_instruction = "These attributes do not have child values, only map the top-level attribute."
        shape = (
            '{"mappings": [{"master_key": "<key>", "target_key": "<key or null>", '
            '"confidence": <0..1>, "reason": "<short reason>"}]}'
        )

    return (
        "You are an expert localisation assistant for e-commerce data. "
        f"Match {ATTRIBUTE_TYPE_LABELS[attribute_type]} between a master Shoptet shop and a target Shoptet shop. "
        "Respect diacritics. Each master attribute may map to at most one target attribute. "
        "When no reasonable match exists, set target_key to null. "
        f"{values_instruction} "
        "Attribute lists may be truncated; do not invent additional entries.\n\n"
        "IMPORTANT: Return ONLY valid JSON, no markdown, no explanation, no code blocks.\n\n"
        f"Return this shape:\n{shape}"
    )


def parse_mappings(response_text: str) -> list[dict]:
    """
    Extract the `mappings` list from a JSON answer.

    Raises:
        ValueError: Answer is not JSON or has no mappings list
    """
    cleaned = response_text.strip()
    if cleaned.startswith("```"):
        # Remove ```json and ``` markers
        cleaned = re.sub(r'^```(?:json)?\s*', '', cleaned)
        cleaned = re.sub(r'\s*```$', '', cleaned)

    data = json.loads(cleaned)

    if not isinstance(data, dict) or not isinstance(data.get("mappings"), list):
        raise ValueError("response has no mappings list")

    return [entry for entry in data["mappings"] if isinstance(entry, dict)]


class ClaudeSuggestionOracle:
    """
    Ask Claude for category and attribute pairings.

    No automatic retries; a failed call surfaces as UpstreamUnavailableError
    so the caller can decide whether to resubmit.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_tokens: Optional[int] = None,
        client: Optional[anthropic.Anthropic] = None
    ):
        self.api_key = api_key if api_key is not None else settings.anthropic_api_key
        self.model = model or settings.anthropic_model
        self.timeout = timeout or settings.ai_timeout_seconds
        self.max_tokens = max_tokens or settings.ai_max_tokens
        self._client = client

    @property
    def client(self) -> anthropic.Anthropic:
        if self._client is None:
            if not self.api_key:
                logger.error("ai_api_key_missing")
                raise ConfigurationError(
                    "Anthropic API key is not configured.",
                    {"setting": "ANTHROPIC_API_KEY"}
                )
            self._client = anthropic.Anthropic(
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=0
            )
        return self._client

    def suggest_category_mappings(self, payload: dict) -> list[dict]:
        return self._ask(CATEGORY_SYSTEM_PROMPT, payload, kind="category")

    def suggest_attribute_mappings(self, attribute_type: AttributeType, payload: dict) -> list[dict]:
        return self._ask(
            build_attribute_system_prompt(attribute_type),
            payload,
            kind=attribute_type.value
        )

    def _ask(self, system_prompt: str, payload: dict, kind: str) -> list[dict]:
        client = self.client

        logger.info("ai_suggestion_requested", kind=kind, model=self.model)

        try:
            response = client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system_prompt,
                messages=[{
                    "role": "user",
                    "content": json.dumps(payload, ensure_ascii=False)
                }]
            )

        except anthropic.APIError as e:
            logger.error("ai_api_error", kind=kind, error=str(e))
            raise UpstreamUnavailableError(
                SERVICE_NAME,
                "AI mapping service is unavailable.",
                {"kind": kind, "error": str(e)}
            )

        response_text = "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        )
        logger.debug("ai_response_received", kind=kind, response_length=len(response_text))

        try:
            mappings = parse_mappings(response_text)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            logger.error("ai_response_malformed", kind=kind, response_preview=response_text[:500], error=str(e))
            raise UpstreamUnavailableError(
                SERVICE_NAME,
                "AI response could not be parsed.",
                {"kind": kind}
            )

        logger.info("ai_suggestion_received", kind=kind, count=len(mappings))
        return mappings


# Singleton instance
_oracle: Optional[ClaudeSuggestionOracle] = None


def get_suggestion_oracle() -> ClaudeSuggestionOracle:
    """Get or create ClaudeSuggestionOracle instance."""
    global _oracle
    if _oracle is None:
        _oracle = ClaudeSuggestionOracle()
    return _oracle
