# src/enrichment/reply_parser.py — v1
"""Parse the gateway's JSON reply, tolerating a surrounding code fence."""

from __future__ import annotations

import json

from pydantic import BaseModel, Field, ValidationError, field_validator


class ReplyParseError(ValueError):
    """Reply text is not a usable enrichment object."""


class GenerationReply(BaseModel):
    """Fields the gateway is asked to produce."""

    seo_title: str = Field(min_length=1)
    seo_description: str = ""
    tldr: list[str] = Field(default_factory=list)
    content_md: str = ""
    category: str = ""
    tags: list[str] = Field(default_factory=list)
    image_title: str = ""
    image_description: str = ""

    @field_validator("tldr", mode="before")
    @classmethod
    def coerce_tldr(cls, v: object) -> object:  # noqa: N805
        if isinstance(v, str):
            return [line.lstrip("-* ").strip() for line in v.splitlines() if line.strip()]
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, v: object) -> object:  # noqa: N805
        if isinstance(v, str):
            return [t.strip() for t in v.split(",") if t.strip()]
        return v


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ``` / ```json fence, if any."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        text = "\n".join(lines).strip()
    return text


def parse_reply(text: str) -> GenerationReply:
    """Decode reply text into a GenerationReply.

    Raises:
        ReplyParseError: If the text is not a JSON object with the
            expected fields.
    """
    cleaned = strip_code_fence(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ReplyParseError(f"reply is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ReplyParseError(f"reply is a JSON {type(data).__name__}, not an object")
    try:
        return GenerationReply.model_validate(data)
    except ValidationError as e:
        raise ReplyParseError(f"reply has invalid fields: {e.error_count()} error(s)") from e
