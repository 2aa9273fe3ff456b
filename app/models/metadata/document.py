from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

_MODEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Metadata(BaseModel):
    """Complete metadata record for a webpage.

    Every field is a string; anything the page does not declare is ``""``.
    Serialised with camelCase keys (``ogTitle``, ``twitterCard``, ...).
    """

    model_config = _MODEL_CONFIG

    title: str = ""
    description: str = ""
    keywords: str = ""
    url: str = ""
    favicon: str = ""

    # Open Graph
    og_title: str = ""
    og_description: str = ""
    og_image: str = ""
    og_type: str = ""
    og_url: str = ""

    # Twitter Card
    twitter_card: str = ""
    twitter_title: str = ""
    twitter_description: str = ""
    twitter_image: str = ""

    author: str = ""
    publisher: str = ""
    charset: str = ""
    language: str = ""
    robots: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    def is_usable(self) -> bool:
        """True when the page yielded a title or a description."""
        return bool(self.title or self.description)


class PartialMetadata(BaseModel):
    """Whatever the static HTML parser managed to find.

    Fields are ``None`` when the corresponding tag was not looked up or not
    present; ``to_metadata`` fills the gaps.
    """

    model_config = _MODEL_CONFIG

    title: str | None = None
    description: str | None = None
    keywords: str | None = None
    url: str | None = None
    favicon: str | None = None
    og_title: str | None = None
    og_description: str | None = None
    og_image: str | None = None
    og_type: str | None = None
    og_url: str | None = None
    twitter_card: str | None = None
    twitter_title: str | None = None
    twitter_description: str | None = None
    twitter_image: str | None = None
    author: str | None = None
    publisher: str | None = None
    charset: str | None = None
    language: str | None = None
    robots: str | None = None

    def to_metadata(self) -> Metadata:
        return Metadata(**{k: v or "" for k, v in self.model_dump().items()})
