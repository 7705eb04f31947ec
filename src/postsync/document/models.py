"""Post domain models as pure Pydantic v2 data types.

A Post is the editable unit: metadata plus an ordered list of sections,
with an optional hero image and background color.  Field aliases match
the JSON layout written into ``content.json`` inside a post package and
into every storage backend, so ``model_dump(by_alias=True)`` is the
canonical wire form.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr


class PostStatus(StrEnum):
    """Lifecycle status of a post."""

    DRAFT = "draft"
    PUBLISHED = "published"


class SectionType(StrEnum):
    """Kind of content held by a section."""

    TEXT = "text"
    CODE = "code"
    QUOTE = "quote"
    IMAGE = "image"


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ImagePosition(_Model):
    """Focal point of a hero image."""

    x: StrictInt | StrictFloat
    y: StrictInt | StrictFloat


class HeroImage(_Model):
    """The post's featured image."""

    url: StrictStr
    alt: StrictStr
    position: ImagePosition | None = None


class SectionImage(_Model):
    """Embedded image descriptor for image sections."""

    url: StrictStr
    alt: StrictStr
    caption: StrictStr | None = None


class SectionMetadata(_Model):
    """Optional per-section metadata; which fields apply depends on the kind."""

    title: StrictStr | None = None
    language: StrictStr | None = None  # code sections
    author: StrictStr | None = None  # quote sections
    image: SectionImage | None = None  # image sections


class Section(_Model):
    """One block of post content. List order is display order."""

    id: StrictStr
    type: SectionType
    content: StrictStr
    metadata: SectionMetadata | None = None


class PostMetadata(_Model):
    title: StrictStr
    author: StrictStr
    category: StrictStr
    read_time: StrictStr = Field(alias="readTime")
    featured: StrictBool
    status: PostStatus
    date: StrictStr


class PostContent(_Model):
    sections: list[Section]
    featured_image: HeroImage | None = Field(default=None, alias="featuredImage")
    background_color: StrictStr | None = Field(default=None, alias="backgroundColor")


class PostSummary(_Model):
    """Minimal projection returned by adapter ``list()`` calls."""

    id: str
    title: str
    date: str
    status: PostStatus


class Post(_Model):
    """A blog post document."""

    id: StrictStr
    metadata: PostMetadata
    content: PostContent

    def summary(self) -> PostSummary:
        return PostSummary(
            id=self.id,
            title=self.metadata.title,
            date=self.metadata.date,
            status=self.metadata.status,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-compatible wire form."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self, indent: int | None = 2) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)

    def metadata_json(self, indent: int | None = 2) -> str:
        return self.metadata.model_dump_json(by_alias=True, exclude_none=True, indent=indent)


def new_post() -> Post:
    """Create the blank draft a new editing session starts from.

    The result has no sections, so it will not pass ``validate_post``
    until the editor adds at least one.
    """
    return Post(
        id=str(uuid.uuid4()),
        metadata=PostMetadata(
            title="Untitled Blog",
            author="",
            category="",
            read_time="",
            featured=False,
            status=PostStatus.DRAFT,
            date=datetime.now(tz=UTC).isoformat(),
        ),
        content=PostContent(sections=[]),
    )


def iter_asset_refs(post: Post) -> Iterator[str]:
    """Yield every asset URL referenced by a post (hero first, then sections)."""
    if post.content.featured_image is not None:
        yield post.content.featured_image.url
    for section in post.content.sections:
        if section.metadata is not None and section.metadata.image is not None:
            yield section.metadata.image.url


def rewrite_asset_refs(post: Post, mapping: dict[str, str]) -> Post:
    """Return a copy of ``post`` with asset URLs replaced according to ``mapping``.

    URLs missing from the mapping are left untouched.
    """
    updated = post.model_copy(deep=True)
    hero = updated.content.featured_image
    if hero is not None and hero.url in mapping:
        hero.url = mapping[hero.url]
    for section in updated.content.sections:
        if section.metadata is None or section.metadata.image is None:
            continue
        image = section.metadata.image
        if image.url in mapping:
            image.url = mapping[image.url]
    return updated
