"""Structural validation applied wherever external bytes become a Post.

Validation is purely structural: field presence and types, enum
membership, a non-empty section list and unique section ids.  No
business rules are checked here.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import pydantic

from postsync.document.models import Post
from postsync.errors import ValidationError


def _format_pydantic_error(exc: pydantic.ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "post"
    extra = f" (+{exc.error_count() - 1} more)" if exc.error_count() > 1 else ""
    return f"Invalid post: {location}: {first['msg']}{extra}"


def _check_sections(post: Post) -> None:
    sections = post.content.sections
    if not sections:
        raise ValidationError("Invalid post: content.sections must not be empty")
    seen: set[str] = set()
    for index, section in enumerate(sections):
        if section.id in seen:
            raise ValidationError(
                f"Invalid section at index {index}: duplicate section id {section.id!r}"
            )
        seen.add(section.id)


def validate_post(candidate: Any) -> Post:
    """Validate a candidate and return it as a Post.

    Args:
        candidate: A Post, a mapping in wire form, or a JSON string/bytes.

    Returns:
        The validated Post (a fresh copy when a Post was passed in).

    Raises:
        ValidationError: If the candidate is structurally invalid.
    """
    if isinstance(candidate, (str, bytes, bytearray)):
        return validate_post_json(candidate)

    if isinstance(candidate, Post):
        data: Any = candidate.to_dict()
    elif isinstance(candidate, Mapping):
        data = dict(candidate)
    else:
        raise ValidationError(
            f"Invalid post: must be an object, got {type(candidate).__name__}"
        )

    try:
        post = Post.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(_format_pydantic_error(exc)) from exc

    _check_sections(post)
    return post


def validate_post_json(text: str | bytes | bytearray) -> Post:
    """Parse JSON text and validate the result as a Post."""
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError(f"Invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError("Invalid post: must be an object")
    return validate_post(data)
