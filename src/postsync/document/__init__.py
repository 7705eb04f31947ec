"""Post document domain: models and structural validation."""

from postsync.document.models import (
    HeroImage,
    ImagePosition,
    Post,
    PostContent,
    PostMetadata,
    PostStatus,
    PostSummary,
    Section,
    SectionImage,
    SectionMetadata,
    SectionType,
    iter_asset_refs,
    new_post,
    rewrite_asset_refs,
)
from postsync.document.validator import validate_post, validate_post_json

__all__ = [
    "HeroImage",
    "ImagePosition",
    "Post",
    "PostContent",
    "PostMetadata",
    "PostStatus",
    "PostSummary",
    "Section",
    "SectionImage",
    "SectionMetadata",
    "SectionType",
    "iter_asset_refs",
    "new_post",
    "rewrite_asset_refs",
    "validate_post",
    "validate_post_json",
]
