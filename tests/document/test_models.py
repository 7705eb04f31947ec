"""Tests for post document models."""

from postsync.document.models import (
    HeroImage,
    Post,
    PostStatus,
    SectionType,
    iter_asset_refs,
    new_post,
    rewrite_asset_refs,
)


def _wire_post(**overrides: object) -> dict:
    data = {
        "id": "p1",
        "metadata": {
            "title": "Hello",
            "author": "Ada",
            "category": "notes",
            "readTime": "3 min",
            "featured": False,
            "status": "draft",
            "date": "2024-01-02",
        },
        "content": {
            "sections": [
                {"id": "s1", "type": "text", "content": "<p>Hi</p>"},
                {
                    "id": "s2",
                    "type": "image",
                    "content": "",
                    "metadata": {"image": {"url": "https://example.com/a.png", "alt": "A"}},
                },
            ],
            "featuredImage": {"url": "data:image/png;base64,AAAA", "alt": "hero"},
        },
    }
    data.update(overrides)
    return data


class TestWireForm:
    def test_parses_aliases(self):
        post = Post.model_validate(_wire_post())
        assert post.metadata.read_time == "3 min"
        assert post.content.featured_image is not None
        assert post.content.featured_image.alt == "hero"
        assert post.metadata.status is PostStatus.DRAFT
        assert post.content.sections[1].type is SectionType.IMAGE

    def test_to_dict_uses_aliases_and_drops_none(self):
        post = Post.model_validate(_wire_post())
        data = post.to_dict()
        assert data["metadata"]["readTime"] == "3 min"
        assert "featuredImage" in data["content"]
        assert "backgroundColor" not in data["content"]
        assert "metadata" not in data["content"]["sections"][0]

    def test_summary(self):
        summary = Post.model_validate(_wire_post()).summary()
        assert summary.id == "p1"
        assert summary.title == "Hello"
        assert summary.date == "2024-01-02"
        assert summary.status is PostStatus.DRAFT


class TestNewPost:
    def test_blank_draft(self):
        post = new_post()
        assert post.metadata.title == "Untitled Blog"
        assert post.metadata.status is PostStatus.DRAFT
        assert post.content.sections == []

    def test_ids_are_unique(self):
        assert new_post().id != new_post().id


class TestAssetRefs:
    def test_hero_first_then_sections(self):
        post = Post.model_validate(_wire_post())
        assert list(iter_asset_refs(post)) == [
            "data:image/png;base64,AAAA",
            "https://example.com/a.png",
        ]

    def test_no_refs(self):
        post = Post.model_validate(_wire_post(content={"sections": []}))
        assert list(iter_asset_refs(post)) == []

    def test_rewrite_returns_copy(self):
        post = Post.model_validate(_wire_post())
        updated = rewrite_asset_refs(post, {"https://example.com/a.png": "assets/a.png"})

        assert updated.content.sections[1].metadata.image.url == "assets/a.png"
        assert updated.content.featured_image.url == "data:image/png;base64,AAAA"
        assert post.content.sections[1].metadata.image.url == "https://example.com/a.png"

    def test_rewrite_hero(self):
        post = Post.model_validate(_wire_post())
        post.content.featured_image = HeroImage(url="x.png", alt="x")
        updated = rewrite_asset_refs(post, {"x.png": "assets/x.png"})
        assert updated.content.featured_image.url == "assets/x.png"
