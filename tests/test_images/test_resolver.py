"""Tests for image URL resolution against media-host templates."""

import pytest

from student_home.images.resolver import ImageUrlResolver
from student_home.scrapers.providers import RIGHTMOVE, Provider

PROVIDER = Provider(
    name="testsite",
    base_url="https://www.example.co.uk",
    media_templates=(
        "https://media.example.co.uk/{ref}",
        "https://media.example.co.uk/crop/{ref}",
        "https://images.example.co.uk/{ref}",
    ),
    card_selectors=(".card",),
)


class FakeChecker:
    def __init__(self, live: set[str]) -> None:
        self.live = live
        self.checked: list[str] = []

    async def check(self, url: str) -> bool:
        self.checked.append(url)
        return url in self.live


class TestCandidates:
    def test_absolute_passes_through(self) -> None:
        resolver = ImageUrlResolver(PROVIDER)
        url = "https://cdn.other.com/a.jpg"
        assert resolver.candidates(url) == [url]

    def test_protocol_relative(self) -> None:
        resolver = ImageUrlResolver(PROVIDER)
        assert resolver.candidates("//cdn.other.com/a.jpg") == ["https://cdn.other.com/a.jpg"]

    def test_relative_expands_all_templates(self) -> None:
        resolver = ImageUrlResolver(PROVIDER)
        assert resolver.candidates("/dir/1/a.jpg") == [
            "https://media.example.co.uk/dir/1/a.jpg",
            "https://media.example.co.uk/crop/dir/1/a.jpg",
            "https://images.example.co.uk/dir/1/a.jpg",
        ]

    def test_rightmove_first_candidate(self) -> None:
        resolver = ImageUrlResolver(RIGHTMOVE)
        assert resolver.candidates("/img/1.jpg")[0] == "https://media.rightmove.co.uk/img/1.jpg"
        assert len(resolver.candidates("img/1.jpg")) == len(RIGHTMOVE.media_templates)


class TestResolve:
    @pytest.mark.asyncio
    async def test_absolute_live(self) -> None:
        url = "https://cdn.other.com/a.jpg"
        resolver = ImageUrlResolver(PROVIDER)
        assert await resolver.resolve(url, FakeChecker({url})) == url
        assert resolver.preferred_template is None

    @pytest.mark.asyncio
    async def test_absolute_dead(self) -> None:
        resolver = ImageUrlResolver(PROVIDER)
        assert await resolver.resolve("https://cdn.other.com/a.jpg", FakeChecker(set())) is None

    @pytest.mark.asyncio
    async def test_first_live_template_is_cached(self) -> None:
        resolver = ImageUrlResolver(PROVIDER)
        checker = FakeChecker(
            {
                "https://images.example.co.uk/dir/1/a.jpg",
                "https://images.example.co.uk/dir/1/b.jpg",
            }
        )

        first = await resolver.resolve("dir/1/a.jpg", checker)
        assert first == "https://images.example.co.uk/dir/1/a.jpg"
        assert resolver.preferred_template == "https://images.example.co.uk/{ref}"
        assert len(checker.checked) == 3

        checker.checked.clear()
        second = await resolver.resolve("dir/1/b.jpg", checker)
        assert second == "https://images.example.co.uk/dir/1/b.jpg"
        assert checker.checked == ["https://images.example.co.uk/dir/1/b.jpg"]

    @pytest.mark.asyncio
    async def test_preferred_falls_back_to_other_templates(self) -> None:
        resolver = ImageUrlResolver(PROVIDER)
        await resolver.resolve(
            "dir/1/a.jpg", FakeChecker({"https://images.example.co.uk/dir/1/a.jpg"})
        )

        url = await resolver.resolve(
            "dir/1/c.jpg", FakeChecker({"https://media.example.co.uk/dir/1/c.jpg"})
        )

        assert url == "https://media.example.co.uk/dir/1/c.jpg"
        assert resolver.preferred_template == "https://media.example.co.uk/{ref}"

    @pytest.mark.asyncio
    async def test_no_live_candidate(self) -> None:
        resolver = ImageUrlResolver(PROVIDER)
        checker = FakeChecker(set())
        assert await resolver.resolve("dir/1/a.jpg", checker) is None
        assert len(checker.checked) == 3
        assert resolver.preferred_template is None

    @pytest.mark.asyncio
    async def test_resolve_unverified_uses_cached_template(self) -> None:
        resolver = ImageUrlResolver(PROVIDER)
        assert resolver.resolve_unverified("x.jpg") == "https://media.example.co.uk/x.jpg"
        await resolver.resolve(
            "dir/1/a.jpg", FakeChecker({"https://media.example.co.uk/crop/dir/1/a.jpg"})
        )
        assert resolver.resolve_unverified("x.jpg") == "https://media.example.co.uk/crop/x.jpg"

    @pytest.mark.asyncio
    async def test_instances_do_not_share_cache(self) -> None:
        first = ImageUrlResolver(PROVIDER)
        await first.resolve("a.jpg", FakeChecker({"https://images.example.co.uk/a.jpg"}))
        assert ImageUrlResolver(PROVIDER).preferred_template is None


class TestAlternatives:
    def test_reference_from_crop_url(self) -> None:
        resolver = ImageUrlResolver(PROVIDER)
        ref = resolver.reference_from_url("https://media.example.co.uk/crop/dir/1/a.jpg")
        assert ref == "dir/1/a.jpg"

    def test_reference_from_foreign_url(self) -> None:
        resolver = ImageUrlResolver(PROVIDER)
        assert resolver.reference_from_url("https://cdn.other.com/a.jpg") is None

    def test_alternatives_exclude_original(self) -> None:
        resolver = ImageUrlResolver(PROVIDER)
        assert resolver.alternatives("https://media.example.co.uk/dir/1/a.jpg") == [
            "https://media.example.co.uk/crop/dir/1/a.jpg",
            "https://images.example.co.uk/dir/1/a.jpg",
        ]

    def test_alternatives_for_foreign_url(self) -> None:
        resolver = ImageUrlResolver(PROVIDER)
        assert resolver.alternatives("https://cdn.other.com/a.jpg") == []

    def test_alternatives_for_bare_reference(self) -> None:
        resolver = ImageUrlResolver(PROVIDER)
        assert resolver.alternatives("/dir/1/a.jpg") == [
            "https://media.example.co.uk/dir/1/a.jpg",
            "https://media.example.co.uk/crop/dir/1/a.jpg",
            "https://images.example.co.uk/dir/1/a.jpg",
        ]

    def test_alternatives_for_empty_value(self) -> None:
        assert ImageUrlResolver(PROVIDER).alternatives("  ") == []
