from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from newsroom_ingest.services.slugs import (
    FALLBACK_SLUG_BASE,
    MAX_SLUG_BASE_LENGTH,
    PLACEHOLDER_TITLE,
    clean_title,
    slug_base,
    slugify,
    to_base36,
)


@pytest.mark.parametrize(
    ("raw_title", "expected"),
    [
        ("Apple lança novo iPhone - TechSite", "Apple lança novo iPhone"),
        ("Budget approved | The Daily Planet", "Budget approved"),
        ("Elections — Folha de Example", "Elections"),
        ("State-of-the-art batteries", "State-of-the-art batteries"),
        ("  Spaced    out title  ", "Spaced out title"),
    ],
)
def test_clean_title_strips_site_suffix(raw_title: str, expected: str) -> None:
    assert clean_title(raw_title) == expected


def test_clean_title_falls_back_to_placeholder() -> None:
    assert clean_title(None) == PLACEHOLDER_TITLE
    assert clean_title("   ") == PLACEHOLDER_TITLE


def test_clean_title_keeps_original_when_suffix_is_everything() -> None:
    assert clean_title("| Only Site") == "| Only Site"


def test_slug_base_transliterates_and_hyphenates() -> None:
    assert slug_base("Apple lança novo iPhone") == "apple-lanca-novo-iphone"
    assert slug_base("  Ação & Reação!  ") == "acao-reacao"
    assert slug_base("C'est déjà l'été") == "c-est-deja-l-ete"


def test_slug_base_truncates_without_trailing_hyphen() -> None:
    title = ("word " * 40).strip()
    base = slug_base(title)
    assert len(base) <= MAX_SLUG_BASE_LENGTH
    assert not base.endswith("-")
    assert not base.startswith("-")


def test_slug_base_falls_back_for_symbol_only_titles() -> None:
    assert slug_base("!!! ??? ...") == FALLBACK_SLUG_BASE
    assert slug_base("日本語") == FALLBACK_SLUG_BASE


def test_slugify_appends_base36_milliseconds() -> None:
    moment = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)
    slug = slugify("Hello World", now=moment)
    expected_suffix = to_base36(int(moment.timestamp() * 1000))
    assert slug == f"hello-world-{expected_suffix}"


def test_slugify_differs_across_clock_instants() -> None:
    moment = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)
    first = slugify("Same Title", now=moment)
    second = slugify("Same Title", now=moment + timedelta(milliseconds=1))
    assert first != second
    assert first.startswith("same-title-")
    assert second.startswith("same-title-")


def test_slug_charset_is_lowercase_alphanumeric_and_hyphens() -> None:
    slug = slugify("Ünïcödé — Títle: 2024 Edition!", now=datetime(2024, 1, 1, tzinfo=UTC))
    assert all(character.isascii() and (character.isalnum() or character == "-") for character in slug)
    assert slug == slug.lower()


def test_to_base36() -> None:
    assert to_base36(0) == "0"
    assert to_base36(35) == "z"
    assert to_base36(36) == "10"
    with pytest.raises(ValueError):
        to_base36(-1)
