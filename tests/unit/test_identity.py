import pytest

from kinship.features.relationship_intel.identity import (
    CachedDisplayNameResolver,
    StaticDisplayNameResolver,
    fallback_display_name,
    normalize,
    normalize_phone,
    split_recipients,
)


def test_email_is_lowercased_and_keeps_display_name():
    key = normalize('"Jane Doe" <Jane.Doe@Example.COM>')
    assert key.key == "jane.doe@example.com"
    assert key.kind == "email"
    assert key.display_hint == "Jane Doe"


def test_bare_email_has_no_hint():
    key = normalize("  Bob@Example.com ")
    assert key.key == "bob@example.com"
    assert key.display_hint is None


@pytest.mark.parametrize(
    "raw",
    ["+1 (555) 123-4567", "555-123-4567", "15551234567", "555.123.4567"],
)
def test_phone_formats_share_one_key(raw):
    key = normalize(raw)
    assert key.kind == "phone"
    assert key.key == "5551234567"


def test_international_number_keeps_last_ten_digits():
    assert normalize_phone("+44 20 7946 0958 12") == "7946095812"


def test_short_number_keeps_its_digits():
    assert normalize_phone("12345") == "12345"


def test_unrecognized_identifier_is_kept_verbatim():
    key = normalize("chat123456789")
    assert key.key == "chat123456789"
    assert key.kind == "raw"


def test_empty_identifier_has_empty_key():
    assert normalize(None).key == ""
    assert normalize("   ").key == ""


def test_split_recipients_respects_quoted_commas():
    recipients = split_recipients('"Doe, Jane" <jane@x.com>, bob@y.com')
    assert recipients == ['"Doe, Jane" <jane@x.com>', "bob@y.com"]
    assert normalize(recipients[0]).display_hint == "Doe, Jane"


def test_split_recipients_handles_missing_header():
    assert split_recipients(None) == []


@pytest.mark.parametrize(
    ("identifier", "expected"),
    [
        ("jane.doe@example.com", "Jane Doe"),
        ("mary_ann+news@example.com", "Mary Ann News"),
        ("jsmith42@example.com", "Jsmith"),
        ("5551234567", "(555) 123-4567"),
        ("15551234567", "(555) 123-4567"),
        ("chat123", "chat123"),
    ],
)
def test_fallback_display_name(identifier, expected):
    assert fallback_display_name(identifier) == expected


@pytest.mark.asyncio
async def test_static_resolver_matches_normalized_keys():
    resolver = StaticDisplayNameResolver({"+1 555 123 4567": "Mom"})
    assert await resolver.resolve_display_name("5551234567") == "Mom"
    assert await resolver.resolve_display_name("5550000000") is None


@pytest.mark.asyncio
async def test_cached_resolver_looks_up_once_and_swallows_failures():
    class FlakyResolver:
        def __init__(self):
            self.calls = 0

        async def resolve_display_name(self, identifier):
            self.calls += 1
            raise OSError("contacts unavailable")

    inner = FlakyResolver()
    resolver = CachedDisplayNameResolver(inner)

    assert await resolver.resolve_display_name("a@example.com") is None
    assert await resolver.resolve_display_name("a@example.com") is None
    assert inner.calls == 1
