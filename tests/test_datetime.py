import pytest

from app.libs.formats.datetime import DEFAULT_TTL_SECONDS, now, parse_ttl, strip_tz
from app.libs.formats.text import generate_slug, simple_slug


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("15m", 900),
        ("14d", 14 * 86400),
        ("2h", 7200),
        ("30s", 30),
        ("900", 900),
        (600, 600),
        ("ten minutes", DEFAULT_TTL_SECONDS),
        (None, DEFAULT_TTL_SECONDS),
    ],
)
def test_parse_ttl(raw, expected):
    assert parse_ttl(raw) == expected


def test_now_is_naive_utc():
    assert now().tzinfo is None
    assert strip_tz(None) is None


def test_slugs():
    assert generate_slug("Intro to Python!") == "intro-to-python"
    assert simple_slug("  Data  Science ") == "data-science"
    assert simple_slug("***") == ""
