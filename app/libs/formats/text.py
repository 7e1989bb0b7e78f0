import re

from slugify import slugify


def generate_slug(title: str) -> str:
    """
    Friendly slug from a title
    - strips accents (python-slugify transliterates)
    - keeps lowercase letters, digits and dashes
    """
    if not title:
        return ""
    return slugify(title, lowercase=True)


def simple_slug(name: str) -> str:
    # category slugs: collapse anything outside [a-z0-9] into a dash
    text = re.sub(r"[^a-z0-9]+", "-", (name or "").strip().lower())
    return text.strip("-")
