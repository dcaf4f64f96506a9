"""
Lint settings read from the `postlint:` section of the site's _config.yml.

    postlint:
      required_fields: [layout, title, date, categories]
      layouts: [post]
      categories: [angular, aspnetcore, ...]
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

ROOT = Path(__file__).resolve().parent.parent
CONFIG_PATH = Path(os.getenv("SITE_CONFIG", ROOT / "_config.yml"))

DEFAULT_REQUIRED_FIELDS = ["layout", "title", "date", "categories"]
DEFAULT_LAYOUTS = ["post"]

# Front-matter keys Jekyll understands besides the required ones
DEFAULT_KNOWN_FIELDS = [
    "layout", "title", "date", "categories", "category", "tags",
    "permalink", "published", "excerpt", "author", "description",
    "comments", "image", "last_modified_at",
]


@dataclass
class LintConfig:
    required_fields: list[str] = field(default_factory=lambda: list(DEFAULT_REQUIRED_FIELDS))
    layouts: list[str] = field(default_factory=lambda: list(DEFAULT_LAYOUTS))
    categories: list[str] = field(default_factory=list)
    known_fields: list[str] = field(default_factory=lambda: list(DEFAULT_KNOWN_FIELDS))
    max_title_length: int = 120


def _string_list(section: dict, key: str) -> list[str] | None:
    if key not in section:
        return None
    value = section[key]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"postlint.{key} must be a list of strings")
    return value


def load_config(path: Path = CONFIG_PATH) -> LintConfig:
    """Missing file or section gives the defaults."""
    config = LintConfig()
    path = Path(path)
    if not path.exists():
        return config

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    section = data.get("postlint") if isinstance(data, dict) else None
    if section is None:
        return config
    if not isinstance(section, dict):
        raise ValueError("postlint must be a mapping")

    for key in ("required_fields", "layouts", "categories"):
        value = _string_list(section, key)
        if value is not None:
            setattr(config, key, value)

    extra = _string_list(section, "extra_fields")
    config.known_fields = sorted(set(config.known_fields) | set(config.required_fields) | set(extra or []))

    if "max_title_length" in section:
        mtl = section["max_title_length"]
        if not isinstance(mtl, int) or isinstance(mtl, bool) or mtl <= 0:
            raise ValueError("postlint.max_title_length must be a positive integer")
        config.max_title_length = mtl

    return config
