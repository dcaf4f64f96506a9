from pathlib import Path

import pytest

from site_config import DEFAULT_KNOWN_FIELDS, DEFAULT_REQUIRED_FIELDS, LintConfig, load_config


def write_config(tmp_path, text):
    path = tmp_path / "_config.yml"
    path.write_text(text, encoding="utf-8")
    return path


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "missing.yml")
    assert config == LintConfig()
    assert config.required_fields == DEFAULT_REQUIRED_FIELDS
    assert config.layouts == ["post"]
    assert config.categories == []


def test_missing_section_gives_defaults(tmp_path):
    assert load_config(write_config(tmp_path, "title: My blog\n")) == LintConfig()


def test_empty_file_gives_defaults(tmp_path):
    assert load_config(write_config(tmp_path, "")) == LintConfig()


def test_section_overrides(tmp_path):
    path = write_config(tmp_path, (
        "postlint:\n"
        "  required_fields: [layout, title]\n"
        "  layouts: [post, page]\n"
        "  categories: [jwt]\n"
        "  extra_fields: [reading_time]\n"
        "  max_title_length: 80\n"
    ))
    config = load_config(path)
    assert config.required_fields == ["layout", "title"]
    assert config.layouts == ["post", "page"]
    assert config.categories == ["jwt"]
    assert config.max_title_length == 80
    assert "reading_time" in config.known_fields
    assert set(DEFAULT_KNOWN_FIELDS) <= set(config.known_fields)


def test_required_fields_are_known(tmp_path):
    config = load_config(write_config(tmp_path, "postlint:\n  required_fields: [series]\n"))
    assert "series" in config.known_fields


@pytest.mark.parametrize("section", [
    "postlint: [a, b]\n",
    "postlint:\n  layouts: post\n",
    "postlint:\n  categories: [1, 2]\n",
    "postlint:\n  max_title_length: -5\n",
    "postlint:\n  max_title_length: yes\n",
])
def test_malformed_section(tmp_path, section):
    with pytest.raises(ValueError):
        load_config(write_config(tmp_path, section))


def test_repository_config():
    config = load_config(Path(__file__).parent.parent / "_config.yml")
    assert config.layouts == ["post"]
    assert {"angular", "jwt", "aspnetcore"} <= set(config.categories)
