"""Pytest configuration for test suite."""

import sys
from pathlib import Path

import pytest

# Add scripts/ to Python path for imports
# This file is in tests/, so we need to go up one level to the repo root
ROOT_DIR = Path(__file__).parent.parent
SCRIPTS_DIR = ROOT_DIR / "scripts"

if str(SCRIPTS_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPTS_DIR))

VALID_FRONT_MATTER = """---
layout: post
title: "A valid post"
date: 2019-03-10
categories: angular microfrontends
---
"""


@pytest.fixture
def posts_dir(tmp_path):
    d = tmp_path / "_posts"
    d.mkdir()
    return d


@pytest.fixture
def write_post(posts_dir):
    """Write a post into a temporary _posts/ directory and return its path."""

    def _write(body: str = "Some text.\n", name: str = "2019-03-10-a-valid-post.md",
               front_matter: str = VALID_FRONT_MATTER) -> Path:
        path = posts_dir / name
        path.write_text(front_matter + body, encoding="utf-8")
        return path

    return _write
