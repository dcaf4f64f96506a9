#!/usr/bin/env python3
"""
Validate blog posts in _posts/.

Checks:
- Front-matter present and parses as a YAML mapping
- Required fields (layout, title, date, categories) present and well-typed
- Filename is YYYY-MM-DD-slug.md and agrees with the front-matter date
- Layout and categories are ones the site knows about
- Every code fence is closed, tagged with a language, and syntactically
  valid in that language

Usage:
    python3 scripts/validate_posts.py
    python3 scripts/validate_posts.py --strict  # treat warnings as errors
    python3 scripts/validate_posts.py --post 2019-05-02-aspnet-core-jwt-bearer-authentication.md
    python3 scripts/validate_posts.py --category angular
"""

import argparse
import os
import re
import sys
from collections import defaultdict
from datetime import date, datetime
from pathlib import Path

from fence_checks import canonical_language, check_fence
from post_loader import Post, list_posts, load_post, parse_post_filename
from site_config import CONFIG_PATH, ROOT, LintConfig, load_config

POSTS_DIR = Path(os.getenv("POSTS_DIR", ROOT / "_posts"))

# Jekyll accepts "YYYY-MM-DD HH:MM:SS +/-TTTT" with the time and zone optional
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}(?:[ T]\d{2}:\d{2}(?::\d{2})?(?:\s*[+-]\d{2}:?\d{2}|\s*Z)?)?$")


def parse_date(value) -> date | None:
    """Return the date part of a front-matter date, or None if it isn't one."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and DATE_RE.match(value.strip()):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def normalize_categories(value) -> list[str] | None:
    """Jekyll takes a list or a space-separated string. None for anything else."""
    if isinstance(value, str):
        return value.split()
    if isinstance(value, list) and all(isinstance(c, str) for c in value):
        return value
    return None


def validate_post(post: Post, config: LintConfig) -> tuple[list[str], list[str]]:
    """Validate a single post. Returns (errors, warnings)."""
    errors = []
    warnings = []
    prefix = f"[{post.name}]"

    # === FILENAME ===
    parsed_name = parse_post_filename(post.name)
    if parsed_name is None:
        errors.append(f"{prefix} Filename should be YYYY-MM-DD-slug.md")

    if post.read_error:
        errors.append(f"{prefix} Unreadable: {post.read_error}")
        return errors, warnings

    # === FRONT-MATTER ===
    fm = post.front_matter
    if post.front_matter_error:
        errors.append(f"{prefix} Front-matter: {post.front_matter_error}")
    elif fm is None:
        errors.append(f"{prefix} Missing front-matter block")

    if fm is not None:
        for key in config.required_fields:
            value = fm.get(key)
            if value is None or value == "" or value == []:
                errors.append(f"{prefix} Missing '{key}' field")

        layout = fm.get("layout")
        if layout and config.layouts and layout not in config.layouts:
            warnings.append(f"{prefix} Unknown layout: {layout}")

        title = fm.get("title")
        if title is not None and not isinstance(title, str):
            errors.append(f"{prefix} title should be string, got {type(title).__name__}")
        elif isinstance(title, str) and len(title) > config.max_title_length:
            warnings.append(f"{prefix} title is {len(title)} chars (max {config.max_title_length})")

        if fm.get("date") is not None:
            post_date = parse_date(fm["date"])
            if post_date is None:
                errors.append(f"{prefix} Invalid date: {fm['date']!r}")
            elif parsed_name is not None and parsed_name[0] != post_date:
                warnings.append(
                    f"{prefix} Date mismatch: filename={parsed_name[0]}, date={post_date}"
                )

        if fm.get("categories") is not None:
            categories = normalize_categories(fm["categories"])
            if categories is None:
                errors.append(f"{prefix} categories should be a list or a space-separated string")
            elif config.categories:
                unknown = [c for c in categories if c not in config.categories]
                if unknown:
                    warnings.append(f"{prefix} Unknown categories: {unknown}")

        for key in fm:
            if key not in config.known_fields:
                warnings.append(f"{prefix} Unknown front-matter field '{key}'")

    # === CODE FENCES ===
    for fence in post.fences:
        fence_errors, fence_warnings = check_fence(fence)
        errors.extend(f"[{post.name}:{m}" for m in _relocate(fence_errors))
        warnings.extend(f"[{post.name}:{m}" for m in _relocate(fence_warnings))

    return errors, warnings


def _relocate(messages: list[str]) -> list[str]:
    # "line 12: ..." -> "12] ..."
    return [re.sub(r"^line (\d+): ", r"\1] ", m) for m in messages]


def validate_all(paths: list[Path], config: LintConfig) -> dict[Path, tuple[list[str], list[str]]]:
    return {path: validate_post(load_post(path), config) for path in paths}


def post_categories(post: Post) -> list[str]:
    if not post.front_matter:
        return []
    return normalize_categories(post.front_matter.get("categories")) or []


def main():
    parser = argparse.ArgumentParser(description="Validate blog posts")
    parser.add_argument("--strict", action="store_true", help="Treat warnings as errors")
    parser.add_argument("--posts-dir", type=Path, default=POSTS_DIR, help="Directory of posts")
    parser.add_argument("--post", help="Validate a single post (file name)")
    parser.add_argument("--category", help="Only validate posts in this category")
    parser.add_argument("--config", type=Path, default=CONFIG_PATH, help="Site _config.yml")
    args = parser.parse_args()

    if not args.posts_dir.is_dir():
        print(f"✗ Posts directory not found: {args.posts_dir}")
        sys.exit(1)

    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"✗ Bad postlint config in {args.config}: {e}")
        sys.exit(1)

    if args.post:
        paths = [args.posts_dir / args.post]
        if not paths[0].exists():
            print(f"✗ Post not found: {paths[0]}")
            sys.exit(1)
    else:
        paths = list_posts(args.posts_dir)

    posts = [load_post(p) for p in paths]
    if args.category:
        posts = [p for p in posts if args.category in post_categories(p)]

    all_errors = []
    all_warnings = []

    print(f"Validating {len(posts)} posts from {args.posts_dir}...")
    print()

    for post in posts:
        errors, warnings = validate_post(post, config)
        all_errors.extend(errors)
        all_warnings.extend(warnings)

        issue_count = len(errors) + (len(warnings) if args.strict else 0)
        if issue_count > 0:
            status = "✗" if errors else "⚠"
            print(f"{status} {post.name}: {len(errors)} errors, {len(warnings)} warnings")
        else:
            print(f"✓ {post.name}")

    print()
    print("=" * 50)

    if all_warnings:
        print(f"\n⚠ {len(all_warnings)} WARNINGS:")
        for w in all_warnings[:50]:
            print(f"  {w}")
        if len(all_warnings) > 50:
            print(f"  ... and {len(all_warnings) - 50} more")

    if all_errors:
        print(f"\n✗ {len(all_errors)} ERRORS:")
        for e in all_errors[:50]:
            print(f"  {e}")
        if len(all_errors) > 50:
            print(f"  ... and {len(all_errors) - 50} more")

    # Stats
    print(f"\n--- STATS ---")
    print(f"Posts validated: {len(posts)}")

    by_category = defaultdict(int)
    by_language = defaultdict(int)
    for post in posts:
        for c in post_categories(post):
            by_category[c] += 1
        for fence in post.fences:
            by_language[canonical_language(fence.lang) or fence.lang or "(none)"] += 1

    print(f"\nBy Category:")
    for c, n in sorted(by_category.items()):
        print(f"  {c}: {n}")
    print(f"\nCode Fences By Language:")
    for lang, n in sorted(by_language.items()):
        print(f"  {lang}: {n}")

    total_issues = len(all_errors) + (len(all_warnings) if args.strict else 0)
    if total_issues == 0:
        print(f"\n✓ ALL VALIDATIONS PASSED ({len(all_warnings)} warnings)")
        sys.exit(0)
    else:
        print(f"\n✗ VALIDATION FAILED: {len(all_errors)} errors, {len(all_warnings)} warnings")
        sys.exit(1)


if __name__ == "__main__":
    main()
