import argparse
import os
import re
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import requests

from post_loader import Post, list_posts, load_post
from site_config import ROOT

POSTS_DIR = Path(os.getenv("POSTS_DIR", ROOT / "_posts"))
TIMEOUT = float(os.getenv("LINK_TIMEOUT", "10"))

HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
}

URL_RE = re.compile(r'https?://[^\s<>"\'\]\}`]+')


def prose_text(post: Post) -> str:
    """Body text with fenced code removed; snippet URLs are examples, not links."""
    lines = post.body.splitlines()
    for fence in post.fences:
        start = fence.start_line - post.body_line
        end = fence.end_line - post.body_line + 1
        for i in range(start, min(end, len(lines))):
            lines[i] = ""
    return "\n".join(lines)


def extract_links(text: str) -> list[str]:
    urls = []
    for url in URL_RE.findall(text):
        url = url.rstrip(".,;:!?*_")
        # Markdown [text](url) leaves a closing paren that isn't part of the URL
        while url.endswith(")") and url.count(")") > url.count("("):
            url = url[:-1]
        if url not in urls:
            urls.append(url)
    return urls


def check_link(url, session=None, timeout=TIMEOUT):
    http = session or requests
    try:
        # Try HEAD first for speed
        response = http.head(url, headers=HEADERS, timeout=timeout, allow_redirects=True)
        if response.status_code >= 400:
            # Fallback to GET for sites that block HEAD
            response = http.get(url, headers=HEADERS, timeout=timeout, allow_redirects=True)
        return url, response.status_code
    except requests.RequestException as e:
        return url, str(e)


def is_broken(status) -> bool:
    return not isinstance(status, int) or status >= 400


def validate_links(posts: list[Post], workers: int = 20, timeout: float = TIMEOUT):
    """Returns [(post name, url, status)] for every broken link."""
    links_by_post = {post.name: extract_links(prose_text(post)) for post in posts}
    unique = sorted({url for urls in links_by_post.values() for url in urls})

    with ThreadPoolExecutor(max_workers=workers) as executor:
        results = dict(executor.map(lambda u: check_link(u, timeout=timeout), unique))

    broken = []
    for name, urls in links_by_post.items():
        for url in urls:
            if is_broken(results[url]):
                broken.append((name, url, results[url]))
    return broken


def main():
    parser = argparse.ArgumentParser(description="Check external links in blog posts")
    parser.add_argument("--posts-dir", type=Path, default=POSTS_DIR)
    parser.add_argument("--workers", type=int, default=20)
    parser.add_argument("--timeout", type=float, default=TIMEOUT)
    args = parser.parse_args()

    if not args.posts_dir.is_dir():
        print(f"✗ Posts directory not found: {args.posts_dir}")
        sys.exit(1)

    posts = [load_post(p) for p in list_posts(args.posts_dir)]
    total = len({url for post in posts for url in extract_links(prose_text(post))})
    print(f"Found {total} unique URLs in {len(posts)} posts. Validating in parallel...")

    broken = validate_links(posts, workers=args.workers, timeout=args.timeout)

    print("\n--- LINK VALIDATION REPORT ---")
    print(f"Total Unique Links: {total}")
    print(f"Broken/Suspect Links: {len(broken)}")

    if broken:
        for name, url, status in broken:
            print(f"  [X] Status {status} | {name} | {url}")
        sys.exit(1)
    else:
        print("  ✓ All links are healthy!")


if __name__ == "__main__":
    main()
