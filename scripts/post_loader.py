"""
Load blog posts: split YAML front-matter from the Markdown body and pull out
fenced code blocks with their file line numbers.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Optional

import yaml

POST_SUFFIXES = {".md", ".markdown"}
POST_FILENAME_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})-(.+)\.(md|markdown)$")

# CommonMark: up to 3 spaces of indent, then 3+ backticks or tildes
FENCE_OPEN_RE = re.compile(r"^( {0,3})(`{3,}|~{3,})(.*)$")


class FrontMatterError(ValueError):
    pass


@dataclass
class CodeFence:
    lang: str
    info: str
    code: str
    start_line: int
    closed: bool = True
    marker: str = "```"
    end_line: int = 0


@dataclass
class Post:
    path: Path
    front_matter: Optional[dict]
    body: str
    body_line: int = 1
    fences: list[CodeFence] = field(default_factory=list)
    front_matter_error: Optional[str] = None
    read_error: Optional[str] = None

    @property
    def name(self) -> str:
        return self.path.name


def split_front_matter(text: str) -> tuple[Optional[dict], str, int]:
    """Returns (front_matter, body, body_line). body_line is 1-based."""
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip("\r\n").rstrip() != "---":
        return None, text, 1

    end = None
    for i in range(1, len(lines)):
        if lines[i].rstrip("\r\n").rstrip() in ("---", "..."):
            end = i
            break
    if end is None:
        raise FrontMatterError("front-matter starts on line 1 but is never closed")

    raw = "".join(lines[1:end])
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        problem = getattr(e, "problem", None) or str(e)
        if mark is not None:
            # +2: opening '---' line, and marks are 0-based
            raise FrontMatterError(f"invalid YAML on line {mark.line + 2}: {problem}") from e
        raise FrontMatterError(f"invalid YAML: {problem}") from e
    except ValueError as e:
        # Timestamps like 2019-02-30 pass the scanner but fail in the constructor
        raise FrontMatterError(f"invalid YAML: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterError(f"front-matter must be a mapping, got {type(data).__name__}")

    return data, "".join(lines[end + 1:]), end + 2


def extract_fences(body: str, first_line: int = 1) -> list[CodeFence]:
    fences = []
    lines = body.splitlines()
    i = 0
    while i < len(lines):
        m = FENCE_OPEN_RE.match(lines[i])
        if not m:
            i += 1
            continue

        indent, marker, info = m.group(1), m.group(2), m.group(3).strip()
        # A backtick fence's info string may not contain backticks
        if marker[0] == "`" and "`" in info:
            i += 1
            continue

        start = i
        code_lines = []
        closed = False
        i += 1
        while i < len(lines):
            line = lines[i]
            stripped = line.lstrip(" ")
            if len(line) - len(stripped) <= 3 and stripped.startswith(marker[0]):
                run = len(stripped) - len(stripped.lstrip(marker[0]))
                if run >= len(marker) and not stripped[run:].strip():
                    closed = True
                    i += 1
                    break
            # Content lines lose up to the opening fence's indentation
            if indent:
                pad = len(line) - len(line.lstrip(" "))
                line = line[min(pad, len(indent)):]
            code_lines.append(line)
            i += 1

        lang = info.split()[0].lower() if info else ""
        # Kramdown/Pandoc style: ```{.python}
        lang = lang.strip("{}").lstrip(".")
        fences.append(CodeFence(
            lang=lang,
            info=info,
            code="\n".join(code_lines),
            start_line=first_line + start,
            end_line=first_line + i - 1,
            closed=closed,
            marker=marker,
        ))

    return fences


def parse_post_filename(name: str) -> Optional[tuple[date, str]]:
    """Parse YYYY-MM-DD-slug.md into (date, slug)."""
    m = POST_FILENAME_RE.match(name)
    if not m:
        return None
    try:
        d = date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None
    return d, m.group(4)


def load_post(path: Path) -> Post:
    # utf-8-sig: a leading BOM is dropped, as Jekyll does
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        return Post(path=Path(path), front_matter=None, body="", read_error=f"not valid UTF-8: {e}")

    try:
        front_matter, body, body_line = split_front_matter(text)
        error = None
    except FrontMatterError as e:
        front_matter, body, body_line = None, text, 1
        error = str(e)

    return Post(
        path=Path(path),
        front_matter=front_matter,
        body=body,
        body_line=body_line,
        fences=extract_fences(body, body_line),
        front_matter_error=error,
    )


def list_posts(posts_dir: Path) -> list[Path]:
    return sorted(p for p in Path(posts_dir).iterdir() if p.is_file() and p.suffix in POST_SUFFIXES)
