"""
Syntax checks for fenced code blocks, keyed by the fence's info-string language.

Each checker takes the fence's code and returns a list of (line, message)
problems, where line is 1-based within the code (or None when unknown).
An empty list means the snippet is valid as far as the checker can tell.
"""

import ast
import json
import re
import xml.etree.ElementTree as ET
from html.parser import HTMLParser
from typing import Callable, Optional

import yaml

from post_loader import CodeFence

Problem = tuple[Optional[int], str]

LANGUAGE_ALIASES = {
    "ts": "typescript", "typescript": "typescript", "tsx": "typescript",
    "js": "javascript", "javascript": "javascript", "jsx": "javascript", "node": "javascript",
    "c#": "csharp", "cs": "csharp", "csharp": "csharp",
    "java": "java",
    "css": "css", "scss": "scss", "less": "scss",
    "json": "json", "jsonc": "json5", "json5": "json5",
    "yaml": "yaml", "yml": "yaml",
    "python": "python", "py": "python", "python3": "python",
    "html": "html", "htm": "html", "angular-html": "html",
    "xml": "xml", "csproj": "xml", "svg": "xml",
    "bash": "bash", "sh": "bash", "shell": "bash", "zsh": "bash", "console": "console",
}

PROSE_LANGUAGES = {"text", "plaintext", "txt", "output", "diff", "http", "markdown", "md", "none"}

HTML_VOID_ELEMENTS = {
    "area", "base", "br", "col", "embed", "hr", "img", "input", "link",
    "meta", "param", "source", "track", "wbr",
}

# Elements whose end tag may be omitted
HTML_OPTIONAL_END = {
    "p", "li", "dt", "dd", "tr", "td", "th", "thead", "tbody", "tfoot",
    "option", "optgroup", "colgroup", "caption", "rt", "rp", "html", "head", "body",
}

BRACKET_PAIRS = {")": "(", "]": "[", "}": "{"}


def check_json(code: str) -> list[Problem]:
    try:
        json.loads(code)
    except json.JSONDecodeError as e:
        return [(e.lineno, f"invalid JSON: {e.msg} (column {e.colno})")]
    return []


def check_yaml(code: str) -> list[Problem]:
    try:
        list(yaml.safe_load_all(code))
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        problem = getattr(e, "problem", None) or str(e)
        return [(mark.line + 1 if mark is not None else None, f"invalid YAML: {problem}")]
    except ValueError as e:
        # Raised by the timestamp constructor for dates like 2019-13-01
        return [(None, f"invalid YAML: {e}")]
    return []


def _strip_repl_prompts(code: str) -> str:
    lines = code.splitlines()
    if not any(line.startswith(">>> ") or line == ">>>" for line in lines):
        return code
    # Keep line numbers: blank out output lines instead of dropping them
    kept = []
    for line in lines:
        if line.startswith((">>> ", "... ")):
            kept.append(line[4:])
        else:
            kept.append("")
    return "\n".join(kept)


def check_python(code: str) -> list[Problem]:
    try:
        ast.parse(_strip_repl_prompts(code))
    except SyntaxError as e:
        return [(e.lineno, f"invalid Python: {e.msg}")]
    return []


def check_xml(code: str) -> list[Problem]:
    text = code.strip()
    if not text.startswith("<?xml"):
        # Fragments may hold several sibling elements; wrapping keeps line numbers
        text = f"<fragment>{code}</fragment>"
    try:
        ET.fromstring(text)
    except ET.ParseError as e:
        line, _col = e.position
        return [(line, f"invalid XML: {e}")]
    return []


class _TagBalanceParser(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.stack: list[tuple[str, int]] = []
        self.problems: list[Problem] = []

    def handle_starttag(self, tag, attrs):
        if tag not in HTML_VOID_ELEMENTS:
            self.stack.append((tag, self.getpos()[0]))

    def handle_startendtag(self, tag, attrs):
        # <my-widget /> is accepted by Angular templates
        pass

    def handle_endtag(self, tag):
        line = self.getpos()[0]
        if tag in HTML_VOID_ELEMENTS:
            return
        open_tags = [t for t, _ in self.stack]
        if tag not in open_tags:
            self.problems.append((line, f"closing tag </{tag}> has no matching open tag"))
            return
        while self.stack:
            open_tag, open_line = self.stack.pop()
            if open_tag == tag:
                break
            if open_tag not in HTML_OPTIONAL_END:
                self.problems.append((open_line, f"<{open_tag}> is not closed before </{tag}>"))

    def finish(self) -> list[Problem]:
        self.close()
        for tag, line in self.stack:
            if tag not in HTML_OPTIONAL_END:
                self.problems.append((line, f"<{tag}> is never closed"))
        return self.problems


def check_html(code: str) -> list[Problem]:
    parser = _TagBalanceParser()
    parser.feed(code)
    return parser.finish()


# A '/' after one of these (or at the start) begins a JS regex literal, not a division
REGEX_PRECEDERS = set("(,=:[!&|?{};+-*%<>~^")
REGEX_KEYWORDS = ("return", "typeof", "case", "in", "of", "yield", "await")


def _regex_allowed(before: str) -> bool:
    before = before.rstrip()
    if not before or before[-1] in REGEX_PRECEDERS:
        return True
    word = re.search(r"[A-Za-z_$][\w$]*$", before)
    return word is not None and word.group(0) in REGEX_KEYWORDS


def _scan_regex(code: str, i: int) -> Optional[int]:
    """Index after /pattern/flags, or None if the line ends first."""
    in_class = False
    while i < len(code):
        c = code[i]
        if c == "\n":
            return None
        if c == "\\":
            i += 2
            continue
        if c == "[":
            in_class = True
        elif c == "]":
            in_class = False
        elif c == "/" and not in_class:
            i += 1
            while i < len(code) and code[i].isalpha():
                i += 1
            return i
        i += 1
    return None


def check_brackets(
    code: str,
    line_comment: Optional[str] = "//",
    template_literals: bool = False,
    verbatim_strings: bool = False,
    preprocessor: bool = False,
) -> list[Problem]:
    """Bracket balance for C-family code, skipping strings and comments."""
    problems = []
    stack: list[tuple[str, int]] = []
    i, line, n = 0, 1, len(code)
    at_line_start = True

    def scan_quoted(i: int, quote: str, start_line: int, multiline: bool, doubled_escape: bool):
        """Returns (index after closing quote, current line)."""
        cur = start_line
        while i < n:
            c = code[i]
            if c == "\\" and not doubled_escape:
                if i + 1 < n and code[i + 1] == "\n":
                    cur += 1
                i += 2
                continue
            if c == quote:
                if doubled_escape and i + 1 < n and code[i + 1] == quote:
                    i += 2
                    continue
                return i + 1, cur
            if c == "\n":
                if not multiline:
                    problems.append((start_line, f"unterminated string literal {quote}...{quote}"))
                    return i, cur
                cur += 1
            i += 1
        problems.append((start_line, f"unterminated string literal {quote}...{quote}"))
        return n, cur

    def scan_template(i: int, start_line: int):
        """Scan template literal text. Returns (index, line, hit_interpolation)."""
        cur = start_line
        while i < n:
            c = code[i]
            if c == "\\":
                if i + 1 < n and code[i + 1] == "\n":
                    cur += 1
                i += 2
                continue
            if c == "`":
                return i + 1, cur, False
            if c == "$" and i + 1 < n and code[i + 1] == "{":
                return i + 2, cur, True
            if c == "\n":
                cur += 1
            i += 1
        problems.append((start_line, "unterminated template literal"))
        return n, cur, False

    while i < n:
        c = code[i]

        if c == "\n":
            line += 1
            i += 1
            at_line_start = True
            continue
        if c in " \t\r":
            i += 1
            continue

        if preprocessor and at_line_start and c == "#":
            while i < n and code[i] != "\n":
                i += 1
            continue
        at_line_start = False

        if line_comment and code.startswith(line_comment, i):
            while i < n and code[i] != "\n":
                i += 1
            continue
        if code.startswith("/*", i):
            end = code.find("*/", i + 2)
            if end == -1:
                problems.append((line, "unterminated block comment"))
                break
            line += code.count("\n", i, end)
            i = end + 2
            continue

        if verbatim_strings and c in "@$":
            # @"..."  $@"..."  @$"..." use "" as the escape
            m = re.match(r'(\$@|@\$|@)"', code[i:i + 3])
            if m:
                i, line = scan_quoted(i + len(m.group(0)), '"', line, True, True)
                continue

        if c in "\"'":
            i, line = scan_quoted(i + 1, c, line, False, False)
            continue

        if template_literals and c == "`":
            i, line, interp = scan_template(i + 1, line)
            if interp:
                stack.append(("${", line))
            continue

        if template_literals and c == "/" and _regex_allowed(code[:i]):
            end = _scan_regex(code, i + 1)
            if end is not None:
                i = end
                continue

        if c in "([{":
            stack.append((c, line))
        elif c in BRACKET_PAIRS:
            if stack and stack[-1][0] == "${" and c == "}":
                stack.pop()
                i, line, interp = scan_template(i + 1, line)
                if interp:
                    stack.append(("${", line))
                continue
            if not stack:
                problems.append((line, f"unmatched '{c}'"))
            elif stack[-1][0] != BRACKET_PAIRS[c]:
                open_char, open_line = stack.pop()
                problems.append((line, f"'{c}' closes '{open_char}' opened on line {open_line}"))
            else:
                stack.pop()
        i += 1

    for open_char, open_line in stack:
        if open_char == "${":
            problems.append((open_line, "unterminated template literal interpolation"))
        else:
            problems.append((open_line, f"'{open_char}' is never closed"))
    return problems


def check_typescript(code: str) -> list[Problem]:
    return check_brackets(code, template_literals=True)


def check_csharp(code: str) -> list[Problem]:
    return check_brackets(code, verbatim_strings=True, preprocessor=True)


def check_css(code: str) -> list[Problem]:
    # '//' is not a comment in plain CSS and shows up in url(http://...)
    return check_brackets(code, line_comment=None)


def _strip_prompts(code: str, output_lines: bool) -> str:
    """Drop '$ ' / '> ' prompts. For console sessions, blank out output lines."""
    kept = []
    continuing = False
    for line in code.splitlines():
        stripped = line.lstrip()
        if continuing:
            kept.append(line)
        elif stripped.startswith(("$ ", "> ")):
            kept.append(stripped[2:])
        elif stripped in ("$", ">"):
            kept.append("")
        else:
            kept.append("" if output_lines else line)
        # A command continued with a trailing backslash is not output
        continuing = kept[-1].endswith("\\")
    return "\n".join(kept)


HEREDOC_RE = re.compile(r"<<(-?)\s*(['\"]?)([A-Za-z_][A-Za-z0-9_]*)\2")


def check_bash(code: str, console: bool = False) -> list[Problem]:
    """Quote balance for shell snippets, honouring escapes, comments and heredocs."""
    if console and any(l.lstrip().startswith("$ ") for l in code.splitlines()):
        code = _strip_prompts(code, output_lines=True)
    else:
        code = _strip_prompts(code, output_lines=False)

    problems = []
    lines = code.split("\n")
    open_quote: Optional[tuple[str, int]] = None
    heredoc: Optional[tuple[str, bool]] = None

    for lineno, line in enumerate(lines, start=1):
        if heredoc is not None:
            delim, dash = heredoc
            if (line.lstrip("\t") if dash else line) == delim:
                heredoc = None
            continue

        i, n = 0, len(line)
        pending_heredoc = None
        while i < n:
            c = line[i]
            if open_quote is not None:
                quote = open_quote[0]
                if quote == "'":
                    if c == "'":
                        open_quote = None
                elif quote == "$'":
                    if c == "\\":
                        i += 1
                    elif c == "'":
                        open_quote = None
                else:
                    if c == "\\":
                        i += 1
                    elif c == quote:
                        open_quote = None
                i += 1
                continue

            if c == "\\":
                i += 2
                continue
            if c == "#" and (i == 0 or line[i - 1] in " \t;|&("):
                break
            if c == "$" and line.startswith("$'", i):
                open_quote = ("$'", lineno)
                i += 2
                continue
            if c in "'\"`":
                open_quote = (c, lineno)
                i += 1
                continue
            if c == "<":
                # Here-string, not a heredoc
                if line.startswith("<<<", i):
                    i += 3
                    continue
                m = HEREDOC_RE.match(line, i)
                if m:
                    pending_heredoc = (m.group(3), m.group(1) == "-")
                    i = m.end()
                    continue
            i += 1

        if pending_heredoc is not None:
            heredoc = pending_heredoc

    if open_quote is not None:
        quote, lineno = open_quote
        problems.append((lineno, f"unterminated {quote} quote"))
    if heredoc is not None:
        problems.append((None, f"heredoc '{heredoc[0]}' is never terminated"))
    return problems


CHECKERS: dict[str, Callable[[str], list[Problem]]] = {
    "json": check_json,
    "json5": check_brackets,
    "yaml": check_yaml,
    "python": check_python,
    "xml": check_xml,
    "html": check_html,
    "typescript": check_typescript,
    "javascript": check_typescript,
    "csharp": check_csharp,
    "java": check_brackets,
    "css": check_css,
    "scss": check_brackets,
    "bash": check_bash,
    "console": lambda code: check_bash(code, console=True),
}


def canonical_language(lang: str) -> Optional[str]:
    return LANGUAGE_ALIASES.get(lang.lower())


def check_fence(fence: CodeFence) -> tuple[list[str], list[str]]:
    """Returns (errors, warnings), each message prefixed with its file line."""
    errors = []
    warnings = []
    where = f"line {fence.start_line}"

    if not fence.closed:
        errors.append(f"{where}: code fence {fence.marker} is never closed")

    if not fence.code.strip():
        warnings.append(f"{where}: empty code fence")
        return errors, warnings

    if not fence.lang:
        warnings.append(f"{where}: code fence has no language tag")
        return errors, warnings

    if fence.lang in PROSE_LANGUAGES:
        return errors, warnings

    key = canonical_language(fence.lang)
    if key is None:
        warnings.append(f"{where}: no syntax check for language '{fence.lang}'")
        return errors, warnings

    for line, message in CHECKERS[key](fence.code):
        if line is None:
            errors.append(f"{where}: {fence.lang}: {message}")
        else:
            errors.append(f"line {fence.start_line + line}: {fence.lang}: {message}")

    return errors, warnings
