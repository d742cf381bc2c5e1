"""Hashtag and checkbox utilities shared by the scanner and the processor.

Every function here operates on a single line of text. Inline code spans
(text between a pair of backticks) are masked with opaque placeholders before
any tag is matched or rewritten, and restored verbatim afterwards, so tokens
such as `#689fd6` inside code are never treated as tags.
"""

import re

# Tokens: "#" followed by word characters or hyphens. The lookbehind keeps
# "##" heading markers and "foo#bar" fragments out.
TAG_PATTERN = re.compile(r"(?<![\w#])#[\w-]+")

CODE_SPAN_PATTERN = re.compile(r"`[^`]*`")
PLACEHOLDER_PATTERN = re.compile("\x00(\\d+)\x00")

DATE_TOKEN_PATTERN = re.compile(r"@\d{4}-\d{2}-\d{2}")
BLOCK_REF_PATTERN = re.compile(r"\s\^[\w-]+$")

CHECKBOX_PATTERN = re.compile(r"^(\s*(?:[-*+]|\d+[.)])\s+\[)([ xX])(\])")


def mask_code_spans(text: str) -> tuple[str, list[str]]:
    """Replace inline code spans with placeholders.

    Returns:
        Tuple of (masked_text, spans) where spans[i] is the original text of
        the placeholder with index i.
    """
    spans: list[str] = []

    def _store(match: re.Match) -> str:
        spans.append(match.group(0))
        return f"\x00{len(spans) - 1}\x00"

    return CODE_SPAN_PATTERN.sub(_store, text), spans


def unmask_code_spans(masked: str, spans: list[str]) -> str:
    """Restore placeholders produced by mask_code_spans."""
    if not spans:
        return masked
    return PLACEHOLDER_PATTERN.sub(lambda m: spans[int(m.group(1))], masked)


def strip_code_spans(text: str) -> str:
    """Return text with inline code spans removed entirely."""
    return CODE_SPAN_PATTERN.sub("", text)


def extract_tags(text: str) -> list[str]:
    """Extract hashtag tokens outside inline code spans.

    Order of first appearance is kept and duplicates are dropped.
    """
    masked, _ = mask_code_spans(text)
    seen: set[str] = set()
    tags: list[str] = []
    for token in TAG_PATTERN.findall(masked):
        if token not in seen:
            seen.add(token)
            tags.append(token)
    return tags


def _token_pattern(tag: str) -> re.Pattern:
    return re.compile(r"(?<![\w#])" + re.escape(tag) + r"(?![\w-])", re.IGNORECASE)


def has_tag(text: str, tag: str) -> bool:
    """Check whether the exact tag token appears outside code spans."""
    masked, _ = mask_code_spans(text)
    return _token_pattern(tag).search(masked) is not None


def _split_indent(text: str) -> tuple[str, str]:
    body = text.lstrip()
    return text[: len(text) - len(body)], body


def add_tag(text: str, tag: str) -> str:
    """Append a tag to the line unless it is already present.

    The tag goes at the end of the line, ahead of a trailing block
    reference (" ^block-id") when there is one.
    """
    if has_tag(text, tag):
        return text

    stripped = text.rstrip()
    if not stripped:
        return tag

    block_ref = BLOCK_REF_PATTERN.search(stripped)
    if block_ref:
        head = stripped[: block_ref.start()].rstrip()
        return f"{head} {tag}{stripped[block_ref.start():]}"
    return f"{stripped} {tag}"


def remove_tag(text: str, tag: str) -> str:
    """Remove every occurrence of a tag token outside code spans.

    Whitespace left behind by the removal is collapsed; leading indentation
    and the rest of the line are kept verbatim.
    """
    indent, body = _split_indent(text)
    masked, spans = mask_code_spans(body)
    pattern = re.compile(
        r"(^|[ \t]+)" + re.escape(tag) + r"(?![\w-])([ \t]*)", re.IGNORECASE
    )

    def _drop(match: re.Match) -> str:
        at_start = match.group(1) == ""
        at_end = match.end() == len(match.string)
        if at_start or at_end:
            return ""
        return " "

    # Substitution runs until stable so adjacent duplicates collapse too.
    while True:
        updated = pattern.sub(_drop, masked)
        if updated == masked:
            break
        masked = updated
    return indent + unmask_code_spans(masked, spans)


def replace_tag(text: str, old: str, new: str) -> str:
    """Replace the first occurrence of a tag token outside code spans."""
    masked, spans = mask_code_spans(text)
    updated = _token_pattern(old).sub(lambda _: new, masked, count=1)
    return unmask_code_spans(updated, spans)


def has_checkbox(text: str) -> bool:
    return CHECKBOX_PATTERN.match(text) is not None


def is_checkbox_checked(text: str) -> bool:
    match = CHECKBOX_PATTERN.match(text)
    return match is not None and match.group(2) in ("x", "X")


def mark_checkbox_complete(text: str) -> str:
    return CHECKBOX_PATTERN.sub(r"\1x\3", text, count=1)


def mark_checkbox_incomplete(text: str) -> str:
    return CHECKBOX_PATTERN.sub(r"\1 \3", text, count=1)


def filename_to_tag(filename: str) -> str | None:
    """Derive a tag from a document filename ("api-tasks.md" -> "#api-tasks")."""
    stem = filename.rsplit("/", 1)[-1]
    if stem.lower().endswith(".md"):
        stem = stem[:-3]
    slug = re.sub(r"\s+", "-", stem.strip().lower())
    slug = re.sub(r"[^\w-]", "", slug).strip("-")
    if not slug:
        return None
    return f"#{slug}"
