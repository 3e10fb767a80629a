"""Answer text post-processing.

The web-search model answers in markdown, sometimes with LaTeX fragments and
inline links back to its sources.  The UI renders plain text with numbered
``[n]`` markers pointing into the source list, so the answer is rewritten
here:

1. strip markdown / LaTeX artifacts (bold, math delimiters, commands, headers)
2. collapse ``([label](url))`` and ``[label](url)`` links to ``label``
3. collapse whitespace
4. append ``[n]`` markers to the first few sentences when sources exist

Sentence splitting is a naive split on ``". "``; abbreviations and decimals
will be mis-segmented.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit, urlunsplit

# Minimum cleaned length before inline markers are added
MIN_ANNOTATE_LENGTH = 100
# Sentences this short (or shorter) never get a marker
MIN_SENTENCE_LENGTH = 20
MAX_INLINE_CITATIONS = 4

# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------
# $$ ... $$ and \[ ... \] display math: only the delimiters are removed
_BLOCK_MATH_RE = re.compile(r"\$\$|\\\[|\\\]")
_INLINE_MATH_RE = re.compile(r"\\\(|\\\)")
# \text{kg}, \mathrm{GDP} → argument only
_LATEX_COMMAND_RE = re.compile(r"\\[a-zA-Z]+\{([^{}]*)\}")
# \times, \%, lone backslashes
_STRAY_BACKSLASH_RE = re.compile(r"\\[a-zA-Z]*")
_BOLD_RE = re.compile(r"\*\*|__")
_HEADER_RE = re.compile(r"^[ \t]*#{1,6}[ \t]+", re.MULTILINE)
# ([example.com](https://example.com/page?utm_source=openai))
_PAREN_LINK_RE = re.compile(r"\(\[([^\]]+)\]\([^)]*\)\)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_WHITESPACE_RE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def strip_query_string(url: str) -> str:
    """Drop query-string parameters (and any fragment) from a URL.

    >>> strip_query_string("https://x.com/a?utm=1")
    'https://x.com/a'
    """
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def _strip_artifacts(text: str) -> str:
    text = _BLOCK_MATH_RE.sub("", text)
    text = _INLINE_MATH_RE.sub("", text)
    text = _LATEX_COMMAND_RE.sub(r"\1", text)
    text = _STRAY_BACKSLASH_RE.sub("", text)
    text = _BOLD_RE.sub("", text)
    text = _HEADER_RE.sub("", text)
    text = _PAREN_LINK_RE.sub(r"\1", text)
    text = _LINK_RE.sub(r"\1", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def clean_markdown(text: str) -> str:
    """Strip markdown / LaTeX artifacts, collapse links and whitespace.

    Idempotent: ``clean_markdown(clean_markdown(t)) == clean_markdown(t)``.
    """
    # A removal can expose a new artifact (``*\\*`` → ``**``), so repeat
    # until the text is stable.  Every pass shortens the text or stops.
    previous = None
    while text != previous:
        previous = text
        text = _strip_artifacts(text)
    return text


def add_citation_markers(text: str, source_count: int) -> str:
    """Append ``[n]`` to the first ``min(source_count, 4)`` sentences.

    Sentences of ``MIN_SENTENCE_LENGTH`` characters or less, and sentences
    that already contain a ``[``, are left alone.  ``n`` is the 1-based
    sentence position, so every marker resolves to one of the first
    ``source_count`` sources.
    """
    if source_count <= 0 or len(text) <= MIN_ANNOTATE_LENGTH:
        return text

    sentences = text.split(". ")
    limit = min(source_count, MAX_INLINE_CITATIONS, len(sentences))
    for idx in range(limit):
        sentence = sentences[idx]
        if len(sentence) <= MIN_SENTENCE_LENGTH or "[" in sentence:
            continue
        marker = f"[{idx + 1}]"
        if sentence.endswith("."):
            sentences[idx] = f"{sentence[:-1]} {marker}."
        else:
            sentences[idx] = f"{sentence} {marker}"
    return ". ".join(sentences)


def normalize_answer(text: str, source_count: int) -> str:
    """Full answer rewrite: cleanup followed by citation markers."""
    return add_citation_markers(clean_markdown(text), source_count)
