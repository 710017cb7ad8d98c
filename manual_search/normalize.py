from __future__ import annotations

"""
Text normalisation helpers shared by the retrieval tiers and the reranker.

Public helpers:

* normalize_query(text) -> str
    Unicode / quote / whitespace clean applied to every incoming query.

* expand_query(text) -> str
    Appends a ``Synonyms:`` line when a configured symptom rule fires.

* keyword_line(text) -> str
    Part numbers, connectors, voltages and error codes found in the text.

* dense_query_text(text, max_chars) -> str
    The full string sent to the embedding provider.

* simple_tokenize(text) -> List[str]
    Lower-cased whitespace/punctuation tokeniser used for Jaccard similarity.
"""

from typing import List, Pattern, Tuple
import re
import unicodedata

from . import config

_EXPANSION_RULES: List[Tuple[Pattern[str], List[str]]] = [
    (re.compile(pattern, flags=re.IGNORECASE), list(synonyms))
    for pattern, synonyms in config.QUERY_EXPANSIONS
]
_KEYWORD_RX = re.compile(config.KEYWORD_PATTERN, flags=re.IGNORECASE)
_TOKEN_SPLIT_RX = re.compile(r"[\W_]+", flags=re.UNICODE)

# ---------------------------------------------------------------------------
# Low-level helpers
# ---------------------------------------------------------------------------


def _normalise_unicode(text: str) -> str:
    text = unicodedata.normalize("NFKC", text)
    # Replace fancy quotes / dashes with ASCII variants
    text = text.replace("\u2018", "'").replace("\u2019", "'")
    text = text.replace("\u201c", '"').replace("\u201d", '"')
    text = text.replace("\u2013", "-").replace("\u2014", "-")
    return text


def clamp_text_length(text: str, max_chars: int = config.EMBED_MAX_INPUT_CHARS) -> str:
    if len(text) > max_chars:
        return text[:max_chars]
    return text


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_query(text: str | None) -> str:
    """Unify quotes and collapse whitespace; ``None`` becomes ``""``."""
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)
    text = _normalise_unicode(text)
    return re.sub(r"\s+", " ", text).strip()


def expand_query(text: str) -> str:
    """Append symptom synonyms for the first matching expansion rule."""
    norm = normalize_query(text)
    for rule, synonyms in _EXPANSION_RULES:
        if rule.search(norm):
            return f"{norm}\nSynonyms: {', '.join(synonyms)}"
    return norm


def keyword_line(text: str) -> str:
    """Distinct hardware keywords in order of first appearance."""
    seen: List[str] = []
    for m in _KEYWORD_RX.finditer(text or ""):
        tok = m.group(0)
        if tok not in seen:
            seen.append(tok)
    return " ".join(seen)


def dense_query_text(text: str, max_chars: int = config.EMBED_MAX_INPUT_CHARS) -> str:
    """
    Build the embedding input: expanded query plus a keyword line,
    truncated to the provider's safe input length.
    """
    expanded = expand_query(text)
    keywords = keyword_line(expanded)
    hybrid = f"{expanded}\nKeywords: {keywords}" if keywords else expanded
    return clamp_text_length(hybrid, max_chars)


def simple_tokenize(text: str | None) -> List[str]:
    if not text:
        return []
    return [t for t in _TOKEN_SPLIT_RX.split(text.lower()) if t]
