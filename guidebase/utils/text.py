"""Text helpers shared by the ingestion and search services.

1. **Identifiers** -- guide ids derived from file names and section ids
   derived from heading titles.
2. **FTS5 query sanitising** -- user queries are made safe for SQLite's
   ``MATCH`` syntax, where ``-`` means NOT and parentheses group.
3. **Keyword detection** -- first framework/language name mentioned in a
   block of text, used as chunk metadata for filtered search.
"""

import re

_WHITESPACE_RE = re.compile(r"\s+")
_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")
_PLAIN_TERM_RE = re.compile(r"^\w+$")
_FTS_OPERATORS = frozenset({"AND", "OR", "NOT", "NEAR"})
_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+\Z")


def derive_guide_id(source_name: str) -> str:
    """Derive a stable guide id from a source file name.

    ``"07 Security.md"`` becomes ``"07-security"``.
    """
    name = source_name.rsplit("/", 1)[-1]
    if name.lower().endswith(".md"):
        name = name[:-3]
    return _WHITESPACE_RE.sub("-", name.strip().lower())


def split_lines(text: str) -> list[str]:
    """Split *text* on ``\\n`` only, keeping each line ending.

    Unlike :meth:`str.splitlines`, form feeds, ``\\x1c``-``\\x1e``, ``\\x85``,
    and U+2028/U+2029 stay inside their line, so line numbers match what an
    editor shows.  ``"".join(split_lines(text)) == text`` always holds.
    """
    return _LINE_RE.findall(text)


def slugify(title: str) -> str:
    """Lower-case *title* and collapse non-alphanumeric runs into ``-``."""
    return _NON_SLUG_RE.sub("-", title.lower()).strip("-")


def sanitize_fts_query(query: str) -> str:
    """Quote every term FTS5 would otherwise parse as syntax.

    Plain word terms pass through untouched so FTS5 keeps its implicit AND
    between them.  Anything else (hyphens, dots, quotes, ``*``, parentheses,
    bare boolean operators) is wrapped in double quotes with embedded quotes
    doubled, turning it into a phrase match.
    """
    terms: list[str] = []
    for term in query.split():
        if _PLAIN_TERM_RE.match(term) and term.upper() not in _FTS_OPERATORS:
            terms.append(term)
        else:
            escaped = term.replace('"', '""')
            terms.append(f'"{escaped}"')
    return " ".join(terms)


def detect_keyword(text: str, candidates: list[str] | tuple[str, ...]) -> str | None:
    """Return the first of *candidates* mentioned in *text* as a whole word."""
    lowered = text.lower()
    for candidate in candidates:
        if re.search(rf"\b{re.escape(candidate.lower())}\b", lowered):
            return candidate
    return None
