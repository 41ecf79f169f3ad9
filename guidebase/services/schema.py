"""SQL statements shared by the indexer, the search service, and the assembler.

Table layout (created by :class:`SQLiteRelationalStore.initialize`):

    guides         one row per guide; list-valued fields stored as JSON arrays
    sections       one row per section, primary key (guide_id, id)
    code_examples  fenced code blocks, ordered by (section position, position)
    guides_fts     FTS5 table, one row per section:
                   guide_id UNINDEXED, section_id UNINDEXED,
                   title, section_title, content, tags

Column 4 of ``guides_fts`` (``content``) is the one excerpts are cut from.
"""

# ---------------------------------------------------------------------------
# Metadata write -- run together in one transaction per guide.
# ---------------------------------------------------------------------------

UPSERT_GUIDE_SQL = """\
INSERT INTO guides (
    id, title, category, subcategory, type, status, version, last_updated,
    tags, related_guides, languages, frameworks, platforms, extra,
    body_location, indexed_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
ON CONFLICT(id) DO UPDATE SET
    title          = excluded.title,
    category       = excluded.category,
    subcategory    = excluded.subcategory,
    type           = excluded.type,
    status         = excluded.status,
    version        = excluded.version,
    last_updated   = excluded.last_updated,
    tags           = excluded.tags,
    related_guides = excluded.related_guides,
    languages      = excluded.languages,
    frameworks     = excluded.frameworks,
    platforms      = excluded.platforms,
    extra          = excluded.extra,
    body_location  = excluded.body_location,
    indexed_at     = excluded.indexed_at;
"""

DELETE_SECTIONS_SQL = "DELETE FROM sections WHERE guide_id = ?;"

DELETE_CODE_EXAMPLES_SQL = "DELETE FROM code_examples WHERE guide_id = ?;"

INSERT_SECTION_SQL = """\
INSERT INTO sections (
    guide_id, id, position, level, title, content, heading_line,
    start_line, end_line, framework, language
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

INSERT_CODE_EXAMPLE_SQL = """\
INSERT INTO code_examples (guide_id, section_id, position, language, code, caption)
VALUES (?, ?, ?, ?, ?, ?);
"""

# ---------------------------------------------------------------------------
# Full-text write -- delete-then-insert in one transaction per guide.
# ---------------------------------------------------------------------------

DELETE_FTS_SQL = "DELETE FROM guides_fts WHERE guide_id = ?;"

INSERT_FTS_SQL = """\
INSERT INTO guides_fts (guide_id, section_id, title, section_title, content, tags)
VALUES (?, ?, ?, ?, ?, ?);
"""

# ---------------------------------------------------------------------------
# Keyword search.  {filters} is replaced with zero or more "AND ..." clauses
# built from KEYWORD_FILTER_CLAUSES; every clause binds its own parameters.
# ---------------------------------------------------------------------------

KEYWORD_SEARCH_SQL = """\
SELECT
    guides_fts.guide_id      AS guide_id,
    guides_fts.section_id    AS section_id,
    guides.title             AS guide_title,
    guides_fts.section_title AS section_title,
    snippet(guides_fts, 4, '<mark>', '</mark>', '...', 32) AS snippet,
    -bm25(guides_fts)        AS native_score,
    guides.category          AS category,
    guides.tags              AS tags,
    guides.status            AS status,
    sections.framework       AS framework,
    sections.language        AS language
FROM guides_fts
JOIN guides   ON guides.id = guides_fts.guide_id
JOIN sections ON sections.guide_id = guides_fts.guide_id
             AND sections.id = guides_fts.section_id
WHERE guides_fts MATCH ?{filters}
ORDER BY native_score DESC, guides_fts.guide_id, guides_fts.section_id
LIMIT ?;
"""

KEYWORD_FILTER_CLAUSES = {
    "category": (
        "EXISTS (SELECT 1 FROM json_each(guides.category) AS c WHERE c.value = ?)"
    ),
    "status": "guides.status = ?",
    "framework": "sections.framework = ?",
    "language": "sections.language = ?",
}

# Formatted with one "?" per requested tag.
KEYWORD_TAGS_CLAUSE = (
    "EXISTS (SELECT 1 FROM json_each(guides.tags) AS t WHERE t.value IN ({placeholders}))"
)

# ---------------------------------------------------------------------------
# Guide retrieval.
# ---------------------------------------------------------------------------

SELECT_GUIDE_SQL = """\
SELECT id, title, category, subcategory, type, status, version, last_updated,
       tags, related_guides, languages, frameworks, platforms, extra,
       body_location, indexed_at
FROM guides
WHERE id = ?;
"""

SELECT_GUIDES_BY_ID_SQL = """\
SELECT id, title, category, subcategory, type, status, version, last_updated,
       tags, related_guides, languages, frameworks, platforms, extra,
       body_location, indexed_at
FROM guides
WHERE id IN ({placeholders});
"""

SELECT_SECTIONS_SQL = """\
SELECT id, position, level, title, content, heading_line, start_line, end_line
FROM sections
WHERE guide_id = ?
ORDER BY position;
"""

SELECT_SECTION_SQL = """\
SELECT id, position, level, title, content, heading_line, start_line, end_line
FROM sections
WHERE guide_id = ? AND id = ?;
"""

SELECT_CODE_EXAMPLES_SQL = """\
SELECT section_id, language, code, caption
FROM code_examples
WHERE guide_id = ?
ORDER BY section_id, position;
"""

# ---------------------------------------------------------------------------
# Corpus statistics.
# ---------------------------------------------------------------------------

COUNT_GUIDES_SQL = "SELECT COUNT(*) AS n FROM guides;"
COUNT_SECTIONS_SQL = "SELECT COUNT(*) AS n FROM sections;"
COUNT_CODE_EXAMPLES_SQL = "SELECT COUNT(*) AS n FROM code_examples;"

GUIDES_BY_CATEGORY_SQL = """\
SELECT c.value AS category, COUNT(*) AS n
FROM guides, json_each(guides.category) AS c
GROUP BY c.value
ORDER BY c.value;
"""

GUIDES_BY_STATUS_SQL = """\
SELECT status, COUNT(*) AS n
FROM guides
GROUP BY status
ORDER BY status;
"""
