"""Document ingestion pipeline for the guide corpus.

Orchestrates: **parse -> split -> chunk -> persist**.

1. **Parse** (metadata_extractor.py / FrontmatterExtractor) -- Splits a raw
   document into its YAML header and markdown body.  A missing or broken
   header is a hard failure for that document.

2. **Split** (section_splitter.py / SectionSplitter) -- Walks the body and
   cuts it into heading-delimited sections, skipping headings inside
   fenced code.

3. **Chunk** (chunker.py / GuideChunker) -- Turns each section into one or
   more token-bounded chunks, packing whole paragraphs and prefixing a
   context header.

4. **Persist** (indexing_service.py / GuideIndexer) -- Writes the body,
   metadata, full-text rows, and embedded chunks, stage by stage.
"""

from guidebase.services.ingestion.chunker import GuideChunker, HeuristicTokenEstimator
from guidebase.services.ingestion.indexing_service import GuideIndexer
from guidebase.services.ingestion.metadata_extractor import FrontmatterExtractor
from guidebase.services.ingestion.section_splitter import SectionSplitter

__all__ = [
    "FrontmatterExtractor",
    "GuideChunker",
    "GuideIndexer",
    "HeuristicTokenEstimator",
    "SectionSplitter",
]
