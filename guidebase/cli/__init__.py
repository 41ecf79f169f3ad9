# =============================================================================
# guidebase/cli/__init__.py — Command-line interface
# =============================================================================
#
# One argparse tool, ``python -m guidebase.cli``, with five subcommands:
#
#   ingest  Parse, chunk, and index markdown guides (files or directories)
#   search  Hybrid keyword + semantic search with metadata filters
#   get     Print a guide, or one section of it, by id
#   related List the guides a guide declares as related
#   stats   Print corpus counts
#
# Services are built per invocation through guidebase.main.build_services;
# chromadb and fastembed are only imported when a command needs them.
# =============================================================================

"""Command-line tools for the guidebase corpus."""
