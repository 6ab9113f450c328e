# ABOUTME: Core workflows built on the reconcilers: duplicate detection and enrichment.
# ABOUTME: Modules here combine providers, reconcilers and library lookups into one answer.
