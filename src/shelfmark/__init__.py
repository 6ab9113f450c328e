# ABOUTME: Shelfmark reconciles book metadata gathered from many unreliable sources.
# ABOUTME: The package is split into metadata (inputs, providers), reconcile (per-field engines) and core.
