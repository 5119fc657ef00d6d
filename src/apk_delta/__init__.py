"""Incremental state for application packaging: file-set deltas and dex slot assignment."""
