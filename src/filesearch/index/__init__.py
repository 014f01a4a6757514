"""Indexing engine: storage, scanning and querying."""
