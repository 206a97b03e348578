"""Chunking, indexing and hybrid retrieval over uploaded documents."""
