"""Durable job queue and worker for sequence-search pipelines."""

__version__ = "0.1.0"
