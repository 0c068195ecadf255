"""Shared building blocks: exceptions and version parsing."""
