"""
Test suite for Flux Archive.

This package contains:
- Unit tests for the capture store, image backends, codec, settings and media lookup
- Integration tests for complete capture and conversion workflows
- Fixture builders producing SCP and FLUXARC images in memory
"""
