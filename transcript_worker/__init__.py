"""Podcast transcript acquisition worker.

Discovers recent episodes without transcripts, requests transcripts from the
tiered Taddy provider, falls back to Deepgram speech-to-text under a cost
budget, and stores gzipped transcript artifacts alongside database records.
"""

__version__ = "0.1.0"
