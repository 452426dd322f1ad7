"""
SoulSync Chat Service

Streaming RAG chat companion
- per-user semantic memory in Qdrant
- lexicon sentiment on every message
- background LLM sentiment reconciliation
"""

__version__ = "1.0.0"
__author__ = "SoulSync Team"
