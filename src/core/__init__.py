"""Core domain package for tagstash.

Core contains entity rendering, tag extraction, album batching and record
building without any Telegram or storage-specific code, keeping the
ingestion logic portable.
"""
