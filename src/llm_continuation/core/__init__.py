"""Core engine modules for llm-continuation."""
