"""LangGraph-based review loop."""
