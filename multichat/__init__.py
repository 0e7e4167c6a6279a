"""
Multichat

Terminal chat against one or several Ollama hosts at once, with
each host/model pair streaming into its own session.

Components:
- orchestrator: Concurrent sessions, event queue, aggregate state
- session: Per host/model conversation state
- stream: NDJSON stream decoder and Ollama errors
- ollama_client: Shared async HTTP client
- registry: Host to model assignments and selection order
- management: List/pull/delete/sync/unload across hosts
"""

__version__ = "0.1.0"
