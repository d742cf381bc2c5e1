"""
space-command - MCP server over a folder of tagged markdown notes.

Lines tagged #todo, #idea or #principle become indexed items that agents
can query, rank by priority and edit in place.

Stack:
- Python + FastMCP
- watchdog (file change notifications)
- httpx (LLM backend client, via Workspace.text_generator)
- Markdown (source of truth)
"""

__version__ = "0.1.0"
