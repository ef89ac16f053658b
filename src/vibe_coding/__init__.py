"""Turn LLM-written XML change descriptions into file changes, and workspaces into XML prompts."""

__version__ = "0.1.0"
