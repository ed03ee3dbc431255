"""project_bundle: turn a project directory into a single LLM-ready bundle."""

__version__ = "0.1.0"
