"""ContextPilot CLI: terminal front end for the contextpilot history indexer."""

__version__ = "1.1.7"
