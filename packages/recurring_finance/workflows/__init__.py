"""Multi-step workflows that combine the engine with storage."""
