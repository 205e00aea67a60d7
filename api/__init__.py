"""HTTP surface for the event pipeline (FastAPI)."""
