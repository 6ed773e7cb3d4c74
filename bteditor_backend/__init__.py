"""HTTP front for the editor core (FastAPI)."""
