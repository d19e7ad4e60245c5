"""FastAPI display service and shared wiring."""
