"""FastAPI routers mounted under ``/api/v1``."""
