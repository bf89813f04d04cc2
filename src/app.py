"""QRIS POS FastAPI application.

Single-domain web server that processes commands synchronously via HTTP.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay; PAYMENT_GATEWAY selects the adapter.
from pos.api.application import create_app
from pos.domain import pos

pos.init()

app = create_app()
