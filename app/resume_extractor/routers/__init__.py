"""
Routers package for FastAPI endpoints.

Organized by domain:
- files: Resume upload, listing, detail, deletion and credits
- history: Upload/extraction history
- extract: Stateless extraction
- billing: Stripe checkout, portal and webhooks
"""

from . import billing, extract, files, history

__all__ = ["billing", "extract", "files", "history"]
