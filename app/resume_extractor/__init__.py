"""
Resume Extractor Backend Application.

A FastAPI service that extracts structured resume data from PDF uploads
using OpenAI, with credit-metered usage billed through Stripe.
"""

__version__ = "1.0.0"
