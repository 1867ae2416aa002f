"""
Referral workflow transition and document-readiness engine.
"""

__version__ = "0.1.0"
