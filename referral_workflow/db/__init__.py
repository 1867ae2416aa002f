"""
Database module for referral workflow.

Provides the Supabase client and repository classes the workflow service
persists through.
"""

from referral_workflow.db.client import get_client, get_admin_client, is_configured, SupabaseClient
from referral_workflow.db.repositories import (
  TRANSITION_RPC,
  PatientRepository,
  OrderRepository,
  NoteRepository,
  RegressionRepository,
  TransitionRepository,
)

__all__ = [
  "get_client",
  "get_admin_client",
  "is_configured",
  "SupabaseClient",
  "TRANSITION_RPC",
  "PatientRepository",
  "OrderRepository",
  "NoteRepository",
  "RegressionRepository",
  "TransitionRepository",
]
