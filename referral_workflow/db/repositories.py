"""
Repository classes for database operations.

Each repository handles one table, converting rows to the engine's models.
Stage transitions are written through TransitionRepository, which commits
the order update, the stage-change note and the optional regression record
in a single database function call.
"""

import logging
from typing import Optional, Any, Iterable
from uuid import UUID

from referral_workflow.db.client import get_client, get_admin_client, SupabaseClient
from referral_workflow.exceptions import RecordNotFound
from referral_workflow.models import (
  ApplyFailed,
  Note,
  NoteSource,
  Order,
  Patient,
  RegressionRecord,
  TransitionError,
  TransitionResult,
)

logger = logging.getLogger(__name__)

TRANSITION_RPC = "apply_stage_transition"


class BaseRepository:
  """Base class for all repositories."""

  table_name: str = ""

  def __init__(self, client: Optional[SupabaseClient] = None, use_admin: bool = False):
    """
    Initialize repository with optional client.

    Args:
      client: Supabase client to use. If None, gets default client.
      use_admin: If True and no client provided, use admin client.
    """
    if client:
      self._client = client
    elif use_admin:
      self._client = get_admin_client()
    else:
      self._client = get_client()

  @property
  def table(self):
    """Get the table reference."""
    return self._client.table(self.table_name)

  def _to_dict(self, obj: Any) -> dict:
    """Convert object to dict for storage."""
    if hasattr(obj, "model_dump"):
      return obj.model_dump(mode="json", exclude_none=True)
    elif isinstance(obj, dict):
      return obj
    else:
      raise ValueError(f"Cannot convert {type(obj)} to dict")

  def _first(self, record_id: str | UUID) -> Optional[dict]:
    response = self.table.select("*").eq("id", str(record_id)).limit(1).execute()
    return response.data[0] if response.data else None

  def _many(self, record_ids: Iterable[str | UUID]) -> list[dict]:
    ids = [str(i) for i in record_ids]
    if not ids:
      return []
    response = self.table.select("*").in_("id", ids).execute()
    return response.data or []


class PatientRepository(BaseRepository):
  """Repository for patient operations."""

  table_name = "patients"

  def get_by_id(self, patient_id: str | UUID) -> Optional[Patient]:
    """Get patient by ID."""
    row = self._first(patient_id)
    return Patient.model_validate(row) if row else None

  def require(self, patient_id: str | UUID) -> Patient:
    """Get patient by ID, raising RecordNotFound if absent."""
    patient = self.get_by_id(patient_id)
    if patient is None:
      raise RecordNotFound(self.table_name, str(patient_id))
    return patient

  def get_many(self, patient_ids: Iterable[str | UUID]) -> dict[str, Patient]:
    """Get patients keyed by ID. Missing IDs are simply absent."""
    patients = (Patient.model_validate(row) for row in self._many(patient_ids))
    return {p.id: p for p in patients}

  def merge_required_documents(self, patient_id: str | UUID, keys: Iterable[str]) -> Patient:
    """
    Add document keys to a patient's required set.

    Existing keys are kept; this never shrinks the set.
    """
    patient = self.require(patient_id)
    merged = patient.required_documents | set(keys)
    if merged == patient.required_documents:
      return patient

    response = (
      self.table.update({"required_documents": sorted(merged)})
      .eq("id", str(patient_id))
      .execute()
    )
    logger.info(
      "Patient %s: added required documents %s",
      patient_id, sorted(merged - patient.required_documents),
    )
    if response.data:
      return Patient.model_validate(response.data[0])
    return patient.model_copy(update={"required_documents": merged})


class OrderRepository(BaseRepository):
  """Repository for referral (order) operations."""

  table_name = "orders"

  def get_by_id(self, order_id: str | UUID) -> Optional[Order]:
    """Get order by ID."""
    row = self._first(order_id)
    return Order.model_validate(row) if row else None

  def require(self, order_id: str | UUID) -> Order:
    """Get order by ID, raising RecordNotFound if absent."""
    order = self.get_by_id(order_id)
    if order is None:
      raise RecordNotFound(self.table_name, str(order_id))
    return order

  def get_many(self, order_ids: Iterable[str | UUID]) -> list[Order]:
    """Get orders by ID. Missing IDs are simply absent."""
    return [Order.model_validate(row) for row in self._many(order_ids)]

  def get_current_for_patient(self, patient_id: str | UUID) -> Optional[Order]:
    """Get the patient's most recent order."""
    response = (
      self.table.select("*")
      .eq("patient_id", str(patient_id))
      .order("created_at", desc=True)
      .limit(1)
      .execute()
    )
    return Order.model_validate(response.data[0]) if response.data else None

  def list_by_stage(self, stage: str) -> list[Order]:
    """Get all orders currently in a stage."""
    response = self.table.select("*").eq("workflow_stage", stage).execute()
    return [Order.model_validate(row) for row in response.data or []]

  def list_all(self) -> list[Order]:
    """Get every order."""
    response = self.table.select("*").execute()
    return [Order.model_validate(row) for row in response.data or []]


class NoteRepository(BaseRepository):
  """Repository for the patient note ledger (append-only)."""

  table_name = "patient_notes"

  def get_by_patient(self, patient_id: str | UUID) -> list[Note]:
    """Get all notes for a patient, newest first."""
    response = (
      self.table.select("*")
      .eq("patient_id", str(patient_id))
      .order("created_at", desc=True)
      .execute()
    )
    return [Note.model_validate(row) for row in response.data or []]

  def get_stage_changes(self, patient_id: str | UUID) -> list[Note]:
    """Get the stage-change notes for a patient, newest first."""
    response = (
      self.table.select("*")
      .eq("patient_id", str(patient_id))
      .eq("source", NoteSource.STAGE_CHANGE.value)
      .order("created_at", desc=True)
      .execute()
    )
    return [Note.model_validate(row) for row in response.data or []]

  def create(self, note: Note) -> Note:
    """Append a note."""
    response = self.table.insert(self._to_dict(note)).execute()
    return Note.model_validate(response.data[0]) if response.data else note


class RegressionRepository(BaseRepository):
  """Repository for regression records (append-only)."""

  table_name = "regressions"

  def get_by_order(self, order_id: str | UUID) -> list[RegressionRecord]:
    """Get all regressions recorded for an order, newest first."""
    response = (
      self.table.select("*")
      .eq("order_id", str(order_id))
      .order("created_at", desc=True)
      .execute()
    )
    return [RegressionRecord.model_validate(row) for row in response.data or []]

  def get_recent(self, limit: int = 200) -> list[RegressionRecord]:
    """Get the most recent regressions across all orders."""
    response = self.table.select("*").order("created_at", desc=True).limit(limit).execute()
    return [RegressionRecord.model_validate(row) for row in response.data or []]


class TransitionRepository(BaseRepository):
  """
  Writes transition results.

  Each result is committed by one call to the `apply_stage_transition`
  database function, so the order update, its note and its regression
  record land together or not at all.
  """

  table_name = "orders"

  def _payload(self, result: TransitionResult) -> dict:
    return {
      "p_order_id": result.order_id,
      "p_order_update": result.order_update,
      "p_note": self._to_dict(result.note),
      "p_regression": self._to_dict(result.regression) if result.regression else None,
    }

  def persist(self, result: TransitionResult) -> None:
    """Commit one transition result. Errors propagate to the caller."""
    self._client.rpc(TRANSITION_RPC, self._payload(result)).execute()
    logger.info(
      "Persisted order %s -> %s%s",
      result.order_id,
      result.order.workflow_stage,
      " (regression)" if result.is_regression else "",
    )

  def persist_many(
    self,
    results: Iterable[TransitionResult | TransitionError],
  ) -> list[TransitionResult | TransitionError]:
    """
    Commit each successful result on its own.

    Validation errors pass through unchanged. A result whose write fails
    becomes a TransitionError carrying ApplyFailed; the rest still commit.
    """
    outcomes: list[TransitionResult | TransitionError] = []
    for result in results:
      if not result.ok:
        outcomes.append(result)
        continue
      try:
        self.persist(result)
      except Exception as e:
        logger.error("Failed to persist order %s: %s", result.order_id, e)
        outcomes.append(TransitionError(order_id=result.order_id, error=ApplyFailed(detail=str(e))))
        continue
      outcomes.append(result)
    return outcomes
