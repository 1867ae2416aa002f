"""
Shared fixtures for referral workflow tests.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from referral_workflow.engines import StageCatalog
from referral_workflow.models import Order, Patient

PAR = "Preauthorization (PAR)"
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def catalog():
    """Four-stage catalog with the PAR gate at index 2."""
    return StageCatalog.from_config([
        {"stage": "Intake", "required_docs": ["HIPAA"], "target_days": 3},
        {"stage": "Docs", "required_docs": ["F2F", "PT_EVAL", "SWO"], "target_days": 5},
        {"stage": PAR, "required_docs": ["F2F", "PT_EVAL"], "target_days": 7},
        {"stage": "Delivered", "required_docs": [], "target_days": None},
    ])


@pytest.fixture
def short_catalog():
    """Intake(0), Docs(1), PAR(2), Delivered(3) with no documents."""
    return StageCatalog.from_names(["Intake", "Docs", "PAR", "Delivered"])


@pytest.fixture
def patient():
    return Patient(id="p1", name="Jane Doe", required_documents={"F2F", "PT_EVAL"})


@pytest.fixture
def order():
    return Order(
        id="o1",
        patient_id="p1",
        workflow_stage="Intake",
        document_status={"F2F": "Complete", "PT_EVAL": "Complete"},
    )


def make_order(order_id, stage, patient_id="p1", **kwargs):
    return Order(id=order_id, patient_id=patient_id, workflow_stage=stage, **kwargs)


def supabase_client(tables=None):
    """
    MagicMock standing in for SupabaseClient.

    Reads on a table return its rows regardless of filters; writes return
    no rows. The per-table query mock is exposed as ``client.queries[name]``
    and the write chain as ``client.queries[name].writes``.
    """
    tables = tables or {}
    client = MagicMock()
    client.queries = {}

    def table(name):
        if name not in client.queries:
            query = MagicMock()
            for method in ("select", "eq", "in_", "order", "limit"):
                getattr(query, method).return_value = query
            query.execute.return_value = SimpleNamespace(data=list(tables.get(name, [])))

            writes = MagicMock()
            writes.eq.return_value = writes
            writes.execute.return_value = SimpleNamespace(data=[])
            query.update.return_value = writes
            query.insert.return_value = writes
            query.writes = writes

            client.queries[name] = query
        return client.queries[name]

    client.table.side_effect = table
    client.rpc.return_value.execute.return_value = SimpleNamespace(data=None)
    return client
