"""
Referral workflow knowledge base.

Contains the static configuration the engine is loaded from:
- Stage catalog (ordered workflow stages, per-stage documents, target dwell)
- Document catalog (document keys, labels, sections, packet templates)
"""

from pathlib import Path

KNOWLEDGE_DIR = Path(__file__).parent
WORKFLOW_CATALOG_PATH = KNOWLEDGE_DIR / "workflow" / "workflow.yaml"
DOCUMENT_CATALOG_PATH = KNOWLEDGE_DIR / "documents" / "documents.yaml"
