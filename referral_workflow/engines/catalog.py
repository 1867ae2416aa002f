"""
Stage and document catalogs.

Both catalogs are loaded once from configuration (YAML or JSON) and are
read-only afterwards. They are passed explicitly to every engine call;
nothing in the engine reaches for a module-level catalog.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping, Sequence

import yaml
from pydantic import ValidationError

from knowledge import DOCUMENT_CATALOG_PATH, WORKFLOW_CATALOG_PATH
from referral_workflow.exceptions import CatalogError, UnknownDocument, UnknownStage
from referral_workflow.models import Stage

logger = logging.getLogger(__name__)

DEFAULT_PAR_STAGE = "Preauthorization (PAR)"

WORKFLOW_CATALOG_ENV = "REFERRAL_WORKFLOW_CATALOG"
DOCUMENT_CATALOG_ENV = "REFERRAL_DOCUMENT_CATALOG"


def read_config_file(path: Path) -> Any:
    """Read a YAML or JSON configuration file."""
    path = Path(path)
    if not path.exists():
        raise CatalogError(f"Catalog file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            if path.suffix.lower() == ".json":
                return json.load(f)
            return yaml.safe_load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise CatalogError(f"Could not parse {path}: {e}") from e


# =============================================================================
# STAGE CATALOG
# =============================================================================


class StageCatalog:
    """
    Ordered, immutable list of workflow stages.

    A stage's index is its position in the catalog. Moving to a stage with
    a lower index is a regression.
    """

    def __init__(self, stages: Sequence[Stage], par_stage: str = DEFAULT_PAR_STAGE):
        by_name: dict[str, Stage] = {}
        for position, stage in enumerate(stages):
            if stage.index != position:
                raise CatalogError(
                    f"Stage {stage.name!r} has index {stage.index}, expected {position}"
                )
            if stage.name in by_name:
                raise CatalogError(f"Duplicate stage name: {stage.name!r}")
            by_name[stage.name] = stage
        self._stages: tuple[Stage, ...] = tuple(stages)
        self._by_name = by_name
        self._par_stage = par_stage

    @classmethod
    def from_config(cls, data: Any) -> StageCatalog:
        """
        Build a catalog from parsed configuration.

        Accepts either a list of ``{stage, required_docs, target_days}``
        entries or a mapping with a ``workflow`` list and an optional
        ``par_stage`` override.
        """
        par_stage = DEFAULT_PAR_STAGE
        explicit_par = False
        if isinstance(data, Mapping):
            if "par_stage" in data:
                par_stage = data["par_stage"]
                explicit_par = True
            entries = data.get("workflow")
        else:
            entries = data

        if not isinstance(entries, list) or not entries:
            raise CatalogError("Stage catalog must contain a non-empty list of stages")

        stages = []
        for position, entry in enumerate(entries):
            if not isinstance(entry, Mapping) or not entry.get("stage"):
                raise CatalogError(f"Stage entry {position} is missing a 'stage' name")
            docs = entry.get("required_docs") or []
            if not isinstance(docs, list):
                raise CatalogError(f"Stage {entry['stage']!r}: required_docs must be a list")
            target_days = entry.get("target_days")
            if target_days is not None and (
                isinstance(target_days, bool) or not isinstance(target_days, int)
            ):
                raise CatalogError(f"Stage {entry['stage']!r}: target_days must be an integer")
            try:
                stages.append(Stage(
                    name=entry["stage"],
                    index=position,
                    required_docs=frozenset(docs),
                    target_days=target_days,
                ))
            except ValidationError as e:
                raise CatalogError(f"Invalid stage entry {entry['stage']!r}: {e}") from e

        catalog = cls(stages, par_stage=par_stage)
        if explicit_par and par_stage not in catalog:
            raise CatalogError(f"par_stage {par_stage!r} is not a stage in the catalog")
        return catalog

    @classmethod
    def from_names(cls, names: Iterable[str], par_stage: str = DEFAULT_PAR_STAGE) -> StageCatalog:
        """Build a catalog of bare stages with no document requirements."""
        return cls(
            [Stage(name=name, index=i) for i, name in enumerate(names)],
            par_stage=par_stage,
        )

    def stages(self) -> list[Stage]:
        return list(self._stages)

    @property
    def names(self) -> list[str]:
        return [s.name for s in self._stages]

    @property
    def par_stage(self) -> str:
        """Name of the preauthorization gate stage."""
        return self._par_stage

    def index_of(self, name: str | None) -> int:
        return self.by_name(name).index

    def by_name(self, name: str | None) -> Stage:
        try:
            return self._by_name[name]
        except KeyError:
            raise UnknownStage(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[Stage]:
        return iter(self._stages)

    def __len__(self) -> int:
        return len(self._stages)

    def __repr__(self) -> str:
        return f"StageCatalog({self.names!r})"


# =============================================================================
# DOCUMENT CATALOG
# =============================================================================


@dataclass(frozen=True)
class DocumentType:
    """A document the workflow can require."""
    key: str
    label: str
    section: str | None = None


@dataclass(frozen=True)
class DocumentTemplate:
    """A named packet of documents that can be added in one step."""
    id: str
    label: str
    keys: frozenset[str] = field(default_factory=frozenset)


class DocumentCatalog:
    """Closed set of document keys, validated at the edges of the engine."""

    def __init__(
        self,
        documents: Iterable[DocumentType],
        sections: Mapping[str, str] | None = None,
        templates: Iterable[DocumentTemplate] = (),
    ):
        self._documents = {d.key: d for d in documents}
        self._sections = dict(sections or {})
        self._templates = {t.id: t for t in templates}

        for template in self._templates.values():
            unknown = sorted(template.keys - self._documents.keys())
            if unknown:
                raise CatalogError(
                    f"Template {template.id!r} references unknown documents: {', '.join(unknown)}"
                )

    @classmethod
    def from_config(cls, data: Any) -> DocumentCatalog:
        if not isinstance(data, Mapping) or not isinstance(data.get("documents"), Mapping):
            raise CatalogError("Document catalog must contain a 'documents' mapping")

        documents = []
        for key, spec in data["documents"].items():
            spec = spec or {}
            documents.append(DocumentType(
                key=key,
                label=spec.get("label") or key,
                section=spec.get("section"),
            ))

        templates = []
        for template_id, spec in (data.get("templates") or {}).items():
            templates.append(DocumentTemplate(
                id=template_id,
                label=spec.get("label") or template_id,
                keys=frozenset(spec.get("keys") or []),
            ))

        return cls(documents, sections=data.get("sections"), templates=templates)

    @property
    def keys(self) -> set[str]:
        return set(self._documents)

    def __contains__(self, key: object) -> bool:
        return key in self._documents

    def __len__(self) -> int:
        return len(self._documents)

    def label(self, key: str) -> str:
        """Human-readable label, falling back to the key itself."""
        doc = self._documents.get(key)
        return doc.label if doc else key

    def section_keys(self, section: str) -> list[str]:
        return [d.key for d in self._documents.values() if d.section == section]

    @property
    def sections(self) -> dict[str, str]:
        return dict(self._sections)

    @property
    def templates(self) -> list[DocumentTemplate]:
        return list(self._templates.values())

    def validate_keys(self, keys: Iterable[str]) -> set[str]:
        """Return the keys as a set, raising UnknownDocument for any not in the catalog."""
        keys = set(keys)
        unknown = sorted(keys - self._documents.keys())
        if unknown:
            raise UnknownDocument(unknown)
        return keys

    def validate_stage_catalog(self, catalog: StageCatalog) -> None:
        """Check every per-stage requirement names a known document."""
        for stage in catalog:
            unknown = sorted(stage.required_docs - self._documents.keys())
            if unknown:
                raise CatalogError(
                    f"Stage {stage.name!r} requires unknown documents: {', '.join(unknown)}"
                )

    def template(self, template_id: str) -> DocumentTemplate:
        try:
            return self._templates[template_id]
        except KeyError:
            raise CatalogError(f"Unknown document template: {template_id!r}") from None

    def apply_template(self, required: Iterable[str], template_id: str) -> set[str]:
        """Union a template's documents into a required set. Never removes keys."""
        return set(required) | self.template(template_id).keys


# =============================================================================
# LOADERS
# =============================================================================


def load_stage_catalog(path: Path | str) -> StageCatalog:
    """Load a stage catalog from a YAML or JSON file."""
    catalog = StageCatalog.from_config(read_config_file(Path(path)))
    logger.info("Loaded %d workflow stages from %s", len(catalog), path)
    return catalog


def load_document_catalog(path: Path | str) -> DocumentCatalog:
    """Load a document catalog from a YAML or JSON file."""
    catalog = DocumentCatalog.from_config(read_config_file(Path(path)))
    logger.info("Loaded %d document types from %s", len(catalog), path)
    return catalog


def default_stage_catalog_path() -> Path:
    return Path(os.environ.get(WORKFLOW_CATALOG_ENV) or WORKFLOW_CATALOG_PATH)


def default_document_catalog_path() -> Path:
    return Path(os.environ.get(DOCUMENT_CATALOG_ENV) or DOCUMENT_CATALOG_PATH)


def load_default_catalogs() -> tuple[StageCatalog, DocumentCatalog]:
    """
    Load the stage and document catalogs from their configured locations.

    Intended for adapters (CLI, services). The stage catalog is checked
    against the document catalog so a typo in either file fails at startup.
    """
    stages = load_stage_catalog(default_stage_catalog_path())
    documents = load_document_catalog(default_document_catalog_path())
    documents.validate_stage_catalog(stages)
    return stages, documents
