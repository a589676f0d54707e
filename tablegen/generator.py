# File: tablegen/generator.py
"""
TableGen - Generation Orchestrator
===================================
Drives one generation run end to end:

    Introspect → Classify → Apply overrides → Build entity
        → Render each planned artifact → Write → Journal append

Rendering walks the artifact plan sequentially. A render failure
propagates immediately: files already written by the same run stay on
disk and no journal record is appended for it.

Batch mode runs the single-table pipeline once per table. A missing table
is reported inline and the batch moves on; any other failure stops it.

Usage::

    from tablegen.generator import CodeGenerator
    gen = CodeGenerator.from_settings(settings)
    result = gen.generate(GenerationRequest(table="sys_user", module="sys"))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple

from tablegen.classifier import SemanticClassifier, apply_overrides
from tablegen.config import GeneratorSettings
from tablegen.descriptor import EntityDescriptorBuilder
from tablegen.errors import ConfigError, TableNotFoundError
from tablegen.history import HistoryJournal, capture_file, new_record_id
from tablegen.introspector import ConnectionDescriptor, SchemaIntrospector
from tablegen.models import (
    ArtifactKind,
    EntityDescriptor,
    GeneratedFile,
    GenerationRecord,
    GenerationRequest,
    LayerMode,
    RecordConfig,
    RenderedArtifact,
    TableInfo,
)
from tablegen.templates import TemplateRenderer, default_helpers
from tablegen.utils import Timer, count_lines

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("tablegen.generator")


# ---------------------------------------------------------------------------
# Artifact plan
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ArtifactSpec:
    """
    One entry of the artifact plan.

    ``destination`` is a ``str.format`` pattern over ``output``, ``web``,
    ``api_dir``, ``view_dir``, ``module``, ``snake`` and ``kebab``.
    """

    template_key: str
    kind: ArtifactKind
    destination: str
    enabled: Callable[[GenerationRequest], bool] = lambda request: True


def _standard_layers(request: GenerationRequest) -> bool:
    return request.layer_mode == LayerMode.STANDARD.value


def _with_test(request: GenerationRequest) -> bool:
    return request.with_test


ARTIFACT_PLAN: Tuple[ArtifactSpec, ...] = (
    ArtifactSpec("backend/api", ArtifactKind.BACKEND, "{output}/api/{module}/{snake}.py"),
    ArtifactSpec(
        "backend/handler",
        ArtifactKind.BACKEND,
        "{output}/internal/handler/{module}/{snake}.py",
    ),
    ArtifactSpec(
        "backend/service",
        ArtifactKind.BACKEND,
        "{output}/internal/service/{module}/{snake}.py",
        _standard_layers,
    ),
    ArtifactSpec(
        "backend/router",
        ArtifactKind.BACKEND,
        "{output}/internal/router/genrouter/{snake}.py",
    ),
    ArtifactSpec(
        "sql/menu",
        ArtifactKind.PROVISIONING,
        "{output}/storage/data/generate/{snake}_menu.sql",
    ),
    ArtifactSpec(
        "backend/test",
        ArtifactKind.BACKEND,
        "{output}/tests/handler/{module}/test_{snake}.py",
        _with_test,
    ),
    ArtifactSpec(
        "frontend/api", ArtifactKind.FRONTEND, "{web}/{api_dir}/{module}/{kebab}/index.ts"
    ),
    ArtifactSpec(
        "frontend/types", ArtifactKind.FRONTEND, "{web}/{api_dir}/{module}/{kebab}/types.ts"
    ),
    ArtifactSpec(
        "frontend/index", ArtifactKind.FRONTEND, "{web}/{view_dir}/{module}/{kebab}/index.vue"
    ),
    ArtifactSpec(
        "frontend/edit", ArtifactKind.FRONTEND, "{web}/{view_dir}/{module}/{kebab}/edit.vue"
    ),
)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class TableResult:
    """Outcome of the pipeline for one table."""

    table: str
    success: bool = False
    preview: bool = False
    artifacts: List[RenderedArtifact] = field(default_factory=list)
    record: Optional[GenerationRecord] = None
    error: str = ""
    elapsed_seconds: float = 0.0

    @property
    def total_lines(self) -> int:
        return sum(count_lines(a.content) for a in self.artifacts)


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """Summary of a batch run."""

    results: List[TableResult] = field(default_factory=list)
    total_elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return bool(self.results) and all(r.success for r in self.results)

    @property
    def failed_tables(self) -> List[str]:
        return [r.table for r in self.results if not r.success]

    @property
    def total_files(self) -> int:
        return sum(len(r.artifacts) for r in self.results)

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "✅ SUCCESS" if self.success else "❌ FAILED"
        lines.append(f"{'='*60}")
        lines.append("  TableGen — Generation Report")
        lines.append(f"{'='*60}")
        lines.append(f"  Status:           {status}")
        lines.append(f"  Tables:           {len(self.results)}")
        lines.append(f"  Files:            {self.total_files}")
        lines.append(f"  Total time:       {self.total_elapsed_seconds:.3f}s")
        lines.append(f"{'─'*60}")
        for result in self.results:
            icon: str = "✓" if result.success else "✗"
            lines.append(f"  {icon} {result.table}")
            if result.error:
                lines.append(f"      {result.error}")
                continue
            for artifact in result.artifacts:
                verb: str = "wrote" if artifact.written else "preview"
                lines.append(f"      {verb:<8s}{artifact.path}")
            if result.record is not None:
                lines.append(f"      record  {result.record.id}")
        lines.append(f"{'='*60}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------


def connection_for(
    settings: GeneratorSettings,
    dsn: Optional[str] = None,
    driver: Optional[str] = None,
) -> ConnectionDescriptor:
    """
    Resolve the data source for one run.

    An explicit *dsn* / *driver* wins over the settings file. The settings'
    driver is only applied when the file actually sets it, so a bare URL
    keeps its own scheme.

    Raises:
        ConfigError: No DSN anywhere.
    """
    raw: str = (dsn or settings.database.dsn or "").strip()
    if not raw:
        raise ConfigError("No database DSN configured; pass --dsn or set database.dsn")
    if driver is None and dsn is None and "driver" in settings.database.model_fields_set:
        driver = settings.database.driver
    return ConnectionDescriptor.parse(raw, driver)


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class CodeGenerator:
    """
    Pipeline orchestrator.

    Args:
        introspector: Source of ``TableInfo`` snapshots.
        renderer: Template engine; defaults to the bundled templates.
        journal: History journal; ``None`` disables recording.
        builder: Entity descriptor builder.
        api_dir: Frontend API sub-directory under the web root.
        view_dir: Frontend view sub-directory under the web root.
    """

    def __init__(
        self,
        introspector: SchemaIntrospector,
        renderer: Optional[TemplateRenderer] = None,
        journal: Optional[HistoryJournal] = None,
        builder: Optional[EntityDescriptorBuilder] = None,
        api_dir: str = "api",
        view_dir: str = "views",
    ) -> None:
        self.introspector: SchemaIntrospector = introspector
        self.renderer: TemplateRenderer = renderer or TemplateRenderer()
        self.journal: Optional[HistoryJournal] = journal
        self.builder: EntityDescriptorBuilder = builder or EntityDescriptorBuilder()
        self.api_dir: str = api_dir
        self.view_dir: str = view_dir

    @classmethod
    def from_settings(
        cls,
        settings: GeneratorSettings,
        connection: Optional[ConnectionDescriptor] = None,
    ) -> "CodeGenerator":
        """Wire every component from one settings object."""
        if connection is None:
            connection = connection_for(settings)
        classifier = SemanticClassifier(settings.classifier)
        return cls(
            introspector=SchemaIntrospector(connection, classifier),
            renderer=TemplateRenderer(
                settings.template_dir,
                helpers=default_helpers(settings.classifier.form_denylist),
            ),
            journal=HistoryJournal(settings.history_dir),
            builder=EntityDescriptorBuilder(settings.naming.table_prefixes),
            api_dir=settings.generator.frontend.api_output,
            view_dir=settings.generator.frontend.view_output,
        )

    def close(self) -> None:
        self.introspector.close()

    def __enter__(self) -> "CodeGenerator":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    # -- stages -------------------------------------------------------------

    def describe(
        self,
        request: GenerationRequest,
        timeout: Optional[float] = None,
        strict_overrides: bool = True,
    ) -> EntityDescriptor:
        """Introspect, apply overrides and build the entity for *request*."""
        table: TableInfo = self.introspector.introspect(request.table, timeout=timeout)
        table = apply_overrides(table, request.overrides, strict=strict_overrides)
        return self.builder.build(
            table,
            request.module,
            request.features,
            package=request.package,
            with_doc=request.with_doc,
            layer_mode=request.layer_mode,
        )

    def plan(
        self, request: GenerationRequest, entity: EntityDescriptor
    ) -> List[Tuple[ArtifactSpec, Path]]:
        """Artifacts to produce for *request*, with their destinations."""
        values = {
            "output": request.output.rstrip("/") or ".",
            "web": request.web_output.rstrip("/") or ".",
            "api_dir": self.api_dir,
            "view_dir": self.view_dir,
            "module": request.module,
            "snake": entity.entity_snake,
            "kebab": entity.entity_kebab,
        }
        planned: List[Tuple[ArtifactSpec, Path]] = []
        for spec in ARTIFACT_PLAN:
            is_frontend: bool = spec.kind == ArtifactKind.FRONTEND
            if request.only_backend and is_frontend:
                continue
            if request.only_frontend and not is_frontend:
                continue
            if not spec.enabled(request):
                continue
            planned.append((spec, Path(spec.destination.format(**values))))
        return planned

    # -- entry points -------------------------------------------------------

    def preview(
        self,
        request: GenerationRequest,
        timeout: Optional[float] = None,
        strict_overrides: bool = True,
    ) -> List[RenderedArtifact]:
        """Render every planned artifact without writing or recording."""
        entity: EntityDescriptor = self.describe(request, timeout, strict_overrides)
        return [
            self.renderer.preview(spec.template_key, entity, path, spec.kind)
            for spec, path in self.plan(request, entity)
        ]

    def generate(
        self,
        request: GenerationRequest,
        timeout: Optional[float] = None,
        strict_overrides: bool = True,
    ) -> TableResult:
        """
        Run the full pipeline for one table.

        With ``request.preview`` set this is ``preview`` wrapped in a
        ``TableResult``.

        Raises:
            ConnectionError, TableNotFoundError, IntrospectionError,
            TemplateNotFoundError, TemplateSyntaxError, RenderError,
            UnknownFeatureError.
        """
        result = TableResult(table=request.table, preview=request.preview)
        with Timer(f"generate {request.table}") as timer:
            if request.preview:
                result.artifacts = self.preview(request, timeout, strict_overrides)
            else:
                entity: EntityDescriptor = self.describe(
                    request, timeout, strict_overrides
                )
                for spec, path in self.plan(request, entity):
                    result.artifacts.append(
                        self.renderer.render_to_file(
                            spec.template_key, entity, path, spec.kind
                        )
                    )
                result.record = self._record(request, entity, result.artifacts)
        result.success = True
        result.elapsed_seconds = timer.elapsed
        logger.info(
            "%s %s: %d artifacts in %.3fs",
            "Previewed" if request.preview else "Generated",
            request.table,
            len(result.artifacts),
            timer.elapsed,
        )
        return result

    def generate_batch(
        self,
        tables: Sequence[str],
        request: GenerationRequest,
        timeout: Optional[float] = None,
    ) -> GenerationReport:
        """
        Run ``generate`` for each table, using *request* as the template.

        Tables that do not exist are reported inline and skipped. With more
        than one table, *request*.overrides is shared: each table applies
        the entries naming its own columns and ignores the rest.
        """
        report = GenerationReport()
        strict: bool = len(tables) == 1
        with Timer("batch") as timer:
            for table_name in tables:
                per_table: GenerationRequest = request.model_copy(
                    update={"table": table_name}
                )
                try:
                    report.results.append(self.generate(per_table, timeout, strict))
                except TableNotFoundError as exc:
                    logger.warning("Skipping %s: %s", table_name, exc)
                    report.results.append(TableResult(table=table_name, error=str(exc)))
        report.total_elapsed_seconds = timer.elapsed
        return report

    # -- journal ------------------------------------------------------------

    def _record(
        self,
        request: GenerationRequest,
        entity: EntityDescriptor,
        artifacts: Sequence[RenderedArtifact],
    ) -> Optional[GenerationRecord]:
        if self.journal is None:
            return None
        files: List[GeneratedFile] = [capture_file(a.path, a.kind) for a in artifacts]
        record = GenerationRecord(
            id=new_record_id(),
            table=entity.table.name,
            module=entity.module,
            table_comment=entity.table.comment,
            field_count=len(entity.table.columns),
            config=RecordConfig(
                output=request.output,
                web_output=request.web_output,
                package=request.package,
                features=list(entity.features),
            ),
            files=files,
        )
        return self.journal.append(record)


__all__: List[str] = [
    "ArtifactSpec",
    "ARTIFACT_PLAN",
    "TableResult",
    "GenerationReport",
    "connection_for",
    "CodeGenerator",
]
