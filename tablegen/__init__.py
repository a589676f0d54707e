# File: tablegen/__init__.py
"""
TableGen — CRUD Scaffolding from Live Database Tables
======================================================

Reads one table's catalog metadata, classifies its columns, and renders a
consistent set of backend, frontend and provisioning artifacts from
Jinja2 templates. Every run is journaled so that written files can be
restored to their exact generated content.

Architecture overview::

    ┌──────────────┐     ┌────────────────┐     ┌──────────────────┐
    │ CLI / HTTP   │────▶│ CodeGenerator  │────▶│ TemplateRenderer │
    │ cli.py web.py│     │ (generator.py) │     │  (templates.py)  │
    └──────────────┘     └───────┬────────┘     └──────────────────┘
                                 │
              ┌──────────────────┼──────────────────┐
              ▼                  ▼                  ▼
     ┌─────────────────┐ ┌──────────────┐ ┌────────────────┐
     │SchemaIntrospector│ │EntityDescriptor│ │ HistoryJournal │
     │ + classifier     │ │   Builder    │ │  (history.py)  │
     └─────────────────┘ └──────────────┘ └────────────────┘

Usage::

    from tablegen import CodeGenerator, GenerationRequest, default_settings

    settings = default_settings()
    settings.database.dsn = "sqlite:./app.db"
    with CodeGenerator.from_settings(settings) as gen:
        gen.generate(GenerationRequest(table="sys_user", features=["list", "add"]))

    # From the command line
    tablegen --dsn sqlite:./app.db crud sys_user -v
"""

from __future__ import annotations

__version__: str = "1.0.0"

from tablegen.classifier import SemanticClassifier, apply_overrides
from tablegen.config import (
    GeneratorSettings,
    default_settings,
    load_settings,
    save_settings,
)
from tablegen.descriptor import EntityDescriptorBuilder, resolve_features
from tablegen.errors import (
    ConfigError,
    ConnectionError,
    DriftDetectedError,
    IntrospectionError,
    IntrospectionTimeoutError,
    JournalCorruptError,
    JournalLockError,
    RecordNotFoundError,
    RenderError,
    TableNotFoundError,
    TablegenError,
    TemplateNotFoundError,
    TemplateSyntaxError,
    UnknownFeatureError,
)
from tablegen.generator import CodeGenerator, GenerationReport, TableResult
from tablegen.history import HistoryJournal
from tablegen.introspector import ConnectionDescriptor, SchemaIntrospector
from tablegen.models import (
    ColumnInfo,
    ColumnOverride,
    EntityDescriptor,
    GenerationRecord,
    GenerationRequest,
    TableInfo,
)
from tablegen.templates import HELPER_API_VERSION, TemplateRenderer

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    "__version__",
    # Pipeline
    "CodeGenerator",
    "GenerationReport",
    "TableResult",
    "ConnectionDescriptor",
    "SchemaIntrospector",
    "SemanticClassifier",
    "apply_overrides",
    "EntityDescriptorBuilder",
    "resolve_features",
    "TemplateRenderer",
    "HELPER_API_VERSION",
    "HistoryJournal",
    # Models
    "ColumnInfo",
    "ColumnOverride",
    "TableInfo",
    "EntityDescriptor",
    "GenerationRequest",
    "GenerationRecord",
    # Settings
    "GeneratorSettings",
    "default_settings",
    "load_settings",
    "save_settings",
    # Errors
    "TablegenError",
    "ConfigError",
    "ConnectionError",
    "TableNotFoundError",
    "IntrospectionError",
    "IntrospectionTimeoutError",
    "TemplateNotFoundError",
    "TemplateSyntaxError",
    "RenderError",
    "RecordNotFoundError",
    "JournalCorruptError",
    "JournalLockError",
    "DriftDetectedError",
    "UnknownFeatureError",
]
