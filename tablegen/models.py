# File: tablegen/models.py
"""
TableGen - Core Data Models
============================
Pydantic V2 models shared by every stage of the pipeline:

    Introspection → Classification → Entity Descriptor → Rendering → Journal

``TableInfo`` is the normalised snapshot of one live table,
``EntityDescriptor`` is its render-ready synthesis, and
``GenerationRecord`` is the immutable journal entry written after a run.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from tablegen.utils import sha256_hex, to_camel_case, to_pascal_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("tablegen.models")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DatabaseDriver(str, Enum):
    """Catalog dialects the introspector can read."""

    MYSQL = "mysql"
    POSTGRES = "postgres"
    SQLITE = "sqlite"


class DataCategory(str, Enum):
    """Semantic category inferred from a declared column type."""

    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    TEMPORAL = "temporal"
    TEXT = "text"
    BINARY = "binary"
    JSON = "json"


class QueryOperator(str, Enum):
    """Comparison used when a column is offered as a list filter."""

    EQ = "="
    NE = "!="
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    LIKE = "LIKE"
    IN = "IN"
    BETWEEN = "BETWEEN"


class FormType(str, Enum):
    """UI input kind rendered for a column in edit forms."""

    INPUT = "input"
    TEXTAREA = "textarea"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    DATE = "date"
    DATETIME = "datetime"
    SWITCH = "switch"
    UPLOAD = "upload"


class Feature(str, Enum):
    """Generatable features. The first five map to operations."""

    LIST = "list"
    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"
    VIEW = "view"
    EXPORT = "export"
    IMPORT = "import"
    BATCH_DELETE = "batch-delete"


class OperationKind(str, Enum):
    """Generated operations, declared in their fixed emission order."""

    LIST = "List"
    ADD = "Add"
    EDIT = "Edit"
    DELETE = "Delete"
    VIEW = "View"


class ArtifactKind(str, Enum):
    """Which output tree an artifact belongs to."""

    BACKEND = "backend"
    FRONTEND = "frontend"
    PROVISIONING = "provisioning"


class LayerMode(str, Enum):
    """Backend layering: ``standard`` adds a service module per entity."""

    SIMPLE = "simple"
    STANDARD = "standard"


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    frozen=False,
    extra="forbid",
)

# Records are read back from disk; tolerate keys written by newer versions.
_RECORD_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    frozen=False,
    extra="ignore",
)


# ---------------------------------------------------------------------------
# Schema snapshot
# ---------------------------------------------------------------------------


class ColumnInfo(BaseModel):
    """
    One column of an introspected table.

    ``is_list_field``, ``is_query_field``, ``query_type`` and ``form_type``
    are filled in once by the classifier and afterwards change only through
    an explicit ``ColumnOverride``.
    """

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Column name.")
    column_type: str = Field(default="", description="Raw declared type, e.g. 'varchar(50)'.")
    data_type: str = Field(default="", description="Base type used for inference.")
    category: DataCategory = Field(default=DataCategory.TEXT)
    python_type: str = Field(default="str", description="Backend (storage) type.")
    ts_type: str = Field(default="string", description="Client binding type.")
    comment: str = Field(default="")
    length: int = Field(default=0, ge=0)
    precision: int = Field(default=0, ge=0)
    scale: int = Field(default=0, ge=0)
    nullable: bool = Field(default=True)
    default_value: Optional[str] = Field(default=None)
    is_primary: bool = Field(default=False)
    is_auto_inc: bool = Field(default=False)
    is_list_field: bool = Field(default=True)
    is_query_field: bool = Field(default=False)
    query_type: QueryOperator = Field(default=QueryOperator.EQ)
    form_type: FormType = Field(default=FormType.INPUT)
    dict_type: str = Field(default="", description="Dictionary key for option lists.")
    sort: int = Field(default=0, ge=0, description="Ordinal position (0-based).")

    @computed_field  # type: ignore[misc]
    @property
    def name_camel(self) -> str:
        return to_camel_case(self.name)

    @computed_field  # type: ignore[misc]
    @property
    def name_pascal(self) -> str:
        return to_pascal_case(self.name)

    def __repr__(self) -> str:
        pk_flag: str = " PK" if self.is_primary else ""
        inc_flag: str = " AUTO" if self.is_auto_inc else ""
        return f"<Column {self.name} {self.column_type}{pk_flag}{inc_flag}>"


class IndexInfo(BaseModel):
    """Composite or single-column index."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Index name.")
    columns: List[str] = Field(
        default_factory=list, description="Ordered participating column names."
    )
    unique: bool = Field(default=False)


class TableSummary(BaseModel):
    """Name and comment of a table, as offered for selection."""

    model_config = _SHARED_CONFIG

    name: str
    comment: str = ""


class TableInfo(BaseModel):
    """
    Normalised snapshot of one relational table.

    Built once per generation request from a live catalog read. Columns keep
    their source ordinal order.
    """

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Table name.")
    comment: str = Field(default="")
    columns: List[ColumnInfo] = Field(..., min_length=1)
    indexes: List[IndexInfo] = Field(default_factory=list)
    primary_key: str = Field(default="", description="Designated PK column, may be empty.")
    is_tree_table: bool = Field(default=False)

    @model_validator(mode="after")
    def _validate_unique_columns(self) -> "TableInfo":
        seen: Set[str] = set()
        for col in self.columns:
            if col.name in seen:
                raise ValueError(f"Duplicate column '{col.name}' in table '{self.name}'.")
            seen.add(col.name)
        if self.primary_key and self.primary_key not in seen:
            raise ValueError(
                f"Primary key '{self.primary_key}' is not a column of '{self.name}'."
            )
        return self

    @model_validator(mode="after")
    def _validate_auto_increment(self) -> "TableInfo":
        auto: List[ColumnInfo] = [c for c in self.columns if c.is_auto_inc]
        if len(auto) > 1:
            raise ValueError(
                f"Table '{self.name}' has more than one auto-increment column: "
                f"{[c.name for c in auto]}"
            )
        if auto and not auto[0].is_primary:
            raise ValueError(
                f"Auto-increment column '{auto[0].name}' of '{self.name}' "
                f"is not the primary key."
            )
        return self

    def get_column(self, name: str) -> Optional[ColumnInfo]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def has_column(self, name: str) -> bool:
        return self.get_column(name) is not None

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def __repr__(self) -> str:
        return f"<Table {self.name} ({len(self.columns)} cols, {len(self.indexes)} indexes)>"


class ColumnOverride(BaseModel):
    """Explicit user override of a column's derived flags."""

    model_config = _SHARED_CONFIG

    list_field: Optional[bool] = None
    query_field: Optional[bool] = None
    query_type: Optional[QueryOperator] = None
    form_type: Optional[FormType] = None


# ---------------------------------------------------------------------------
# Render-ready descriptors
# ---------------------------------------------------------------------------


class OperationInfo(BaseModel):
    """One generated capability of an entity (List, Add, ...)."""

    model_config = _SHARED_CONFIG

    name: OperationKind
    verb: str = Field(..., description="Lower-case path verb, e.g. 'list'.")
    comment: str = Field(default="", description="Display caption.")
    path: str = Field(..., description="/{module}/{entity-kebab}/{verb}")
    method: str = Field(..., description="HTTP method, GET or POST.")
    tags: str = Field(default="")
    summary: str = Field(default="")


class EntityDescriptor(BaseModel):
    """
    Everything a template needs for one table.

    Rebuilt for every generation request; never persisted.
    """

    model_config = _SHARED_CONFIG

    table: TableInfo
    module: str
    package: str = ""
    entity_name: str = Field(..., description="PascalCase entity name.")
    entity_camel: str
    entity_kebab: str
    entity_snake: str
    features: List[str] = Field(
        default_factory=list, description="Resolved features in declaration order."
    )
    operations: List[OperationInfo] = Field(default_factory=list)
    has_tree: bool = False
    has_soft_delete: bool = False
    has_created_at: bool = False
    has_updated_at: bool = False
    with_doc: bool = True
    layer_mode: LayerMode = LayerMode.SIMPLE

    def has_feature(self, feature: str) -> bool:
        return feature in self.features

    def get_operation(self, verb: str) -> Optional[OperationInfo]:
        for op in self.operations:
            if op.verb == verb:
                return op
        return None

    @property
    def label(self) -> str:
        """Human caption: the table comment, else the entity name."""
        return self.table.comment or self.entity_name


class RenderedArtifact(BaseModel):
    """Result of rendering one template for one entity."""

    model_config = _SHARED_CONFIG

    template_key: str
    kind: ArtifactKind
    path: str
    content: str
    written: bool = False

    @property
    def checksum(self) -> str:
        return sha256_hex(self.content)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class GenerationRequest(BaseModel):
    """
    Inputs of one generation run, as supplied by the CLI or HTTP layer.

    An empty ``features`` list resolves to ``list`` only.
    """

    model_config = _SHARED_CONFIG

    table: str = Field(..., min_length=1)
    module: str = Field(default="sys", min_length=1)
    output: str = Field(default="./server", description="Backend output root.")
    web_output: str = Field(default="./web", description="Frontend output root.")
    package: str = Field(default="")
    features: List[str] = Field(default_factory=list)
    with_test: bool = False
    with_doc: bool = True
    layer_mode: LayerMode = LayerMode.SIMPLE
    preview: bool = False
    only_backend: bool = False
    only_frontend: bool = False
    overrides: Dict[str, ColumnOverride] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _validate_scope(self) -> "GenerationRequest":
        if self.only_backend and self.only_frontend:
            raise ValueError("only_backend and only_frontend are mutually exclusive.")
        return self


# ---------------------------------------------------------------------------
# Journal records
# ---------------------------------------------------------------------------


class GeneratedFile(BaseModel):
    """One artifact as it was written to disk by a generation run."""

    model_config = _RECORD_CONFIG

    path: str = Field(..., min_length=1)
    type: ArtifactKind = Field(..., description="backend / frontend / provisioning")
    content: str = Field(default="")
    checksum: str = Field(default="")
    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def _fill_checksum(self) -> "GeneratedFile":
        if not self.checksum:
            object.__setattr__(self, "checksum", sha256_hex(self.content))
        return self


class RecordConfig(BaseModel):
    """Snapshot of the settings a record was generated with."""

    model_config = _RECORD_CONFIG

    output: str = ""
    web_output: str = ""
    package: str = ""
    features: List[str] = Field(default_factory=list)


class GenerationRecord(BaseModel):
    """
    Immutable journal entry for one generation run.

    Files are never edited after the record is appended; a record is only
    ever removed as a whole.
    """

    model_config = _RECORD_CONFIG

    id: str = Field(..., min_length=1)
    table: str
    module: str = ""
    generated_at: datetime = Field(default_factory=datetime.now)
    table_comment: str = ""
    field_count: int = Field(default=0, ge=0)
    config: RecordConfig = Field(default_factory=RecordConfig)
    files: List[GeneratedFile] = Field(default_factory=list)
    checksum: str = Field(default="", description="Digest over the file checksums.")

    @field_validator("files")
    @classmethod
    def _unique_paths(cls, v: List[GeneratedFile]) -> List[GeneratedFile]:
        paths: List[str] = [f.path for f in v]
        if len(paths) != len(set(paths)):
            dupes: List[str] = sorted({p for p in paths if paths.count(p) > 1})
            raise ValueError(f"Duplicate file paths in record: {dupes}")
        return v

    @model_validator(mode="after")
    def _fill_checksum(self) -> "GenerationRecord":
        if not self.checksum:
            joined: str = "\n".join(f.checksum for f in self.files)
            object.__setattr__(self, "checksum", sha256_hex(joined))
        return self

    @property
    def file_count(self) -> int:
        return len(self.files)

    def summary(self) -> Dict[str, Any]:
        """Listing view without file contents."""
        return {
            "id": self.id,
            "table": self.table,
            "module": self.module,
            "generated_at": self.generated_at.isoformat(),
            "table_comment": self.table_comment,
            "field_count": self.field_count,
            "file_count": self.file_count,
        }

    def __repr__(self) -> str:
        return f"<GenerationRecord {self.id} {self.table} ({self.file_count} files)>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "DatabaseDriver",
    "DataCategory",
    "QueryOperator",
    "FormType",
    "Feature",
    "OperationKind",
    "ArtifactKind",
    "LayerMode",
    "ColumnInfo",
    "IndexInfo",
    "TableSummary",
    "TableInfo",
    "ColumnOverride",
    "OperationInfo",
    "EntityDescriptor",
    "RenderedArtifact",
    "GenerationRequest",
    "GeneratedFile",
    "RecordConfig",
    "GenerationRecord",
]
