# File: tablegen/config.py
"""
TableGen - Settings
====================
Persisted generator settings and their YAML/JSON loading.

Layout of a settings file::

    database:
      driver: mysql
      dsn: "root:secret@tcp(127.0.0.1:3306)/app"
    generator:
      backend:
        output: ./server
        layer_mode: simple
      frontend:
        output: ./web/src
      features:
        list: true
        export: false
    naming:
      table_prefixes: [sys_, admin_, hg_, t_, tb_]
    history_dir: ./.gen_history

Every key is optional; omitted keys fall back to the defaults below.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tablegen.errors import ConfigError
from tablegen.models import DatabaseDriver, Feature, LayerMode
from tablegen.utils import ensure_directory, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("tablegen.config")

# ---------------------------------------------------------------------------
# Shipped defaults
# ---------------------------------------------------------------------------

DEFAULT_TABLE_PREFIXES: List[str] = ["sys_", "admin_", "hg_", "t_", "tb_"]
DEFAULT_LIST_DENYLIST: List[str] = [
    "password",
    "password_hash",
    "salt",
    "token",
    "deleted_at",
]
DEFAULT_QUERY_FIELDS: List[str] = [
    "name",
    "username",
    "code",
    "status",
    "type",
    "email",
    "phone",
    "mobile",
]
DEFAULT_FORM_DENYLIST: List[str] = [
    "id",
    "created_at",
    "updated_at",
    "deleted_at",
    "password_hash",
    "salt",
]
DEFAULT_HISTORY_DIR: str = "./.gen_history"

_CONFIG: ConfigDict = ConfigDict(
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    extra="forbid",
)


# ---------------------------------------------------------------------------
# Settings sections
# ---------------------------------------------------------------------------


class DatabaseSettings(BaseModel):
    model_config = _CONFIG

    driver: DatabaseDriver = DatabaseDriver.MYSQL
    dsn: str = ""


class BackendSettings(BaseModel):
    model_config = _CONFIG

    enabled: bool = True
    output: str = "./server"
    package: str = ""
    layer_mode: LayerMode = LayerMode.SIMPLE
    with_test: bool = True
    with_doc: bool = True


class FrontendSettings(BaseModel):
    model_config = _CONFIG

    enabled: bool = True
    output: str = "./web/src"
    api_output: str = "api"
    view_output: str = "views"
    typescript: bool = True


class FeatureSettings(BaseModel):
    """Per-feature switches. Enabled ones form the default feature list."""

    model_config = _CONFIG

    list: bool = True
    add: bool = True
    edit: bool = True
    delete: bool = True
    view: bool = True
    export: bool = False
    import_: bool = Field(default=False, alias="import")
    batch_delete: bool = True

    def enabled(self) -> List[str]:
        """Enabled features in declaration order, as canonical names."""
        switches: Dict[str, bool] = {
            Feature.LIST.value: self.list,
            Feature.ADD.value: self.add,
            Feature.EDIT.value: self.edit,
            Feature.DELETE.value: self.delete,
            Feature.VIEW.value: self.view,
            Feature.EXPORT.value: self.export,
            Feature.IMPORT.value: self.import_,
            Feature.BATCH_DELETE.value: self.batch_delete,
        }
        return [name for name, on in switches.items() if on]


class GeneratorSection(BaseModel):
    model_config = _CONFIG

    backend: BackendSettings = Field(default_factory=BackendSettings)
    frontend: FrontendSettings = Field(default_factory=FrontendSettings)
    features: FeatureSettings = Field(default_factory=FeatureSettings)


class NamingSettings(BaseModel):
    model_config = _CONFIG

    table_prefixes: List[str] = Field(
        default_factory=lambda: list(DEFAULT_TABLE_PREFIXES)
    )


class ClassifierSettings(BaseModel):
    """Name lists driving the semantic classifier and the form filter."""

    model_config = _CONFIG

    list_denylist: List[str] = Field(
        default_factory=lambda: list(DEFAULT_LIST_DENYLIST)
    )
    query_fields: List[str] = Field(
        default_factory=lambda: list(DEFAULT_QUERY_FIELDS)
    )
    form_denylist: List[str] = Field(
        default_factory=lambda: list(DEFAULT_FORM_DENYLIST)
    )
    tree_parent_names: List[str] = Field(
        default_factory=lambda: ["parent_id", "pid"]
    )
    tree_parent_comments: List[str] = Field(
        default_factory=lambda: ["父id", "父 id", "parent id"]
    )
    tree_level_names: List[str] = Field(default_factory=lambda: ["level", "depth"])
    tree_level_comments: List[str] = Field(
        default_factory=lambda: ["层级", "关系树等级", "level", "depth"]
    )
    tree_path_names: List[str] = Field(default_factory=lambda: ["path", "tree_path"])
    tree_path_comments: List[str] = Field(
        default_factory=lambda: ["路径", "关系树", "path"]
    )


class GeneratorSettings(BaseModel):
    """
    Root settings object.

    Front ends load one of these and hand its pieces to the pipeline; no
    component reads global state.
    """

    model_config = _CONFIG

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    generator: GeneratorSection = Field(default_factory=GeneratorSection)
    naming: NamingSettings = Field(default_factory=NamingSettings)
    classifier: ClassifierSettings = Field(default_factory=ClassifierSettings)
    template_dir: Optional[str] = None
    history_dir: str = DEFAULT_HISTORY_DIR

    @property
    def default_features(self) -> List[str]:
        return self.generator.features.enabled()


# ---------------------------------------------------------------------------
# Loading & saving
# ---------------------------------------------------------------------------


def default_settings() -> GeneratorSettings:
    """Return a fresh settings object holding the shipped defaults."""
    return GeneratorSettings()


def _read_mapping(path: Path) -> Dict[str, Any]:
    text: str = path.read_text(encoding="utf-8")
    suffix: str = path.suffix.lower()
    try:
        if suffix == ".json":
            data: Any = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Expected a mapping at top level of {path}, got {type(data).__name__}."
        )
    return data


def load_settings(path: Union[str, Path]) -> GeneratorSettings:
    """
    Load settings from a ``.yaml``/``.yml`` or ``.json`` file.

    Raises:
        ConfigError: The file is missing, unparsable or fails validation.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Settings file not found: {path}")

    raw: Dict[str, Any] = _read_mapping(path)
    try:
        settings: GeneratorSettings = GeneratorSettings.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings in {path}: {exc}") from exc

    logger.info("Loaded settings from %s", path)
    return settings


def save_settings(settings: GeneratorSettings, path: Union[str, Path]) -> Path:
    """Write *settings* as YAML, creating parent directories."""
    path = Path(path)
    ensure_directory(path.parent)
    data: Dict[str, Any] = settings.model_dump(mode="json", by_alias=True)
    write_file(path, yaml.safe_dump(data, sort_keys=False, allow_unicode=True))
    logger.info("Saved settings to %s", path)
    return path


__all__: List[str] = [
    "DEFAULT_TABLE_PREFIXES",
    "DEFAULT_LIST_DENYLIST",
    "DEFAULT_QUERY_FIELDS",
    "DEFAULT_FORM_DENYLIST",
    "DEFAULT_HISTORY_DIR",
    "DatabaseSettings",
    "BackendSettings",
    "FrontendSettings",
    "FeatureSettings",
    "GeneratorSection",
    "NamingSettings",
    "ClassifierSettings",
    "GeneratorSettings",
    "default_settings",
    "load_settings",
    "save_settings",
]
