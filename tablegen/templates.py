# File: tablegen/templates.py
"""
TableGen - Template Rendering Engine
=====================================
Renders one artifact template against one ``EntityDescriptor``.

Templates are Jinja2 text resources addressed by a path-like key:
``"backend/handler"`` resolves to ``backend/handler.jinja`` under the
configured template directory, falling back to the bundled
``template_files/`` directory.

Template context:
    - every field of the descriptor at top level (``entity_name``,
      ``table``, ``operations``, ``features``, ...), plus ``entity``
      itself and its ``label``;
    - the helper capability map (``HELPER_API_VERSION``) as globals, with
      the naming transforms also registered as filters
      (``{{ col.name | camel }}``).

Failure modes:
    - missing resource       -> ``TemplateNotFoundError``
    - unparsable body        -> ``TemplateSyntaxError``
    - undefined field / eval -> ``RenderError``

Rendering is deterministic: no clock or random input reaches a template,
so unchanged input always yields byte-identical output.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import jinja2
from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
)

from tablegen.config import DEFAULT_FORM_DENYLIST
from tablegen.errors import RenderError, TemplateNotFoundError, TemplateSyntaxError
from tablegen.models import ArtifactKind, ColumnInfo, EntityDescriptor, RenderedArtifact
from tablegen.utils import (
    to_camel_case,
    to_kebab_case,
    to_pascal_case,
    to_snake_case,
    to_title_human,
    write_file,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("tablegen.templates")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

HELPER_API_VERSION: int = 1
TEMPLATE_SUFFIX: str = ".jinja"
BUNDLED_TEMPLATE_DIR: Path = Path(__file__).resolve().parent / "template_files"

_TEMPORAL_PY_TYPES: Tuple[str, ...] = ("date", "datetime")
_PERMISSION_VERBS: Tuple[str, ...] = ("list", "add", "edit", "delete", "view")


# ---------------------------------------------------------------------------
# Field-list filters
# ---------------------------------------------------------------------------


def filter_query_fields(columns: Sequence[ColumnInfo]) -> List[ColumnInfo]:
    """Columns offered as list filters."""
    return [c for c in columns if c.is_query_field]


def filter_list_fields(columns: Sequence[ColumnInfo]) -> List[ColumnInfo]:
    """
    List-visible columns with the primary key leading.

    Non-key visible columns keep their ordinal order; a list-visible
    primary key is moved to the front.
    """
    result: List[ColumnInfo] = [c for c in columns if c.is_list_field and not c.is_primary]
    keys: List[ColumnInfo] = [c for c in columns if c.is_list_field and c.is_primary]
    if keys:
        result.insert(0, keys[0])
    return result


def filter_form_fields(
    columns: Sequence[ColumnInfo],
    denylist: Sequence[str] = tuple(DEFAULT_FORM_DENYLIST),
) -> List[ColumnInfo]:
    """Columns rendered in edit forms (system and sensitive columns removed)."""
    deny = {d.lower() for d in denylist}
    return [c for c in columns if c.name.lower() not in deny]


# ---------------------------------------------------------------------------
# Conditional-import detection
# ---------------------------------------------------------------------------


def temporal_imports(entity: EntityDescriptor) -> List[str]:
    """Names to import from ``datetime`` for the backend types, sorted."""
    used = {c.python_type for c in entity.table.columns}
    return sorted(t for t in _TEMPORAL_PY_TYPES if t in used)


def needs_temporal_import(entity: EntityDescriptor) -> bool:
    return bool(temporal_imports(entity))


def needs_any_import(entity: EntityDescriptor) -> bool:
    return any(c.python_type == "Any" for c in entity.table.columns)


# ---------------------------------------------------------------------------
# Tags & permissions
# ---------------------------------------------------------------------------


def build_tags(entity: EntityDescriptor, default: str = "default") -> str:
    return entity.module or default


def build_permissions(entity: EntityDescriptor, verb: str) -> str:
    """
    Permission list literal for one verb.

    Examples:
        ``build_permissions(user, "list")`` -> ``'["/sys/user/list"]'``;
        an unknown verb yields ``'[]'``.
    """
    if verb not in _PERMISSION_VERBS:
        return "[]"
    return f'["/{entity.module}/{entity.entity_kebab}/{verb}"]'


# ---------------------------------------------------------------------------
# Capability map
# ---------------------------------------------------------------------------


def _contains(haystack: str, needle: str) -> bool:
    return needle in haystack


def _replace(value: str, old: str, new: str) -> str:
    return value.replace(old, new)


def _split(value: str, sep: str) -> List[str]:
    return value.split(sep)


def _join(values: Sequence[str], sep: str) -> str:
    return sep.join(values)


_NAMING_HELPERS: Dict[str, Callable[[str], str]] = {
    "camel": to_camel_case,
    "pascal": to_pascal_case,
    "kebab": to_kebab_case,
    "snake": to_snake_case,
    "human": to_title_human,
}


def default_helpers(
    form_denylist: Sequence[str] = tuple(DEFAULT_FORM_DENYLIST),
) -> Dict[str, Any]:
    """
    The versioned helper capability map handed to every template.

    Args:
        form_denylist: Column names removed by ``filter_form_fields``.
    """
    deny: Tuple[str, ...] = tuple(form_denylist)

    def form_fields(columns: Sequence[ColumnInfo]) -> List[ColumnInfo]:
        return filter_form_fields(columns, deny)

    helpers: Dict[str, Any] = {
        "HELPER_API_VERSION": HELPER_API_VERSION,
        "filter_query_fields": filter_query_fields,
        "filter_list_fields": filter_list_fields,
        "filter_form_fields": form_fields,
        "temporal_imports": temporal_imports,
        "needs_temporal_import": needs_temporal_import,
        "needs_any_import": needs_any_import,
        "build_tags": build_tags,
        "build_permissions": build_permissions,
        "lower": str.lower,
        "upper": str.upper,
        "title": str.title,
        "contains": _contains,
        "replace": _replace,
        "split": _split,
        "join": _join,
    }
    helpers.update(_NAMING_HELPERS)
    return helpers


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


def build_context(entity: EntityDescriptor) -> Dict[str, Any]:
    context: Dict[str, Any] = {
        name: getattr(entity, name) for name in EntityDescriptor.model_fields
    }
    context["entity"] = entity
    context["label"] = entity.label
    return context


class TemplateRenderer:
    """
    Jinja2-backed renderer.

    Args:
        template_dir: Directory searched first for template resources.
        helpers: Capability map; defaults to ``default_helpers()``.
        use_bundled: Fall back to the bundled templates when a key is not
            found in *template_dir*.
    """

    def __init__(
        self,
        template_dir: Optional[Union[str, Path]] = None,
        helpers: Optional[Mapping[str, Any]] = None,
        use_bundled: bool = True,
    ) -> None:
        self.search_path: List[Path] = []
        if template_dir is not None:
            self.search_path.append(Path(template_dir))
        if use_bundled or template_dir is None:
            self.search_path.append(BUNDLED_TEMPLATE_DIR)

        self.helpers: Dict[str, Any] = dict(
            helpers if helpers is not None else default_helpers()
        )
        self.env: Environment = Environment(
            loader=ChoiceLoader([FileSystemLoader(str(p)) for p in self.search_path]),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )
        self.env.globals.update(self.helpers)
        for name, func in _NAMING_HELPERS.items():
            self.env.filters[name] = func

    # -- resolution ---------------------------------------------------------

    @staticmethod
    def template_name(template_key: str) -> str:
        """``backend/handler`` -> ``backend/handler.jinja``."""
        key: str = template_key.strip("/")
        return key if key.endswith(TEMPLATE_SUFFIX) else key + TEMPLATE_SUFFIX

    def _load(self, template_key: str) -> jinja2.Template:
        name: str = self.template_name(template_key)
        try:
            return self.env.get_template(name)
        except jinja2.TemplateNotFound as exc:
            raise TemplateNotFoundError(
                template_key, ", ".join(str(p) for p in self.search_path)
            ) from exc
        except jinja2.TemplateSyntaxError as exc:
            raise TemplateSyntaxError(template_key, exc.message or str(exc), exc.lineno) from exc

    def has_template(self, template_key: str) -> bool:
        try:
            self._load(template_key)
        except TemplateNotFoundError:
            return False
        return True

    # -- rendering ----------------------------------------------------------

    def _evaluate(
        self, template: jinja2.Template, template_key: str, entity: EntityDescriptor
    ) -> str:
        try:
            return template.render(build_context(entity))
        except jinja2.TemplateError as exc:
            raise RenderError(template_key, str(exc)) from exc
        except (TypeError, ValueError, AttributeError, KeyError) as exc:
            raise RenderError(template_key, f"{type(exc).__name__}: {exc}") from exc

    def render(self, template_key: str, entity: EntityDescriptor) -> str:
        """Render *template_key* for *entity* and return the text."""
        template: jinja2.Template = self._load(template_key)
        content: str = self._evaluate(template, template_key, entity)
        logger.debug(
            "Rendered %s for %s (%d chars)", template_key, entity.entity_name, len(content)
        )
        return content

    def render_string(
        self, source: str, entity: EntityDescriptor, name: str = "<string>"
    ) -> str:
        """Render an ad-hoc template body."""
        try:
            template: jinja2.Template = self.env.from_string(source)
        except jinja2.TemplateSyntaxError as exc:
            raise TemplateSyntaxError(name, exc.message or str(exc), exc.lineno) from exc
        return self._evaluate(template, name, entity)

    def render_to_file(
        self,
        template_key: str,
        entity: EntityDescriptor,
        destination: Union[str, Path],
        kind: ArtifactKind = ArtifactKind.BACKEND,
    ) -> RenderedArtifact:
        """
        Render and write to *destination*, creating parent directories.

        Any existing file is overwritten without comparison.
        """
        content: str = self.render(template_key, entity)
        path: Path = Path(destination)
        write_file(path, content)
        logger.info("Wrote %s", path)
        return RenderedArtifact(
            template_key=template_key,
            kind=kind,
            path=str(path),
            content=content,
            written=True,
        )

    def preview(
        self,
        template_key: str,
        entity: EntityDescriptor,
        destination: Union[str, Path],
        kind: ArtifactKind = ArtifactKind.BACKEND,
    ) -> RenderedArtifact:
        """Identical render to ``render_to_file`` without touching disk."""
        content: str = self.render(template_key, entity)
        logger.info("Previewed %s", destination)
        return RenderedArtifact(
            template_key=template_key,
            kind=kind,
            path=str(destination),
            content=content,
            written=False,
        )


__all__: List[str] = [
    "HELPER_API_VERSION",
    "TEMPLATE_SUFFIX",
    "BUNDLED_TEMPLATE_DIR",
    "filter_query_fields",
    "filter_list_fields",
    "filter_form_fields",
    "temporal_imports",
    "needs_temporal_import",
    "needs_any_import",
    "build_tags",
    "build_permissions",
    "default_helpers",
    "build_context",
    "TemplateRenderer",
]
