# File: tablegen/descriptor.py
"""
TableGen - Entity Descriptor Builder
=====================================
Combines a classified ``TableInfo``, a module name and a feature selection
into the render-ready ``EntityDescriptor``.

Rules:
    - Entity name: strip **one** recognised table prefix (first match in
      the configured order), then PascalCase the remainder.
    - Features: normalised, deduplicated, and defaulted to ``["list"]``
      when nothing is requested. Never defaulted to "all".
    - Operations: one per requested verb, always emitted in the order
      List, Add, Edit, Delete, View whatever the request order.
    - Audit flags: exact column-name presence checks only.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from tablegen.config import DEFAULT_TABLE_PREFIXES
from tablegen.errors import UnknownFeatureError
from tablegen.models import (
    EntityDescriptor,
    Feature,
    LayerMode,
    OperationInfo,
    OperationKind,
    TableInfo,
)
from tablegen.utils import (
    strip_table_prefix,
    to_camel_case,
    to_kebab_case,
    to_pascal_case,
    to_snake_case,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("tablegen.descriptor")

# ---------------------------------------------------------------------------
# Operation table
# ---------------------------------------------------------------------------

# kind -> (verb, HTTP method, caption template)
_OPERATIONS: Tuple[Tuple[OperationKind, str, str, str], ...] = (
    (OperationKind.LIST, "list", "GET", "Get {label} list"),
    (OperationKind.ADD, "add", "POST", "Add {label}"),
    (OperationKind.EDIT, "edit", "POST", "Edit {label}"),
    (OperationKind.DELETE, "delete", "POST", "Delete {label}"),
    (OperationKind.VIEW, "view", "GET", "View {label} detail"),
)

KNOWN_FEATURES: Tuple[str, ...] = tuple(f.value for f in Feature)
DEFAULT_FEATURES: Tuple[str, ...] = (Feature.LIST.value,)

SOFT_DELETE_COLUMN: str = "deleted_at"
CREATED_AT_COLUMN: str = "created_at"
UPDATED_AT_COLUMN: str = "updated_at"


def normalize_feature(name: str) -> str:
    """
    Canonicalise one feature name.

    Examples:
        >>> normalize_feature(" List ")
        'list'
        >>> normalize_feature("batchDelete")
        'batch-delete'
        >>> normalize_feature("batch_delete")
        'batch-delete'
    """
    return to_kebab_case(name.strip())


def resolve_features(requested: Optional[Iterable[str]]) -> List[str]:
    """
    Deduplicate and validate a feature request.

    Returns the features in declaration order (list, add, edit, delete,
    view, export, import, batch-delete). Blank names are dropped; an empty
    request yields ``["list"]``.

    Raises:
        UnknownFeatureError: A name is not one of the known features.
    """
    wanted: Set[str] = set()
    for raw in requested or ():
        name: str = normalize_feature(raw)
        if not name:
            continue
        if name not in KNOWN_FEATURES:
            raise UnknownFeatureError(raw, KNOWN_FEATURES)
        wanted.add(name)

    if not wanted:
        return list(DEFAULT_FEATURES)
    return [f for f in KNOWN_FEATURES if f in wanted]


class EntityDescriptorBuilder:
    """
    Builds ``EntityDescriptor`` objects.

    Args:
        table_prefixes: Ordered prefixes tried when deriving the entity
            name. Defaults to ``sys_, admin_, hg_, t_, tb_``.
        default_tag: Operation tag used when the module name is empty.
    """

    def __init__(
        self,
        table_prefixes: Optional[Sequence[str]] = None,
        default_tag: str = "default",
    ) -> None:
        self.table_prefixes: Tuple[str, ...] = tuple(
            table_prefixes if table_prefixes is not None else DEFAULT_TABLE_PREFIXES
        )
        self.default_tag: str = default_tag

    def entity_name(self, table_name: str) -> str:
        """``sys_user_profile`` -> ``UserProfile``."""
        return to_pascal_case(strip_table_prefix(table_name, self.table_prefixes))

    def build_operations(
        self,
        module: str,
        entity_kebab: str,
        label: str,
        features: Sequence[str],
    ) -> List[OperationInfo]:
        tags: str = module or self.default_tag
        operations: List[OperationInfo] = []
        for kind, verb, method, caption in _OPERATIONS:
            if verb not in features:
                continue
            text: str = caption.format(label=label)
            operations.append(
                OperationInfo(
                    name=kind,
                    verb=verb,
                    comment=text,
                    path=f"/{module}/{entity_kebab}/{verb}",
                    method=method,
                    tags=tags,
                    summary=text,
                )
            )
        return operations

    def build(
        self,
        table: TableInfo,
        module: str,
        features: Optional[Iterable[str]] = None,
        package: str = "",
        with_doc: bool = True,
        layer_mode: str = LayerMode.SIMPLE.value,
    ) -> EntityDescriptor:
        """
        Assemble the descriptor for *table*.

        Raises:
            UnknownFeatureError: See ``resolve_features``.
        """
        resolved: List[str] = resolve_features(features)
        entity: str = self.entity_name(table.name)
        kebab: str = to_kebab_case(entity)
        label: str = table.comment or entity

        descriptor: EntityDescriptor = EntityDescriptor(
            table=table,
            module=module,
            package=package,
            entity_name=entity,
            entity_camel=to_camel_case(entity),
            entity_kebab=kebab,
            entity_snake=to_snake_case(entity),
            features=resolved,
            operations=self.build_operations(module, kebab, label, resolved),
            has_tree=table.is_tree_table,
            has_soft_delete=table.has_column(SOFT_DELETE_COLUMN),
            has_created_at=table.has_column(CREATED_AT_COLUMN),
            has_updated_at=table.has_column(UPDATED_AT_COLUMN),
            with_doc=with_doc,
            layer_mode=layer_mode,
        )
        logger.debug(
            "Built entity %s for %s: features=%s, operations=%s",
            entity,
            table.name,
            resolved,
            [op.verb for op in descriptor.operations],
        )
        return descriptor


__all__: List[str] = [
    "KNOWN_FEATURES",
    "DEFAULT_FEATURES",
    "normalize_feature",
    "resolve_features",
    "EntityDescriptorBuilder",
]
