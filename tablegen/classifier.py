# File: tablegen/classifier.py
"""
TableGen - Semantic Classifier
===============================
Attaches UI and behavioural classification to introspected columns using
name and comment heuristics, and classifies the table shape.

Form-type inference is an ordered rule table: each ``FormRule`` pairs a
predicate with the form type it yields, and the **first matching rule
wins**. Order matters because several predicates can match the same
column (a comment of "状态类型" matches both the toggle and the radio
rule; the toggle rule is earlier and wins).

Cue matching:
    - comment cues are matched against the lower-cased comment. ASCII cues
      must stand as a whole word ("tag" does not match "percentage");
      CJK cues, which have no word boundaries, match as substrings;
    - name cues match the lower-cased column name exactly, or any of its
      ``_``-separated tokens (``role_id`` matches the cue ``role``).

Derived flags are computed once here. Afterwards they only change through
``apply_overrides``; nothing recomputes them implicitly.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from tablegen.config import ClassifierSettings
from tablegen.errors import ConfigError
from tablegen.models import (
    ColumnInfo,
    ColumnOverride,
    FormType,
    QueryOperator,
    TableInfo,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("tablegen.classifier")

TEXTAREA_LENGTH_THRESHOLD: int = 200

_BOUNDARY_CUES: Tuple[str, ...] = ("开始", "结束", "start", "end", "begin")


# ---------------------------------------------------------------------------
# Cue matching
# ---------------------------------------------------------------------------


def _name_tokens(name: str) -> Tuple[str, ...]:
    lowered: str = name.lower()
    return (lowered,) + tuple(t for t in lowered.split("_") if t)


def name_matches(name: str, cues: Sequence[str]) -> bool:
    """True if *name* equals a cue or contains it as an ``_``-token."""
    tokens: Tuple[str, ...] = _name_tokens(name)
    return any(cue.lower() in tokens for cue in cues)


@lru_cache(maxsize=256)
def _word_pattern(cue: str) -> re.Pattern[str]:
    # ASCII letters/digits only: CJK text around an English word is a boundary
    return re.compile(rf"(?<![a-z0-9]){re.escape(cue)}(?![a-z0-9])")


def comment_matches(comment: str, cues: Sequence[str]) -> bool:
    """True if any cue occurs in the lower-cased comment (see module notes)."""
    lowered: str = comment.lower()
    for cue in cues:
        if not cue:
            continue
        cue = cue.lower()
        if cue.isascii():
            if _word_pattern(cue).search(lowered):
                return True
        elif cue in lowered:
            return True
    return False


def _cues(
    comment_cues: Sequence[str], name_cues: Sequence[str] = ()
) -> Callable[[ColumnInfo], bool]:
    def predicate(column: ColumnInfo) -> bool:
        return comment_matches(column.comment, comment_cues) or name_matches(
            column.name, name_cues
        )

    return predicate


def _type_contains(*fragments: str) -> Callable[[ColumnInfo], bool]:
    def predicate(column: ColumnInfo) -> bool:
        data_type: str = column.data_type.lower()
        return any(f in data_type for f in fragments)

    return predicate


def _longer_than(threshold: int) -> Callable[[ColumnInfo], bool]:
    def predicate(column: ColumnInfo) -> bool:
        return column.length > threshold

    return predicate


def _temporal_kind(column: ColumnInfo) -> FormType:
    if comment_matches(column.comment, _BOUNDARY_CUES) or name_matches(
        column.name, _BOUNDARY_CUES
    ):
        return FormType.DATETIME
    return FormType.DATE


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FormRule:
    """
    One entry of the form-type rule table.

    ``form_type`` is either a fixed ``FormType`` or a callable deciding
    between several (the temporal rule picks date vs. date-time).
    """

    name: str
    predicate: Callable[[ColumnInfo], bool]
    form_type: object

    def resolve(self, column: ColumnInfo) -> Optional[FormType]:
        if not self.predicate(column):
            return None
        if callable(self.form_type):
            return self.form_type(column)
        return self.form_type  # type: ignore[return-value]


DEFAULT_FORM_RULES: Tuple[FormRule, ...] = (
    FormRule(
        "toggle",
        _cues(
            ("状态", "是否", "启用", "禁用", "status", "enable", "disable"),
            ("status", "enabled", "enable", "disabled", "active"),
        ),
        FormType.SWITCH,
    ),
    FormRule(
        "radio",
        _cues(("性别", "类型", "gender", "sex", "type"), ("gender", "sex", "type")),
        FormType.RADIO,
    ),
    FormRule(
        "checkbox",
        _cues(("爱好", "标签", "hobby", "tag"), ("hobby", "hobbies", "tag", "tags")),
        FormType.CHECKBOX,
    ),
    FormRule(
        "select",
        _cues(
            ("角色", "部门", "分类", "role", "department", "category"),
            ("role", "dept", "department", "category"),
        ),
        FormType.SELECT,
    ),
    FormRule(
        "upload",
        _cues(
            ("图片", "头像", "封面", "image", "avatar", "cover"),
            ("image", "img", "avatar", "cover", "photo"),
        ),
        FormType.UPLOAD,
    ),
    FormRule(
        "temporal",
        _cues(("时间", "日期", "time", "date"), ("time", "date")),
        _temporal_kind,
    ),
    FormRule(
        "descriptive",
        _cues(
            ("内容", "描述", "详情", "简介", "content", "description", "detail", "intro"),
            ("content", "description", "desc", "detail", "intro", "remark"),
        ),
        FormType.TEXTAREA,
    ),
    # Declared-type fallbacks
    FormRule("text-type", _type_contains("text"), FormType.TEXTAREA),
    FormRule("bool-type", _type_contains("bool"), FormType.SWITCH),
    FormRule("temporal-type", _type_contains("date", "time"), FormType.DATETIME),
    FormRule(
        "long-text", _longer_than(TEXTAREA_LENGTH_THRESHOLD), FormType.TEXTAREA
    ),
)


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


class SemanticClassifier:
    """
    Classifies columns and tables.

    Args:
        settings: Name lists (denylists, filterable fields, tree cues).
            Defaults to the shipped lists.
        rules: Form-type rule table; defaults to ``DEFAULT_FORM_RULES``.
    """

    def __init__(
        self,
        settings: Optional[ClassifierSettings] = None,
        rules: Optional[Sequence[FormRule]] = None,
    ) -> None:
        self.settings: ClassifierSettings = settings or ClassifierSettings()
        self.rules: Tuple[FormRule, ...] = tuple(
            rules if rules is not None else DEFAULT_FORM_RULES
        )

    # -- column level -------------------------------------------------------

    def infer_form_type(self, column: ColumnInfo) -> FormType:
        for rule in self.rules:
            result: Optional[FormType] = rule.resolve(column)
            if result is not None:
                logger.debug(
                    "Column %s matched rule '%s' -> %s",
                    column.name,
                    rule.name,
                    FormType(result).value,
                )
                return FormType(result)
        return FormType.INPUT

    def is_list_field(self, column: ColumnInfo) -> bool:
        """Visible unless the name or comment hits the sensitive denylist."""
        deny: List[str] = self.settings.list_denylist
        return not (
            name_matches(column.name, deny) or comment_matches(column.comment, deny)
        )

    def is_query_field(self, column: ColumnInfo) -> bool:
        fields: List[str] = self.settings.query_fields
        return name_matches(column.name, fields) or comment_matches(
            column.comment, fields
        )

    def classify_column(self, column: ColumnInfo) -> ColumnInfo:
        """Return a copy of *column* with its derived flags filled in."""
        return column.model_copy(
            update={
                "form_type": self.infer_form_type(column).value,
                "is_list_field": self.is_list_field(column),
                "is_query_field": self.is_query_field(column),
                "query_type": QueryOperator.EQ.value,
            }
        )

    def classify_columns(self, columns: Sequence[ColumnInfo]) -> List[ColumnInfo]:
        return [self.classify_column(c) for c in columns]

    # -- table level --------------------------------------------------------

    def is_tree_table(self, columns: Sequence[ColumnInfo]) -> bool:
        """
        A table is tree-shaped iff it has a parent-reference column AND
        either a level/depth column or a materialised-path column.
        """
        s: ClassifierSettings = self.settings
        has_parent: bool = False
        has_level: bool = False
        has_path: bool = False

        for col in columns:
            name: str = col.name.lower()
            if name in s.tree_parent_names or comment_matches(
                col.comment, s.tree_parent_comments
            ):
                has_parent = True
            if name in s.tree_level_names or comment_matches(
                col.comment, s.tree_level_comments
            ):
                has_level = True
            if name in s.tree_path_names or comment_matches(
                col.comment, s.tree_path_comments
            ):
                has_path = True

        return has_parent and (has_level or has_path)

    def classify_table(self, table: TableInfo) -> TableInfo:
        columns: List[ColumnInfo] = self.classify_columns(table.columns)
        return table.model_copy(
            update={"columns": columns, "is_tree_table": self.is_tree_table(columns)}
        )

    def form_fields(self, columns: Sequence[ColumnInfo]) -> List[ColumnInfo]:
        """Columns eligible for edit forms (form denylist removed)."""
        deny: List[str] = [d.lower() for d in self.settings.form_denylist]
        return [c for c in columns if c.name.lower() not in deny]


# ---------------------------------------------------------------------------
# Explicit overrides
# ---------------------------------------------------------------------------


def apply_overrides(
    table: TableInfo,
    overrides: Mapping[str, ColumnOverride],
    strict: bool = True,
) -> TableInfo:
    """
    Apply user overrides keyed by column name and return a new table.

    Moving a column into the query set resets its operator to equality
    unless the override names one.

    Args:
        table: Classified table.
        overrides: Column name to override.
        strict: Reject overrides naming columns the table lacks. Batch
            runs share one override set across tables and pass False, so
            each table only picks up its own columns.

    Raises:
        ConfigError: *strict* and an override names an unknown column.
    """
    if not overrides:
        return table

    unknown: List[str] = sorted(set(overrides) - set(table.column_names))
    if unknown and strict:
        raise ConfigError(
            f"Overrides reference unknown column(s) of '{table.name}': {unknown}"
        )
    if unknown:
        logger.info("Overrides not applicable to %s: %s", table.name, unknown)

    columns: List[ColumnInfo] = []
    for col in table.columns:
        override: Optional[ColumnOverride] = overrides.get(col.name)
        if override is None:
            columns.append(col)
            continue

        update: Dict[str, object] = {}
        if override.list_field is not None:
            update["is_list_field"] = override.list_field
        if override.query_field is not None:
            update["is_query_field"] = override.query_field
            if override.query_field and not col.is_query_field:
                update["query_type"] = QueryOperator.EQ.value
        if override.query_type is not None:
            update["query_type"] = override.query_type
        if override.form_type is not None:
            update["form_type"] = override.form_type

        logger.debug("Override on %s.%s: %s", table.name, col.name, update)
        columns.append(col.model_copy(update=update))

    return table.model_copy(update={"columns": columns})


__all__: List[str] = [
    "TEXTAREA_LENGTH_THRESHOLD",
    "FormRule",
    "DEFAULT_FORM_RULES",
    "SemanticClassifier",
    "apply_overrides",
    "name_matches",
    "comment_matches",
]
