"""
tests/test_descriptor.py
Entity naming, feature resolution and operation ordering.
"""

from __future__ import annotations

import itertools

import pytest

from tablegen.descriptor import (
    KNOWN_FEATURES,
    EntityDescriptorBuilder,
    normalize_feature,
    resolve_features,
)
from tablegen.errors import UnknownFeatureError
from tablegen.models import TableInfo

VERBS = ["list", "add", "edit", "delete", "view"]


@pytest.fixture()
def builder() -> EntityDescriptorBuilder:
    return EntityDescriptorBuilder()


class TestFeatureResolution:
    def test_empty_request_defaults_to_list(self):
        assert resolve_features(None) == ["list"]
        assert resolve_features([]) == ["list"]
        assert resolve_features(["", "  "]) == ["list"]

    def test_normalisation(self):
        assert normalize_feature(" List ") == "list"
        assert normalize_feature("batchDelete") == "batch-delete"
        assert normalize_feature("batch_delete") == "batch-delete"

    def test_deduplicated_in_declaration_order(self):
        assert resolve_features(["view", "LIST", "list", "export"]) == ["list", "view", "export"]

    def test_unknown_feature_rejected(self):
        with pytest.raises(UnknownFeatureError) as excinfo:
            resolve_features(["list", "explode"])
        assert excinfo.value.feature == "explode"
        assert excinfo.value.known == list(KNOWN_FEATURES)


class TestEntityNaming:
    @pytest.mark.parametrize(
        "table, entity, kebab, snake",
        [
            ("sys_user", "User", "user", "user"),
            ("sys_user_profile", "UserProfile", "user-profile", "user_profile"),
            ("tb_goods_sku", "GoodsSku", "goods-sku", "goods_sku"),
            ("orders", "Orders", "orders", "orders"),
        ],
    )
    def test_names(self, builder, user_table: TableInfo, table, entity, kebab, snake):
        renamed = user_table.model_copy(update={"name": table})
        descriptor = builder.build(renamed, "sys")
        assert descriptor.entity_name == entity
        assert descriptor.entity_kebab == kebab
        assert descriptor.entity_snake == snake
        assert descriptor.entity_camel == entity[0].lower() + entity[1:]

    def test_prefixes_are_configurable(self, user_table: TableInfo):
        renamed = user_table.model_copy(update={"name": "crm_customer"})
        assert EntityDescriptorBuilder(["crm_"]).build(renamed, "crm").entity_name == "Customer"
        assert EntityDescriptorBuilder([]).build(renamed, "crm").entity_name == "CrmCustomer"


class TestOperations:
    def test_sys_user_list_and_view(self, builder, user_table: TableInfo):
        entity = builder.build(user_table, "sys", ["list", "view"])
        assert entity.entity_name == "User"
        assert entity.entity_kebab == "user"
        assert [op.path for op in entity.operations] == ["/sys/user/list", "/sys/user/view"]
        assert [op.method for op in entity.operations] == ["GET", "GET"]
        assert entity.has_soft_delete is True
        assert entity.has_created_at is False

    @pytest.mark.parametrize(
        "features", [list(p) for r in (1, 2, 3) for p in itertools.permutations(VERBS, r)][:40]
    )
    def test_operation_order_is_fixed(self, builder, user_table: TableInfo, features):
        entity = builder.build(user_table, "sys", features)
        verbs = [op.verb for op in entity.operations]
        assert verbs == [v for v in VERBS if v in features]
        assert len(verbs) == len(set(features) & set(VERBS))

    def test_delete_then_list_yields_list_then_delete(self, builder, user_table: TableInfo):
        entity = builder.build(user_table, "sys", ["delete", "list"])
        assert [op.name for op in entity.operations] == ["List", "Delete"]

    def test_non_operation_features_add_no_operations(self, builder, user_table: TableInfo):
        entity = builder.build(user_table, "sys", ["export", "batch-delete"])
        assert entity.operations == []
        assert entity.features == ["export", "batch-delete"]

    def test_captions_use_table_comment(self, builder, user_table: TableInfo):
        entity = builder.build(user_table, "sys", ["add"])
        assert entity.operations[0].summary == "Add 用户"
        assert entity.operations[0].tags == "sys"

    def test_caption_falls_back_to_entity_name(self, builder, user_table: TableInfo):
        entity = builder.build(user_table.model_copy(update={"comment": ""}), "sys", ["list"])
        assert entity.operations[0].comment == "Get User list"

    def test_build_records_render_options(self, builder, user_table: TableInfo):
        entity = builder.build(
            user_table, "sys", package="acme", with_doc=False, layer_mode="standard"
        )
        assert entity.package == "acme"
        assert entity.with_doc is False
        assert entity.layer_mode == "standard"
        assert entity.features == ["list"]
