"""
tests/test_utils.py
Identifier transforms and file helpers.
"""

from __future__ import annotations

import os
import pathlib
import re

import pytest

from tablegen.utils import (
    count_lines,
    read_file,
    sha256_hex,
    split_words,
    strip_table_prefix,
    to_camel_case,
    to_kebab_case,
    to_pascal_case,
    to_snake_case,
    to_title_human,
    write_file,
)

IDENTIFIERS = [
    "user",
    "user_name",
    "UserName",
    "userName",
    "user-profile",
    "HTTPServer",
    "getHTTPResponse",
    "order_item_2",
    "__leading__underscores",
    "sys_dict_data",
]


class TestSplitWords:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("user_name", ("user", "name")),
            ("UserName", ("user", "name")),
            ("user-name", ("user", "name")),
            ("getHTTPResponse", ("get", "http", "response")),
            ("", ()),
        ],
    )
    def test_split(self, name, expected):
        assert split_words(name) == expected


class TestCaseConversion:
    @pytest.mark.parametrize(
        "name, snake, pascal, camel, kebab",
        [
            ("user_profile", "user_profile", "UserProfile", "userProfile", "user-profile"),
            ("UserProfile", "user_profile", "UserProfile", "userProfile", "user-profile"),
            ("user-profile", "user_profile", "UserProfile", "userProfile", "user-profile"),
            ("HTTP_server", "http_server", "HttpServer", "httpServer", "http-server"),
            ("user", "user", "User", "user", "user"),
        ],
    )
    def test_conversions(self, name, snake, pascal, camel, kebab):
        assert to_snake_case(name) == snake
        assert to_pascal_case(name) == pascal
        assert to_camel_case(name) == camel
        assert to_kebab_case(name) == kebab

    def test_empty_string_maps_to_empty(self):
        for fn in (to_snake_case, to_pascal_case, to_camel_case, to_kebab_case, to_title_human):
            assert fn("") == ""

    def test_title_human(self):
        assert to_title_human("user_profile") == "User Profile"

    @pytest.mark.parametrize("name", IDENTIFIERS)
    def test_pascal_has_no_separators_and_leads_upper(self, name):
        pascal = to_pascal_case(name)
        assert pascal[0].isupper()
        assert "_" not in pascal and "-" not in pascal

    @pytest.mark.parametrize("name", IDENTIFIERS)
    def test_snake_of_pascal_is_lower_alnum(self, name):
        assert re.fullmatch(r"[a-z0-9_]+", to_snake_case(to_pascal_case(name)))


class TestStripTablePrefix:
    PREFIXES = ("sys_", "admin_", "hg_", "t_", "tb_")

    @pytest.mark.parametrize(
        "table, expected",
        [
            ("sys_user", "user"),
            ("admin_role", "role"),
            ("tb_goods", "goods"),
            ("orders", "orders"),
            ("sys_t_user", "t_user"),
        ],
    )
    def test_strips_at_most_one_prefix(self, table, expected):
        assert strip_table_prefix(table, self.PREFIXES) == expected

    def test_first_listed_prefix_wins(self):
        assert strip_table_prefix("tb_item", ("t", "tb_")) == "b_item"


class TestFileHelpers:
    def test_write_creates_parents_and_returns_bytes(self, tmp_path: pathlib.Path):
        target = tmp_path / "a" / "b" / "c.txt"
        written = write_file(target, "héllo")
        assert target.is_file()
        assert written == len("héllo".encode("utf-8"))
        assert read_file(target) == "héllo"

    def test_atomic_write_leaves_no_temp_files(self, tmp_path: pathlib.Path):
        target = tmp_path / "out.py"
        write_file(target, "one")
        write_file(target, "two")
        assert read_file(target) == "two"
        assert sorted(os.listdir(tmp_path)) == ["out.py"]

    def test_non_atomic_write(self, tmp_path: pathlib.Path):
        target = tmp_path / "plain.txt"
        write_file(target, "x", atomic=False)
        assert read_file(target) == "x"


class TestChecksumAndLines:
    def test_sha256_is_hex_of_utf8(self):
        assert sha256_hex("X") == "4b68ab3847feda7d6c62c1fbcbeebfa35eab7351ed5e78f4ddadea5df64b8015"
        assert len(sha256_hex("")) == 64

    @pytest.mark.parametrize(
        "content, expected", [("", 0), ("a", 1), ("a\n", 1), ("a\nb", 2), ("a\nb\n", 2)]
    )
    def test_count_lines(self, content, expected):
        assert count_lines(content) == expected
