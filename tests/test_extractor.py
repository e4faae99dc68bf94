"""Reading @Hash docstring declarations and hash_ids declarations."""

from __future__ import annotations

import logging
import time

import pytest

from pakay.declarations import (
    DECLARATION_ATTRIBUTE,
    NO_DECLARATION,
    FreeTextDeclaration,
    RouteMetadata,
    StructuredDeclaration,
    hash_ids,
)
from pakay.errors import ConfigurationError
from pakay.extractor import MAX_DECLARATION_LENGTH, MetadataExtractor


@pytest.fixture
def extractor():
    return MetadataExtractor()


def _padded(declaration: str, length: int) -> str:
    return declaration + " " * (length - len(declaration))


class TestLegacySyntax:
    def test_single_name(self, extractor):
        assert extractor.extract_text('@Hash("id")') == RouteMetadata(("id",), "default")

    def test_name_list(self, extractor):
        metadata = extractor.extract_text('@Hash({"id", "user_id"})')
        assert metadata.parameter_names == ("id", "user_id")
        assert metadata.hasher_name == "default"

    def test_hasher_argument(self, extractor):
        metadata = extractor.extract_text('@Hash({"id","user_id"}, hasher="secure")')
        assert metadata == RouteMetadata(("id", "user_id"), "secure")

    def test_hasher_argument_with_single_name(self, extractor):
        assert extractor.extract_text('@Hash("id", hasher = "secure")').hasher_name == "secure"

    def test_single_quotes(self, extractor):
        assert extractor.extract_text("@Hash({'id', 'userId'})").parameter_names == ("id", "userId")

    def test_blank_hasher_defaults(self, extractor):
        assert extractor.extract_text('@Hash("id", hasher="  ")').hasher_name == "default"

    def test_inside_docstring(self, extractor):
        doc = """Show an order.

        Longer description of the handler.

        @Hash("order_id")
        """
        assert extractor.extract_text(doc).parameter_names == ("order_id",)

    def test_docblock_style(self, extractor):
        doc = '/**\n * Show.\n *\n * @Hash("id")\n */'
        assert extractor.extract_text(doc).parameter_names == ("id",)

    def test_whitespace_and_newlines_everywhere(self, extractor):
        doc = '@Hash\n   (\n\t{\n  "id" ,\n\n   "userId"\n }  ,\n hasher\n=\n"secure"\n)'
        assert extractor.extract_text(doc) == RouteMetadata(("id", "userId"), "secure")

    def test_duplicates_removed_in_order(self, extractor):
        metadata = extractor.extract_text('@Hash({"b", "a", "b", "c", "a"})')
        assert metadata.parameter_names == ("b", "a", "c")

    def test_first_declaration_wins(self, extractor):
        assert extractor.extract_text('@Hash("a")\n@Hash("b")').parameter_names == ("a",)

    def test_quoted_names_trimmed(self, extractor):
        metadata = extractor.extract_text('@Hash({" id ", "user_id "}, hasher=" secure ")')
        assert metadata == RouteMetadata(("id", "user_id"), "secure")

    def test_marker_without_call_is_skipped(self, extractor):
        doc = 'See @Hashable for details.\n@Hash("id")'
        assert extractor.extract_text(doc).parameter_names == ("id",)


class TestAbsentDeclarations:
    @pytest.mark.parametrize("text", [None, "", "Just a docstring.", "@Hashable thing", "@Hash"])
    def test_no_declaration(self, extractor, text, caplog):
        with caplog.at_level(logging.WARNING, logger="pakay.extractor"):
            assert extractor.extract_text(text) is None
        assert caplog.records == []

    def test_extract_no_declaration_variant(self, extractor):
        assert extractor.extract(NO_DECLARATION) is None
        assert extractor.extract(None) is None


class TestRejections:
    @pytest.mark.parametrize(
        "text",
        [
            '@Hash("id"',
            '@Hash("id)',
            "@Hash(id)",
            '@Hash({"id", "x")',
            '@Hash({"id",})',
            '@Hash({})',
            '@Hash("id", salt="x")',
            '@Hash("id", hasher=secure)',
            '@Hash("id" "x")',
            '@Hash({{"id"}})',
            '@Hash(("id"))',
        ],
    )
    def test_malformed(self, extractor, text, caplog):
        with caplog.at_level(logging.WARNING, logger="pakay.extractor"):
            assert extractor.extract_text(text) is None
        assert any("Ignoring hash declaration" in r.message for r in caplog.records)

    def test_length_boundary_accepted(self, extractor):
        text = _padded('@Hash("id")', MAX_DECLARATION_LENGTH)
        assert len(text) == 10_000
        assert extractor.extract_text(text).parameter_names == ("id",)

    def test_length_boundary_rejected(self, extractor, caplog):
        text = _padded('@Hash("id")', MAX_DECLARATION_LENGTH + 1)
        assert len(text) == 10_001
        with caplog.at_level(logging.WARNING, logger="pakay.extractor"):
            assert extractor.extract_text(text) is None
        assert "exceeds 10000 characters" in caplog.text

    def test_twenty_parameters_accepted(self, extractor):
        names = [f"p{i}" for i in range(20)]
        text = "@Hash({" + ", ".join(f'"{n}"' for n in names) + "})"
        assert extractor.extract_text(text).parameter_names == tuple(names)

    def test_twenty_one_parameters_rejected(self, extractor, caplog):
        text = "@Hash({" + ", ".join(f'"p{i}"' for i in range(21)) + "})"
        with caplog.at_level(logging.WARNING, logger="pakay.extractor"):
            assert extractor.extract_text(text) is None
        assert "too many parameters" in caplog.text

    def test_invalid_names_dropped(self, extractor, caplog):
        text = '@Hash({"id", "<script>", "1st", "a-b", "user_id", ""})'
        with caplog.at_level(logging.WARNING, logger="pakay.extractor"):
            metadata = extractor.extract_text(text)
        assert metadata.parameter_names == ("id", "user_id")
        assert "'<script>'" in caplog.text

    def test_control_characters_dropped(self, extractor):
        metadata = extractor.extract_text('@Hash({"id", "a\x00b", "c\x1bd"})')
        assert metadata.parameter_names == ("id",)

    def test_all_invalid_is_absent(self, extractor, caplog):
        with caplog.at_level(logging.WARNING, logger="pakay.extractor"):
            assert extractor.extract_text('@Hash({"<a>", "b c"})') is None
        assert "no valid parameter names" in caplog.text

    def test_name_too_long_rejected(self, extractor, caplog):
        text = '@Hash({"' + "a" * 101 + '", "' + "b" * 100 + '"})'
        with caplog.at_level(logging.WARNING, logger="pakay.extractor"):
            assert extractor.extract_text(text) is None
        assert "longer than 100 characters" in caplog.text

    def test_name_at_length_limit(self, extractor):
        assert extractor.extract_text('@Hash("' + "b" * 100 + '")').parameter_names == ("b" * 100,)

    def test_oversized_token_rejected(self, extractor):
        assert extractor.extract_text('@Hash("' + "a" * 300 + '")') is None

    def test_invalid_hasher_rejected(self, extractor):
        assert extractor.extract_text('@Hash("id", hasher="no;way")') is None

    def test_source_named_in_diagnostic(self, extractor, caplog):
        with caplog.at_level(logging.WARNING, logger="pakay.extractor"):
            extractor.extract_text('@Hash("id"', source="app.routes::show")
        assert "app.routes::show" in caplog.text


class TestHostileInput:
    def test_nested_grouping_characters(self, extractor):
        text = "@Hash(" + "(" * 100 + '"id"' + ")" * 100 + ")"
        start = time.perf_counter()
        assert extractor.extract_text(text) is None
        assert time.perf_counter() - start < 0.1

    def test_nested_braces(self, extractor):
        text = "@Hash(" + "{" * 100 + '"id"' + "}" * 100 + ")"
        start = time.perf_counter()
        assert extractor.extract_text(text) is None
        assert time.perf_counter() - start < 0.1

    def test_nesting_without_marker(self, extractor):
        text = "(" * 5000 + ")" * 4999
        start = time.perf_counter()
        assert extractor.extract_text(text) is None
        assert time.perf_counter() - start < 0.1

    def test_many_markers(self, extractor):
        text = "@Hash" * 1999
        start = time.perf_counter()
        assert extractor.extract_text(text) is None
        assert time.perf_counter() - start < 0.1

    def test_unterminated_list_at_limit(self, extractor):
        text = '@Hash({"a", ' + '"a", ' * 1900
        text = text[:MAX_DECLARATION_LENGTH]
        start = time.perf_counter()
        assert extractor.extract_text(text) is None
        assert time.perf_counter() - start < 0.1


class TestStructuredDeclarations:
    def test_normalizes(self, extractor):
        declaration = StructuredDeclaration((" id ", "user_id", "id"), " ")
        assert extractor.extract(declaration) == RouteMetadata(("id", "user_id"), "default")

    def test_drops_invalid_names(self, extractor):
        declaration = StructuredDeclaration(("id", "bad name", None), "secure")
        assert extractor.extract(declaration) == RouteMetadata(("id",), "secure")

    def test_non_string_hasher_rejected(self, extractor):
        assert extractor.extract(StructuredDeclaration(("id",), 5)) is None

    def test_too_many(self, extractor):
        declaration = StructuredDeclaration(tuple(f"p{i}" for i in range(21)))
        assert extractor.extract(declaration) is None

    def test_free_text_variant(self, extractor):
        declaration = FreeTextDeclaration('@Hash("id")', source="m::f")
        assert extractor.extract(declaration).parameter_names == ("id",)

    def test_extraction_is_deterministic(self, extractor):
        text = '@Hash({"id", "user_id"}, hasher="secure")'
        assert extractor.extract_text(text) == extractor.extract_text(text)
        declaration = StructuredDeclaration(("a", "b"))
        assert extractor.extract(declaration) == extractor.extract(declaration)


class TestHashIdsDecorator:
    def test_attaches_declaration_and_returns_handler(self):
        def handler(id: int):
            return id

        decorated = hash_ids("id", hasher="secure")(handler)
        assert decorated is handler
        assert getattr(handler, DECLARATION_ATTRIBUTE) == StructuredDeclaration(("id",), "secure")

    def test_stacking_keeps_source_order(self):
        @hash_ids("id")
        @hash_ids("user_id")
        def handler(id: int, user_id: int):
            return id

        assert getattr(handler, DECLARATION_ATTRIBUTE).parameter_names == ("id", "user_id")

    def test_stacking_conflicting_hashers(self):
        with pytest.raises(ConfigurationError, match="conflicting hashers"):

            @hash_ids("id", hasher="secure")
            @hash_ids("user_id")
            def handler(id: int, user_id: int):
                return id

    @pytest.mark.parametrize("name", ["", "1id", "a-b", "<b>", "x" * 101])
    def test_invalid_name(self, name):
        with pytest.raises(ConfigurationError, match="invalid parameter name"):
            hash_ids(name)

    def test_requires_a_name(self):
        with pytest.raises(ConfigurationError):
            hash_ids()

    def test_invalid_hasher(self):
        with pytest.raises(ConfigurationError, match="hasher"):
            hash_ids("id", hasher="bad hasher")

    @pytest.mark.parametrize("hasher", [5, ["secure"], b"secure"])
    def test_non_string_hasher(self, hasher):
        with pytest.raises(ConfigurationError, match="invalid hasher name"):
            hash_ids("id", hasher=hasher)

    def test_twenty_one_names(self):
        with pytest.raises(ConfigurationError, match="too many"):
            hash_ids(*(f"p{i}" for i in range(21)))(lambda: None)

    def test_blank_hasher_is_default(self):
        @hash_ids("id", hasher="")
        def handler(id: int):
            return id

        assert getattr(handler, DECLARATION_ATTRIBUTE).hasher == "default"
