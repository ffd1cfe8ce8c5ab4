"""Unit tests for the synonym table and query expansion."""

import orjson
import pytest

from counsel_search.search.synonyms import SynonymTable, expand_query_terms, load_synonym_table


@pytest.mark.unit
class TestSynonymTable:
    """Tests for SynonymTable lookups."""

    def test_lookup_is_case_insensitive(self, synonym_table):
        assert synonym_table.lookup("PAIN") == frozenset({"ache", "sore"})

    def test_unknown_term_returns_empty_set(self, synonym_table):
        assert synonym_table.lookup("unheard") == frozenset()

    def test_lookup_never_includes_term_itself(self):
        table = SynonymTable({"pain": ["pain", "ache"]})
        assert table.lookup("pain") == frozenset({"ache"})

    def test_mapping_is_not_symmetric(self):
        table = SynonymTable()
        assert "lower" in table.lookup("back")
        assert table.lookup("lower") == frozenset()

    def test_len_and_contains(self, synonym_table):
        assert len(synonym_table) == 2
        assert "Tired" in synonym_table
        assert "ache" not in synonym_table
        assert 42 not in synonym_table


@pytest.mark.unit
class TestSynonymFile:
    """Tests for loading a thesaurus from JSON."""

    def test_from_file(self, tmp_path):
        path = tmp_path / "synonyms.json"
        path.write_bytes(orjson.dumps({"Rash": ["hives", "itchy"]}))

        table = SynonymTable.from_file(path)

        assert table.lookup("rash") == frozenset({"hives", "itchy"})

    def test_from_file_rejects_non_object(self, tmp_path):
        path = tmp_path / "synonyms.json"
        path.write_bytes(orjson.dumps(["rash"]))

        with pytest.raises(ValueError, match="must contain a JSON object"):
            SynonymTable.from_file(path)

    def test_from_file_rejects_non_string_values(self, tmp_path):
        path = tmp_path / "synonyms.json"
        path.write_bytes(orjson.dumps({"rash": "hives"}))

        with pytest.raises(ValueError, match="must be a list of strings"):
            SynonymTable.from_file(path)

    def test_load_default_table(self):
        assert "pain" in load_synonym_table(None)


@pytest.mark.unit
class TestExpandQueryTerms:
    """Tests for expand_query_terms."""

    def test_union_in_first_seen_order(self, synonym_table):
        assert expand_query_terms(["pain", "tired"], synonym_table) == ["ache", "sore", "exhausted", "fatigue"]

    def test_excluded_terms_are_skipped(self, synonym_table):
        assert expand_query_terms(["pain", "tired"], synonym_table, exclude=["SORE"]) == [
            "ache",
            "exhausted",
            "fatigue",
        ]

    def test_short_synonyms_are_dropped(self):
        assert expand_query_terms(["prescription"], SynonymTable()) == ["medication", "pharmacy", "refill"]

    def test_shared_synonyms_are_listed_once(self):
        table = SynonymTable({"ache": ["pain", "sore"], "hurt": ["sore", "tender"]})
        assert expand_query_terms(["ache", "hurt"], table) == ["pain", "sore", "tender"]

    def test_unknown_terms_expand_to_nothing(self, synonym_table):
        assert expand_query_terms(["xyz"], synonym_table) == []
