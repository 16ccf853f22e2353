import json

import pytest

from recordscrobbler.artist_mappings import ArtistMapping, ArtistMappingStore


@pytest.fixture
def path(tmp_path):
    return str(tmp_path / "state" / "mappings.json")


def test_unmapped_name_maps_to_itself(path):
    store = ArtistMappingStore(path)
    assert store.lookup("Boris (2)") == ArtistMapping(has_mapping=False, lastfm_name="Boris (2)")
    assert store.lastfm_name("Boris (2)") == "Boris (2)"


def test_set_persists_across_instances(path):
    ArtistMappingStore(path).set("Boris (2)", "Boris")

    store = ArtistMappingStore(path)
    assert store.lastfm_name("Boris (2)") == "Boris"
    with open(path, encoding="utf-8") as f:
        assert json.load(f) == {"Boris (2)": "Boris"}


def test_lookup_is_case_insensitive(path):
    store = ArtistMappingStore(path)
    store.set("Boris (2)", "Boris")
    assert store.lookup("BORIS (2)").has_mapping


def test_set_replaces_differently_cased_key(path):
    store = ArtistMappingStore(path)
    store.set("boris (2)", "boris")
    store.set("Boris (2)", "Boris")
    assert store.all() == {"Boris (2)": "Boris"}


def test_blank_names_are_rejected(path):
    store = ArtistMappingStore(path)
    with pytest.raises(ValueError):
        store.set("Boris (2)", "  ")


def test_remove(path):
    store = ArtistMappingStore(path)
    store.set("Boris (2)", "Boris")
    assert store.remove("boris (2)") is True
    assert store.remove("boris (2)") is False
    assert not ArtistMappingStore(path).lookup("Boris (2)").has_mapping


def test_corrupt_file_starts_empty(tmp_path):
    path = tmp_path / "mappings.json"
    path.write_text("{not json", encoding="utf-8")
    store = ArtistMappingStore(str(path))
    assert store.all() == {}


def test_mapping_from_backend_payload():
    assert ArtistMapping.from_dict("Boris (2)", {"hasMapping": True, "lastfmName": "Boris"}).lastfm_name == "Boris"
    assert ArtistMapping.from_dict("Boris (2)", None) == ArtistMapping(False, "Boris (2)")
