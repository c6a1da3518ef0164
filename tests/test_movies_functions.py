import pytest
from bson import ObjectId
from pymongo import ASCENDING, DESCENDING

from movies_functions import (
    InvalidIdentifier,
    build_equality_filter,
    build_genre_filter,
    build_id_query,
    build_movie_filter,
    build_rating_filter,
    collect_genres,
    parse_genre_list,
    parse_object_id,
    parse_rating,
    serialize_document,
)


def test_parse_object_id_accepts_24_hex_characters():
    raw = "65a1f0c2b3d4e5f60718293a"
    assert parse_object_id(raw) == ObjectId(raw)
    assert build_id_query(raw) == {"_id": ObjectId(raw)}


@pytest.mark.parametrize(
    "raw",
    ["", "123", "not-an-id", "65a1f0c2b3d4e5f60718293", "65a1f0c2b3d4e5f60718293az", "zza1f0c2b3d4e5f60718293a", None],
)
def test_parse_object_id_rejects_malformed_values(raw):
    with pytest.raises(InvalidIdentifier) as excinfo:
        parse_object_id(raw)
    assert excinfo.value.value == raw


def test_equality_filter_is_empty_without_value():
    assert build_equality_filter("addedBy", None) == {}
    assert build_equality_filter("addedBy", "") == {}
    assert build_equality_filter("email", "a@b.c") == {"email": "a@b.c"}


def test_parse_genre_list_strips_and_deduplicates():
    assert parse_genre_list("Action, Drama,,Action ") == ["Action", "Drama"]
    assert parse_genre_list(None) == []


def test_genre_filter_uses_membership():
    assert build_genre_filter("Action,Drama") == {"genre": {"$in": ["Action", "Drama"]}}
    assert build_genre_filter("") == {}
    assert build_genre_filter(" , ") == {}


def test_parse_rating_handles_decimals_and_garbage():
    assert parse_rating("7.5") == 7.5
    assert parse_rating(" 3 ") == 3.0
    assert parse_rating("") is None
    assert parse_rating("abc") is None
    assert parse_rating("nan") is None
    assert parse_rating(None) is None


def test_rating_filter_min_only_sorts_ascending():
    query, sort = build_rating_filter(3.0, None)
    assert query == {"rating": {"$gte": 3.0}}
    assert sort == [("rating", ASCENDING)]


def test_rating_filter_max_only_sorts_descending():
    query, sort = build_rating_filter(None, 8.0)
    assert query == {"rating": {"$lte": 8.0}}
    assert sort == [("rating", DESCENDING)]


def test_rating_filter_both_bounds_has_no_sort():
    query, sort = build_rating_filter(3.0, 8.0)
    assert query == {"rating": {"$gte": 3.0, "$lte": 8.0}}
    assert sort is None


def test_rating_filter_without_bounds():
    assert build_rating_filter(None, None) == ({}, None)


def test_movie_filter_combines_genres_and_rating():
    query, sort = build_movie_filter("Action,Drama", "3", None)
    assert query == {"genre": {"$in": ["Action", "Drama"]}, "rating": {"$gte": 3.0}}
    assert sort == [("rating", ASCENDING)]


def test_movie_filter_ignores_unparsable_bound():
    query, sort = build_movie_filter(None, "high", "8")
    assert query == {"rating": {"$lte": 8.0}}
    assert sort == [("rating", DESCENDING)]


def test_collect_genres_skips_missing_and_duplicates():
    docs = [{"genre": "Drama"}, {}, {"genre": "Action"}, {"genre": "Drama"}, {"genre": None}]
    assert collect_genres(docs) == ["Drama", "Action"]


def test_serialize_document_stringifies_id_only():
    oid = ObjectId()
    doc = {"_id": oid, "title": "Heat", "rating": 8.3, "cast": ["Pacino"]}
    assert serialize_document(doc) == {"_id": str(oid), "title": "Heat", "rating": 8.3, "cast": ["Pacino"]}
    assert serialize_document(None) is None
