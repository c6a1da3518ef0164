from datetime import datetime, timezone

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING

TOP_RATED_LIMIT = 5
LATEST_LIMIT = 6

TOP_RATED_SORT = [("rating", DESCENDING)]
LATEST_SORT = [("createdAt", DESCENDING)]

FILTER_PROJECTION = {
    "title": 1,
    "rating": 1,
    "posterUrl": 1,
    "genre": 1,
    "releaseYear": 1,
}
GENRE_PROJECTION = {"genre": 1, "_id": 0}


class InvalidIdentifier(ValueError):
    """Raised when a path identifier is not a valid ObjectId string."""

    def __init__(self, value):
        super().__init__(f"Invalid identifier: {value}")
        self.value = value


class OperationFailed(RuntimeError):
    """Raised when the database cannot serve a request."""


def parse_object_id(value: str | None):
    """
    Convert a client-supplied identifier into an ObjectId.

    Args:
        value (str | None): Identifier taken from the path segment.

    Returns:
        ObjectId: Parsed identifier.

    Raises:
        InvalidIdentifier: When the value is not 24 hexadecimal characters.
    """
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise InvalidIdentifier(value)
    return ObjectId(value)


def build_id_query(value: str | None):
    """Build the ``_id`` equality filter for a path identifier."""
    return {"_id": parse_object_id(value)}


def build_equality_filter(field: str, value: str | None):
    """
    Build an optional equality filter.

    Args:
        field (str): Document field to match.
        value (str | None): Query parameter value.

    Returns:
        dict: Empty filter when the value is missing, else ``{field: value}``.
    """
    if not value:
        return {}
    return {field: value}


def parse_genre_list(raw_value: str | None):
    """
    Split a comma-separated genre parameter into distinct names.

    Args:
        raw_value (str | None): Raw ``genres`` query parameter.

    Returns:
        list[str]: Genre names in the order given, without duplicates.
    """
    if not raw_value:
        return []

    genres = []
    for entry in str(raw_value).split(","):
        name = entry.strip()
        if name and name not in genres:
            genres.append(name)
    return genres


def build_genre_filter(raw_value: str | None):
    """
    Build the ``genre`` membership filter.

    Args:
        raw_value (str | None): Raw ``genres`` query parameter.

    Returns:
        dict: ``{"genre": {"$in": [...]}}`` or an empty filter.
    """
    genres = parse_genre_list(raw_value)
    if not genres:
        return {}
    return {"genre": {"$in": genres}}


def parse_rating(value: str | None):
    """
    Parse a rating bound from a query parameter.

    Args:
        value (str | None): Decimal string such as ``"7.5"``.

    Returns:
        float | None: Parsed bound, or None when missing or malformed.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        rating = float(text)
    except ValueError:
        return None
    if rating != rating:
        return None
    return rating


def build_rating_filter(min_rating: float | None, max_rating: float | None):
    """
    Build the rating range filter and the sort it implies.

    Only a lower bound sorts ascending, only an upper bound sorts descending,
    both bounds leave the order to the server.

    Args:
        min_rating (float | None): Inclusive lower bound.
        max_rating (float | None): Inclusive upper bound.

    Returns:
        tuple[dict, list | None]: Filter and PyMongo sort specification.
    """
    if min_rating is not None and max_rating is not None:
        return {"rating": {"$gte": min_rating, "$lte": max_rating}}, None
    if min_rating is not None:
        return {"rating": {"$gte": min_rating}}, [("rating", ASCENDING)]
    if max_rating is not None:
        return {"rating": {"$lte": max_rating}}, [("rating", DESCENDING)]
    return {}, None


def build_movie_filter(genres: str | None, min_rating: str | None, max_rating: str | None):
    """
    Combine the genre and rating filters used by ``/movies/filter``.

    Args:
        genres (str | None): Comma-separated genre names.
        min_rating (str | None): Lower rating bound as sent by the client.
        max_rating (str | None): Upper rating bound as sent by the client.

    Returns:
        tuple[dict, list | None]: Filter and sort specification.
    """
    query = build_genre_filter(genres)
    rating_query, sort = build_rating_filter(parse_rating(min_rating), parse_rating(max_rating))
    query.update(rating_query)
    return query, sort


def collect_genres(documents):
    """
    Collect the distinct genre values from projected documents.

    Args:
        documents (Iterable[dict]): Documents projected to the genre field.

    Returns:
        list: Distinct genres in first-seen order.
    """
    genres = []
    for doc in documents:
        genre = doc.get("genre")
        if genre is None or genre in genres:
            continue
        genres.append(genre)
    return genres


def serialize_document(doc: dict | None):
    """
    Convert a MongoDB document into an API-friendly dictionary.

    Args:
        doc (dict | None): MongoDB document.

    Returns:
        dict | None: Copy with a string ``_id``, or None when not found.
    """
    if doc is None:
        return None

    serialized = {}
    for key, value in doc.items():
        if key == "_id":
            serialized[key] = str(value)
        else:
            serialized[key] = value
    return serialized


def serialize_documents(cursor):
    """Serialize every document yielded by a cursor."""
    return [serialize_document(doc) for doc in cursor]


def serialize_insert_result(result):
    """
    Describe the outcome of ``insert_one``.

    Args:
        result (InsertOneResult): PyMongo write result.

    Returns:
        dict: Acknowledgment with the new identifier.
    """
    return {
        "acknowledged": result.acknowledged,
        "insertedId": str(result.inserted_id),
    }


def serialize_update_result(result):
    """
    Describe the outcome of ``update_one``.

    Args:
        result (UpdateResult): PyMongo write result.

    Returns:
        dict: Matched, modified and upserted counts.
    """
    upserted_id = result.upserted_id
    return {
        "acknowledged": result.acknowledged,
        "matchedCount": result.matched_count,
        "modifiedCount": result.modified_count,
        "upsertedCount": 0 if upserted_id is None else 1,
        "upsertedId": None if upserted_id is None else str(upserted_id),
    }


def serialize_delete_result(result):
    """
    Describe the outcome of ``delete_one``.

    Args:
        result (DeleteResult): PyMongo write result.

    Returns:
        dict: Acknowledgment with the deleted count.
    """
    return {
        "acknowledged": result.acknowledged,
        "deletedCount": result.deleted_count,
    }


def utc_timestamp_iso():
    """
    Return the current UTC timestamp in ISO 8601 format.

    Returns:
        str: Timestamp string without microseconds and suffixed with ``Z``.
    """
    return datetime.now(timezone.utc).replace(microsecond=0, tzinfo=None).isoformat() + "Z"
