import logging
import os

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_cors import CORS
from pymongo.errors import PyMongoError
from werkzeug.exceptions import HTTPException

from movies_db import MongoConnection, build_mongo_uri
from movies_functions import *

load_dotenv()

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

MONGO_URI = os.getenv("MONGO_URI") or build_mongo_uri(
    os.getenv("DB_USERNAME"),
    os.getenv("DB_PASSWORD"),
    os.getenv("DB_HOST", "cluster0.vn6lbjv.mongodb.net"),
    os.getenv("DB_APP_NAME", "Cluster0"),
)
DB_NAME = os.getenv("DB_NAME", "moviesDB")
MOVIES_COLLECTION = os.getenv("MOVIES_COLLECTION", "movies")
WATCHLIST_COLLECTION = os.getenv("WATCHLIST_COLLECTION", "watchlist")
MONGO_MAX_POOL_SIZE = int(os.environ.get("MONGO_MAX_POOL_SIZE", 1))
MONGO_TIMEOUT_MS = int(os.environ.get("MONGO_TIMEOUT_MS", 5000))
MONGO_MAX_CONNECT_FAILURES = int(os.environ.get("MONGO_MAX_CONNECT_FAILURES", 3))
MONGO_RETRY_COOLDOWN_SECONDS = float(os.environ.get("MONGO_RETRY_COOLDOWN_SECONDS", 30))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
    if origin.strip()
]
PORT = int(os.environ.get("PORT", 3000))

BANNER = "Movie catalog API is running"

app = Flask(__name__)
app.json.sort_keys = False
CORS(
    app,
    origins=CORS_ORIGINS,
    supports_credentials=True,
    methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
)

connection = MongoConnection(
    MONGO_URI,
    DB_NAME,
    movies_name=MOVIES_COLLECTION,
    watchlist_name=WATCHLIST_COLLECTION,
    max_pool_size=MONGO_MAX_POOL_SIZE,
    timeout_ms=MONGO_TIMEOUT_MS,
    max_failures=MONGO_MAX_CONNECT_FAILURES,
    retry_cooldown=MONGO_RETRY_COOLDOWN_SECONDS,
)


def movies_collection():
    connection.ensure_ready()
    return connection.movies


def watchlist_collection():
    connection.ensure_ready()
    return connection.watchlist


@app.errorhandler(InvalidIdentifier)
def handle_invalid_identifier(error):
    logger.info("Rejected request to %s: %s", request.path, error)
    return jsonify({"error": str(error)}), 400


@app.errorhandler(OperationFailed)
@app.errorhandler(PyMongoError)
def handle_operation_failed(error):
    logger.error("Database operation failed on %s %s: %s", request.method, request.path, error)
    return jsonify({"error": str(error)}), 500


@app.errorhandler(Exception)
def handle_unexpected_error(error):
    if isinstance(error, HTTPException):
        return jsonify({"error": error.description}), error.code
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({"error": str(error)}), 500


@app.route("/", methods=["GET"])
def index():
    """Plain-text banner for uptime checks."""
    return BANNER, 200, {"Content-Type": "text/plain; charset=utf-8"}


@app.route("/health", methods=["GET"])
def health():
    """
    Handle GET requests for service health.

    Returns:
        Response: Database status and timestamp, 500 when unreachable.
    """
    try:
        connection.ping()
    except OperationFailed as exc:
        logger.error("Health check failed: %s", exc)
        return jsonify({
            "status": "error",
            "database": "disconnected",
            "error": str(exc),
            "timestamp": utc_timestamp_iso(),
        }), 500

    return jsonify({
        "status": "ok",
        "database": "connected",
        "timestamp": utc_timestamp_iso(),
    })


@app.route("/movies", methods=["GET"])
def get_movies():
    """
    Handle GET requests for the full movie catalog.

    Returns:
        Response: Flask response with every movie.
    """
    cursor = movies_collection().find()
    return jsonify(serialize_documents(cursor))


@app.route("/movies/top-rated", methods=["GET"])
def get_top_rated_movies():
    """
    Handle GET requests for the best rated movies.

    Returns:
        Response: At most five movies, highest rating first.
    """
    cursor = movies_collection().find().sort(TOP_RATED_SORT).limit(TOP_RATED_LIMIT)
    return jsonify(serialize_documents(cursor))


@app.route("/movies/latest", methods=["GET"])
def get_latest_movies():
    """
    Handle GET requests for the most recently added movies.

    Returns:
        Response: At most six movies, newest ``createdAt`` first.
    """
    cursor = movies_collection().find().sort(LATEST_SORT).limit(LATEST_LIMIT)
    return jsonify(serialize_documents(cursor))


@app.route("/movies/genres", methods=["GET"])
def get_genres():
    """
    Handle GET requests for the genres used across the catalog.

    Returns:
        Response: Distinct genre values.
    """
    cursor = movies_collection().find({}, GENRE_PROJECTION)
    return jsonify(collect_genres(cursor))


@app.route("/movies/filter", methods=["GET"])
def filter_movies():
    """
    Handle GET requests filtering movies by genre and rating.

    Query args:
        genres: comma-separated genre names.
        minRating / maxRating: inclusive rating bounds.

    Returns:
        Response: Matching movies restricted to the card fields.
    """
    query, sort = build_movie_filter(
        request.args.get("genres"),
        request.args.get("minRating"),
        request.args.get("maxRating"),
    )
    cursor = movies_collection().find(query, FILTER_PROJECTION)
    if sort:
        cursor = cursor.sort(sort)
    return jsonify(serialize_documents(cursor))


@app.route("/movie/<movie_id>", methods=["GET"])
def get_movie(movie_id: str):
    """
    Handle GET requests for a single movie.

    Args:
        movie_id (str): Identifier from the path segment.

    Returns:
        Response: The movie, or ``null`` when no document matches.
    """
    query = build_id_query(movie_id)
    document = movies_collection().find_one(query)
    return jsonify(serialize_document(document))


@app.route("/movies/add", methods=["POST"])
def add_movie():
    """
    Handle POST requests that insert a movie.

    Returns:
        Response: Insert acknowledgment with the new identifier.
    """
    payload = request.get_json(silent=True) or {}
    result = movies_collection().insert_one(payload)
    logger.info("Added movie %s", result.inserted_id)
    return jsonify(serialize_insert_result(result))


@app.route("/movies/my-collection", methods=["GET"])
def get_my_collection():
    """
    Handle GET requests for the movies a user added.

    Returns:
        Response: Movies whose ``addedBy`` matches the query argument.
    """
    query = build_equality_filter("addedBy", request.args.get("addedBy"))
    cursor = movies_collection().find(query)
    return jsonify(serialize_documents(cursor))


@app.route("/movies/my-collection/<movie_id>", methods=["DELETE"])
def delete_movie(movie_id: str):
    """
    Handle DELETE requests that remove a movie.

    Args:
        movie_id (str): Identifier from the path segment.

    Returns:
        Response: Delete acknowledgment.
    """
    query = build_id_query(movie_id)
    result = movies_collection().delete_one(query)
    return jsonify(serialize_delete_result(result))


@app.route("/movies/update/<movie_id>", methods=["PATCH"])
def update_movie(movie_id: str):
    """
    Handle PATCH requests that overwrite some fields of a movie.

    Args:
        movie_id (str): Identifier from the path segment.

    Returns:
        Response: Update acknowledgment.
    """
    query = build_id_query(movie_id)
    updates = request.get_json(silent=True) or {}
    result = movies_collection().update_one(query, {"$set": updates})
    return jsonify(serialize_update_result(result))


@app.route("/movies/watchlist", methods=["POST"])
def add_to_watchlist():
    """
    Handle POST requests that add a watchlist entry.

    Returns:
        Response: Insert acknowledgment with the new identifier.
    """
    payload = request.get_json(silent=True) or {}
    result = watchlist_collection().insert_one(payload)
    return jsonify(serialize_insert_result(result))


@app.route("/movies/watchlist", methods=["GET"])
def get_watchlist():
    """
    Handle GET requests for a user's watchlist.

    Returns:
        Response: Entries whose ``email`` matches the query argument.
    """
    query = build_equality_filter("email", request.args.get("email"))
    cursor = watchlist_collection().find(query)
    return jsonify(serialize_documents(cursor))


@app.route("/movies/watchlist/<entry_id>", methods=["DELETE"])
def remove_from_watchlist(entry_id: str):
    """
    Handle DELETE requests that remove a watchlist entry.

    Args:
        entry_id (str): Identifier from the path segment.

    Returns:
        Response: Delete acknowledgment.
    """
    query = build_id_query(entry_id)
    result = watchlist_collection().delete_one(query)
    return jsonify(serialize_delete_result(result))


def main():
    try:
        connection.ensure_ready()
    except OperationFailed as exc:
        logger.error("Starting without a database connection: %s", exc)
    logger.info("Server is running on port %d", PORT)
    app.run(host="0.0.0.0", port=PORT)


if __name__ == "__main__":
    main()
