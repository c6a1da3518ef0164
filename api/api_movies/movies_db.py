import logging
import threading
import time
from urllib.parse import quote_plus

from pymongo import MongoClient
from pymongo.errors import PyMongoError
from pymongo.server_api import ServerApi

from movies_functions import OperationFailed

logger = logging.getLogger(__name__)

LOCAL_MONGO_URI = "mongodb://localhost:27017"


def build_mongo_uri(username: str | None, password: str | None, host: str, app_name: str | None = None):
    """
    Build the Atlas connection string from credentials.

    Args:
        username (str | None): Database user.
        password (str | None): Database password.
        host (str): Cluster host name.
        app_name (str | None): Optional ``appName`` option.

    Returns:
        str: ``mongodb+srv`` URI, or the local URI when credentials are missing.
    """
    if not username or not password:
        return LOCAL_MONGO_URI

    uri = f"mongodb+srv://{quote_plus(username)}:{quote_plus(password)}@{host}/"
    if app_name:
        uri += f"?appName={quote_plus(app_name)}"
    return uri


class MongoConnection:
    """
    Lazily connected handle on the movies database and its two collections.

    ``ensure_ready`` is called before every operation. The first caller
    connects, concurrent callers wait on the lock and reuse the result.
    """

    def __init__(
        self,
        uri: str,
        db_name: str,
        movies_name: str = "movies",
        watchlist_name: str = "watchlist",
        max_pool_size: int = 1,
        timeout_ms: int = 5000,
        max_failures: int = 3,
        retry_cooldown: float = 30.0,
        client_factory=MongoClient,
        clock=time.monotonic,
    ):
        self.uri = uri
        self.db_name = db_name
        self.movies_name = movies_name
        self.watchlist_name = watchlist_name
        self.max_pool_size = max_pool_size
        self.timeout_ms = timeout_ms
        self.max_failures = max(1, max_failures)
        self.retry_cooldown = retry_cooldown
        self.client_factory = client_factory
        self.clock = clock

        self.client = None
        self.db = None
        self.movies = None
        self.watchlist = None

        self.failures = 0
        self.blocked_until = None
        self._lock = threading.Lock()

    @property
    def ready(self):
        return self.db is not None and self.movies is not None and self.watchlist is not None

    def client_options(self):
        """
        Keyword arguments handed to the client factory.

        Returns:
            dict: Pool size, timeout and, for Atlas URIs, the stable API.
        """
        options = {
            "maxPoolSize": self.max_pool_size,
            "serverSelectionTimeoutMS": self.timeout_ms,
        }
        if self.uri.startswith("mongodb+srv://"):
            options["server_api"] = ServerApi("1", strict=True, deprecation_errors=True)
        return options

    def ensure_ready(self):
        """
        Connect and bind the collections unless already done.

        Raises:
            OperationFailed: When connecting fails, or while the retry
                cool-down after repeated failures is still running.
        """
        if self.ready:
            return

        with self._lock:
            if self.ready:
                return

            now = self.clock()
            if self.blocked_until is not None and now < self.blocked_until:
                remaining = self.blocked_until - now
                logger.warning("Skipping MongoDB connection attempt, retrying in %.1fs", remaining)
                raise OperationFailed(f"Database unavailable, retrying in {remaining:.0f}s")

            self._connect()

    def _connect(self):
        client = None
        try:
            client = self.client_factory(self.uri, **self.client_options())
            client.admin.command("ping")
        except PyMongoError as exc:
            if client is not None:
                client.close()
            self._record_failure()
            logger.error("MongoDB connection failed (attempt %d): %s", self.failures, exc)
            raise OperationFailed(f"Database connection failed: {exc}") from exc

        db = client[self.db_name]
        self.client = client
        self.movies = db[self.movies_name]
        self.watchlist = db[self.watchlist_name]
        self.db = db
        self.failures = 0
        self.blocked_until = None
        logger.info("Pinged your deployment. You successfully connected to MongoDB!")

    def _record_failure(self):
        self.failures += 1
        if self.failures >= self.max_failures:
            self.blocked_until = self.clock() + self.retry_cooldown

    def ping(self):
        """
        Check the server is reachable.

        Raises:
            OperationFailed: When the connection or the ping fails.
        """
        self.ensure_ready()
        try:
            self.client.admin.command("ping")
        except PyMongoError as exc:
            raise OperationFailed(f"Database ping failed: {exc}") from exc

    def close(self):
        """Close the client so the next ``ensure_ready`` reconnects."""
        with self._lock:
            if self.client is not None:
                self.client.close()
            self.client = None
            self.db = None
            self.movies = None
            self.watchlist = None
