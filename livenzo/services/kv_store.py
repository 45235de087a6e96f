"""
Redis key-value store for per-user state.
Holds small flags (tutorial seen) and in-progress payment flows, with
graceful degradation when Redis is unreachable.
"""

import logging
import json
import threading
from typing import Any, Optional, Dict
from datetime import datetime, date
from decimal import Decimal

import redis
from redis.exceptions import RedisError, ConnectionError, TimeoutError
from flask import Flask, current_app

logger = logging.getLogger(__name__)


class KeyValueStore:
    """
    Redis-backed per-user key-value store.

    Keys pattern: {prefix}:user:{user_id}:{key}
    """

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._enabled: bool = False
        self._prefix: str = ""
        self._default_ttl: int = 0

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Initialize Redis client from Flask app config."""
        self._enabled = app.config.get('KV_ENABLED', True)
        self._prefix = app.config.get('KV_KEY_PREFIX', 'livenzo')
        self._default_ttl = app.config.get('KV_DEFAULT_TTL', 30 * 24 * 3600)
        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')

        if not self._enabled:
            logger.info("[KV] Key-value store is DISABLED via config")
            return

        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                socket_keepalive=True,
                max_connections=50,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[KV] Redis connected: {redis_url}")
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning(f"[KV] Redis connection failed: {e}. Store DISABLED.")
            self._enabled = False
            self.client = None

    def is_available(self) -> bool:
        if not self._enabled or not self.client:
            return False
        try:
            self.client.ping()
            return True
        except (ConnectionError, RedisError):
            return False

    def _build_key(self, user_id: int, key: str) -> str:
        return f"{self._prefix}:user:{user_id}:{key}"

    def _serialize(self, value: Any) -> str:
        """Serialize to JSON, keeping Decimals exact."""
        def default_handler(obj: Any) -> Any:
            if isinstance(obj, (datetime, date)):
                return obj.isoformat()
            elif isinstance(obj, Decimal):
                return {"__decimal__": str(obj)}
            raise TypeError(f"Object of type {type(obj)} is not JSON serializable")
        return json.dumps(value, default=default_handler)

    def _deserialize(self, value: str) -> Any:
        def object_hook(dct: Dict[str, Any]) -> Any:
            if "__decimal__" in dct:
                return Decimal(dct["__decimal__"])
            return dct
        return json.loads(value, object_hook=object_hook)

    def get(self, user_id: int, key: str) -> Optional[Any]:
        """Get a value, or None when missing or the store is down."""
        if not self.is_available():
            return None
        try:
            value = self.client.get(self._build_key(user_id, key))
            if value is None:
                return None
            return self._deserialize(value)
        except (RedisError, json.JSONDecodeError) as e:
            logger.warning(f"[KV] Get error: {e}")
            return None

    def set(self, user_id: int, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a value. Returns False if it could not be written."""
        if not self.is_available():
            return False
        try:
            serialized = self._serialize(value)
            if ttl is None:
                ttl = self._default_ttl or current_app.config.get('KV_DEFAULT_TTL', 30 * 24 * 3600)
            self.client.setex(self._build_key(user_id, key), ttl, serialized)
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[KV] Set error: {e}")
            return False

    def add(self, user_id: int, key: str, value: Any, ttl: Optional[int] = None) -> Optional[bool]:
        """
        Store a value only if the key is not set yet (SET NX).

        Returns:
            True if stored, False if the key already existed, None if the store is down
        """
        if not self.is_available():
            return None
        try:
            if ttl is None:
                ttl = self._default_ttl or current_app.config.get('KV_DEFAULT_TTL', 30 * 24 * 3600)
            stored = self.client.set(self._build_key(user_id, key), self._serialize(value), nx=True, ex=ttl)
            return bool(stored)
        except (RedisError, TypeError) as e:
            logger.warning(f"[KV] Add error: {e}")
            return None

    def delete(self, user_id: int, key: str) -> bool:
        if not self.is_available():
            return False
        try:
            self.client.delete(self._build_key(user_id, key))
            return True
        except RedisError as e:
            logger.warning(f"[KV] Delete error: {e}")
            return False


class MemoryKeyValueStore:
    """
    In-process store with the same interface, used for tests and local
    development without Redis. Not shared between worker processes.
    """

    def __init__(self):
        self.data: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._codec = KeyValueStore()

    def is_available(self) -> bool:
        return True

    def get(self, user_id: int, key: str) -> Optional[Any]:
        raw = self.data.get(f"{user_id}:{key}")
        return self._codec._deserialize(raw) if raw is not None else None

    def set(self, user_id: int, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        self.data[f"{user_id}:{key}"] = self._codec._serialize(value)
        return True

    def add(self, user_id: int, key: str, value: Any, ttl: Optional[int] = None) -> Optional[bool]:
        with self._lock:
            full_key = f"{user_id}:{key}"
            if full_key in self.data:
                return False
            self.data[full_key] = self._codec._serialize(value)
            return True

    def delete(self, user_id: int, key: str) -> bool:
        self.data.pop(f"{user_id}:{key}", None)
        return True


def init_kv_store(app: Flask) -> None:
    """Register the store on the app (Redis, or memory when KV_BACKEND=memory)."""
    if app.config.get('KV_BACKEND') == 'memory':
        store = MemoryKeyValueStore()
        logger.info("[KV] Using in-memory key-value store")
    else:
        store = KeyValueStore(app)
    if not hasattr(app, 'extensions'):
        app.extensions = {}
    app.extensions['kv_store'] = store


def get_kv_store():
    """Key-value store of the current app."""
    store = current_app.extensions.get('kv_store')
    if store is None:
        raise RuntimeError("Key-value store not initialized.")
    return store
