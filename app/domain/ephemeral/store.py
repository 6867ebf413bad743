"""
Ephemeral key/value store with per-record TTL

Records live in a single table and are namespaced by category. Reads always
filter out expired records, so physical reaping is only housekeeping.
"""

import logging
from datetime import timedelta
from typing import Any, Callable, Iterable, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import EPHEMERAL_DEFAULT_TTL_MINUTES
from ...models import EphemeralRecord, generate_record_key
from ...shared.exceptions import ConflictError, ValidationError
from ...utils.clock import utcnow
from .repository import EphemeralRepository
from .schemas import EphemeralCategory, Namespace

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(minutes=EPHEMERAL_DEFAULT_TTL_MINUTES)

CategoryLike = Union[EphemeralCategory, str]


def default_namespaces() -> dict[EphemeralCategory, Namespace]:
    """Untyped namespaces for every category, all using the default TTL"""
    return {category: Namespace(category=category, default_ttl=DEFAULT_TTL) for category in EphemeralCategory}


class EphemeralStore:
    """Key/value store over the ephemeral_records table"""

    def __init__(
        self,
        db: Session,
        clock: Callable = utcnow,
        namespaces: Optional[Iterable[Namespace]] = None,
    ):
        self.db = db
        self.repo = EphemeralRepository()
        self._now = clock
        self._namespaces = default_namespaces()
        for namespace in namespaces or []:
            self.register(namespace)

    def register(self, namespace: Namespace) -> "NamespaceView":
        """Register (or replace) the typed namespace for a category"""
        self._namespaces[namespace.category] = namespace
        return NamespaceView(self, namespace)

    def namespace(self, category: CategoryLike) -> "NamespaceView":
        return NamespaceView(self, self._namespace_for(category))

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def put(
        self,
        key: Optional[str],
        owner: Optional[str],
        category: CategoryLike,
        payload: dict,
        ttl: Optional[timedelta] = None,
        scoped: bool = False,
    ) -> str:
        """
        Create or overwrite a record; returns its key.

        A scoped put never overwrites a live record of another category.
        """
        namespace = self._namespace_for(category)
        data = self._coerce(namespace, payload)
        now = self._now()
        if key and scoped:
            existing = self.repo.get_live(self.db, key, now)
            if existing is not None and existing.category != namespace.category.value:
                logger.warning(
                    f"🚫 Refused {namespace.category.value} write over {existing.category} record {key}"
                )
                raise ConflictError("Key is in use by another category", key=key)
        key = key or generate_record_key()
        expires_at = now + (ttl if ttl is not None else namespace.default_ttl)

        try:
            self.repo.upsert(self.db, key, owner, namespace.category.value, data, expires_at, now)
        except IntegrityError:
            # A concurrent writer inserted the same key first; overwrite it
            self.db.rollback()
            logger.debug(f"🔁 Concurrent insert for ephemeral key {key}, retrying as update")
            self.repo.upsert(self.db, key, owner, namespace.category.value, data, expires_at, now)

        logger.debug(f"✅ Ephemeral PUT: {namespace.category.value}:{key} (expires {expires_at.isoformat()})")
        return key

    def get(
        self, key: str, refresh: bool = True, category: Optional[CategoryLike] = None
    ) -> Optional[dict]:
        """Payload of a live record, or None when missing or expired"""
        record = self.get_record(key, refresh=refresh, category=category)
        if record is None:
            return None
        return dict(record.payload or {})

    def get_record(
        self, key: str, refresh: bool = True, category: Optional[CategoryLike] = None
    ) -> Optional[EphemeralRecord]:
        now = self._now()
        record = self.repo.get_live(self.db, key, now, self._category_value(category))
        if record is None:
            logger.debug(f"❌ Ephemeral MISS: {key}")
            return None

        if refresh:
            namespace = self._namespace_for(record.category)
            record = self.repo.touch(self.db, record, now + namespace.default_ttl, now)
        return record

    def merge(
        self,
        key: str,
        partial_payload: dict,
        ttl: Optional[timedelta] = None,
        category: Optional[CategoryLike] = None,
    ) -> Optional[dict]:
        """Shallow-merge into an existing live record; None when it is absent"""
        record = self.merge_record(key, partial_payload, ttl=ttl, category=category)
        if record is None:
            return None
        return dict(record.payload or {})

    def merge_record(
        self,
        key: str,
        partial_payload: dict,
        ttl: Optional[timedelta] = None,
        category: Optional[CategoryLike] = None,
    ) -> Optional[EphemeralRecord]:
        now = self._now()
        record = self.repo.get_live(
            self.db, key, now, self._category_value(category), for_update=True
        )
        if record is None:
            return None

        namespace = self._namespace_for(record.category)
        partial = self._coerce(namespace, partial_payload)
        merged = {**(record.payload or {}), **partial}
        expires_at = now + (ttl if ttl is not None else namespace.default_ttl)
        return self.repo.touch(self.db, record, expires_at, now, payload=merged)

    def delete(self, key: str, category: Optional[CategoryLike] = None) -> bool:
        """True only if a live record existed and was removed"""
        record = self.repo.get_by_key(self.db, key)
        if record is None:
            return False

        category_value = self._category_value(category)
        if category_value and record.category != category_value:
            return False

        was_live = record.expires_at > self._now()
        self.repo.delete(self.db, record)
        logger.debug(f"🗑️ Ephemeral DELETE: {key} (live={was_live})")
        return was_live

    def list_by_owner(
        self, owner: str, category: Optional[CategoryLike] = None
    ) -> list[EphemeralRecord]:
        return self.repo.list_live_by_owner(
            self.db, owner, self._now(), self._category_value(category)
        )

    def find_latest(self, owner: str, category: CategoryLike) -> Optional[EphemeralRecord]:
        """Most recently accessed live record of a category for an owner"""
        return self.repo.find_latest(self.db, owner, self._category_value(category), self._now())

    def reap(self) -> int:
        """Best-effort removal of expired records; safe to run concurrently"""
        deleted = self.repo.delete_expired(self.db, self._now())
        if deleted:
            logger.info(f"🧹 Reaped {deleted} expired ephemeral record(s)")
        return deleted

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _namespace_for(self, category: CategoryLike) -> Namespace:
        try:
            return self._namespaces[EphemeralCategory(category)]
        except ValueError:
            raise ValidationError(f"Unknown ephemeral category: {category}", field="category")

    def _category_value(self, category: Optional[CategoryLike]) -> Optional[str]:
        if category is None:
            return None
        return self._namespace_for(category).category.value

    @staticmethod
    def _coerce(namespace: Namespace, payload: Any) -> dict:
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValidationError("Payload must be an object", field="data")
        if namespace.payload_model is None:
            return dict(payload)
        try:
            model = namespace.payload_model.model_validate(payload)
        except PydanticValidationError as e:
            errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            raise ValidationError(f"Invalid {namespace.category.value} payload", errors=errors)
        return model.model_dump(mode="json", exclude_unset=True)


class NamespaceView:
    """Store operations scoped to one category"""

    def __init__(self, store: EphemeralStore, namespace: Namespace):
        self.store = store
        self.namespace = namespace

    @property
    def category(self) -> EphemeralCategory:
        return self.namespace.category

    def put(self, key: Optional[str], owner: Optional[str], payload: dict, ttl: Optional[timedelta] = None) -> str:
        return self.store.put(key, owner, self.category, payload, ttl, scoped=True)

    def get(self, key: str, refresh: bool = True) -> Optional[dict]:
        return self.store.get(key, refresh=refresh, category=self.category)

    def get_record(self, key: str, refresh: bool = True) -> Optional[EphemeralRecord]:
        return self.store.get_record(key, refresh=refresh, category=self.category)

    def merge(self, key: str, partial_payload: dict, ttl: Optional[timedelta] = None) -> Optional[dict]:
        return self.store.merge(key, partial_payload, ttl=ttl, category=self.category)

    def merge_record(
        self, key: str, partial_payload: dict, ttl: Optional[timedelta] = None
    ) -> Optional[EphemeralRecord]:
        return self.store.merge_record(key, partial_payload, ttl=ttl, category=self.category)

    def delete(self, key: str) -> bool:
        return self.store.delete(key, category=self.category)

    def list_by_owner(self, owner: str) -> list[EphemeralRecord]:
        return self.store.list_by_owner(owner, category=self.category)

    def find_latest(self, owner: str) -> Optional[EphemeralRecord]:
        return self.store.find_latest(owner, self.category)
