"""Durable anonymous visitor identity."""

import logging
from typing import Callable, Optional

from chat_widget.schemas.session_schema import VisitorIdentity
from chat_widget.storage.backends import KeyValueStorage, StorageError
from chat_widget.utils import generate_visitor_id

logger = logging.getLogger(__name__)

USER_ID_KEY = "chat-widget-user-id"


class IdentityStore:
    """Owns the visitor id: created once, then read back on every load."""

    def __init__(
        self,
        storage: KeyValueStorage,
        id_factory: Callable[[], str] = generate_visitor_id,
    ) -> None:
        self._storage = storage
        self._id_factory = id_factory
        self._cached: Optional[VisitorIdentity] = None

    def get_or_create_visitor_id(self) -> VisitorIdentity:
        """Return the persisted visitor id, generating and storing one if absent.

        When storage is unavailable the id lives in memory only, for the
        lifetime of this store.
        """
        if self._cached is not None:
            return self._cached

        try:
            stored = self._storage.get(USER_ID_KEY)
        except StorageError as exc:
            logger.warning("Visitor id could not be read, using in-memory id: %s", exc)
            self._cached = VisitorIdentity(id=self._id_factory())
            return self._cached

        if stored:
            self._cached = VisitorIdentity(id=stored)
            return self._cached

        identity = VisitorIdentity(id=self._id_factory())
        try:
            self._storage.set(USER_ID_KEY, identity.id)
            logger.info("New visitor id created: %s", identity.id)
        except StorageError as exc:
            logger.warning("Visitor id not persisted, using in-memory id: %s", exc)
        self._cached = identity
        return identity
