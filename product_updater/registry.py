"""
Shared "pending updates" registry.

Every product on the host lives in one document with two disjoint
mappings keyed by ``file_path``: ``pending`` (a strictly newer release is
available) and ``up_to_date``. Transitions always remove a product from one
mapping before inserting it into the other, and run under the store's lock
for the registry key. Only this product's keys are ever written; a document
that cannot be read is left as it is.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from pydantic import ValidationError

from .models import (
    ApiResult,
    PendingUpdateSet,
    Product,
    RegistryEntry,
    RegistryState,
    UpdateDescriptor,
    UpdatesResponse,
)
from .store import KeyValueStore
from .version import compare_versions, is_version_newer

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_KEY = "update_products"


class UpdateRegistry:
    def __init__(self, store: KeyValueStore, key: str = DEFAULT_REGISTRY_KEY):
        self.store = store
        self.key = key

    def load(self) -> Optional[PendingUpdateSet]:
        """The persisted document, or None when it is absent or unreadable."""
        return self._parse(self.store.get(self.key))

    def snapshot(self) -> PendingUpdateSet:
        return self.load() or PendingUpdateSet()

    def state(self, product: Product) -> RegistryState:
        return self.snapshot().state_of(product.file_path)

    def entry(self, product: Product) -> Optional[RegistryEntry]:
        doc = self.snapshot()
        return doc.pending_entry(product.file_path) or doc.up_to_date_entry(product.file_path)

    def reconcile(self, product: Product, result: ApiResult[UpdatesResponse]) -> RegistryState:
        """
        Fold a fetched update descriptor into the registry.

        Errors and payloads without ``updates`` leave the registry untouched:
        "don't know" is not the same as "up to date".
        """
        if not result.ok or result.data is None or result.data.updates is None:
            logger.debug("No update answer for %s, registry unchanged", product.file_path)
            return self.state(product)

        descriptor = result.data.updates

        if is_version_newer(descriptor.new_version, product.version):
            with self._editing() as doc:
                if doc is None:
                    return RegistryState.NO_RECORD
                doc.up_to_date.pop(product.file_path, None)
                doc.pending[product.file_path] = self._pending_entry(product, descriptor).model_dump(mode="json")
                doc.checked[product.file_path] = product.version
            logger.info(
                "Update available for %s: %s -> %s",
                product.file_path, product.version, descriptor.new_version,
            )
            return RegistryState.PENDING

        with self._editing() as doc:
            if doc is None:
                return RegistryState.NO_RECORD
            self._move_to_up_to_date(doc, product)
            doc.checked[product.file_path] = product.version
        return RegistryState.UP_TO_DATE

    def mark_up_to_date(self, product: Product):
        """
        Unconditionally move the product to ``up_to_date``, creating the
        registry document if the host has none yet.
        """
        with self._editing() as doc:
            if doc is not None:
                self._move_to_up_to_date(doc, product)

    def refresh(self, product: Optional[Product] = None):
        """
        Rewrite the registry unchanged so the host re-reads it.
        """
        with self.store.lock(self.key):
            raw = self.store.get(self.key)
            if raw is None:
                return
            self.store.set(self.key, raw)

        logger.debug("Update registry refreshed%s", f" for {product.file_path}" if product else "")

    def _parse(self, raw: Any) -> Optional[PendingUpdateSet]:
        if raw is None:
            return None
        if not isinstance(raw, dict):
            logger.warning("Update registry %s is not a mapping", self.key)
            return None

        try:
            return PendingUpdateSet.model_validate(raw)
        except ValidationError:
            logger.warning("Update registry %s is malformed", self.key)
            return None

    @contextmanager
    def _editing(self) -> Iterator[Optional[PendingUpdateSet]]:
        """
        Read-modify-write under the registry lock.

        Yields None, and writes nothing, when a stored document cannot be
        read; the host's data is never replaced by an empty document.
        """
        with self.store.lock(self.key):
            raw = self.store.get(self.key)
            doc = PendingUpdateSet() if raw is None else self._parse(raw)

            if doc is None:
                logger.warning("Leaving unreadable update registry %s untouched", self.key)
                yield None
                return

            yield doc
            self.store.set(self.key, doc.model_dump(mode="json"))

    @staticmethod
    def _pending_entry(product: Product, descriptor: UpdateDescriptor) -> RegistryEntry:
        data = descriptor.model_dump(mode="json", exclude_none=True)
        data["slug"] = product.slug
        data["file_path"] = product.file_path
        if not data.get("package"):
            data["package"] = descriptor.download_link or ""
        data.setdefault("url", "")
        return RegistryEntry.model_validate(data)

    @staticmethod
    def _move_to_up_to_date(doc: PendingUpdateSet, product: Product):
        stale = doc.pending.pop(product.file_path, None)
        if stale is not None:
            # Moved as-is, stored fields are kept
            doc.up_to_date[product.file_path] = stale
            logger.info("%s is up to date (pending entry moved)", product.file_path)
            return

        current = doc.up_to_date_entry(product.file_path)
        if current is not None and compare_versions(current.new_version, product.version) >= 0:
            return

        doc.up_to_date[product.file_path] = RegistryEntry(
            slug=product.slug,
            file_path=product.file_path,
            new_version=product.version,
            url="",
            package="",
        ).model_dump(mode="json")
