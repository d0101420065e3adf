"""Ordered collection of screenshots attached to the current draft."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Iterable, Iterator, List, Optional

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ImageBlob:
    """Raw file contents handed to the image set."""

    name: str
    payload: bytes
    mime_type: str

    @property
    def is_image(self) -> bool:
        return (self.mime_type or "").lower().startswith("image/")


@dataclass(slots=True, frozen=True)
class ImageItem:
    """One attached screenshot. ``id`` never changes while the item lives."""

    id: int
    display_name: str
    payload: bytes
    mime_type: str


BlobReader = Callable[[Any], Awaitable[ImageBlob]]


class AttachBatch:
    """Slot arena for reads that may finish out of order.

    One slot is allocated per input file up front and completed reads are
    stored by index. The image set appends a batch only when every slot is
    resolved and every earlier batch has already been appended, so the final
    order always follows the order of the attach calls.
    """

    def __init__(self, target: "ImageSet", count: int) -> None:
        self._target = target
        self._slots: List[Optional[ImageBlob]] = [None] * count
        self._pending = set(range(count))
        self.items: List[ImageItem] = []
        self.applied = False
        self.abandoned = False

    @property
    def done(self) -> bool:
        return not self._pending

    def blobs(self) -> List[ImageBlob]:
        return [blob for blob in self._slots if blob is not None]

    def fill(self, index: int, blob: ImageBlob) -> List[ImageItem]:
        """Record the read for slot ``index``; returns this batch's items once appended."""
        if not self._resolve(index):
            return []
        self._slots[index] = blob
        return self._target._flush_batches(self)

    def skip(self, index: int) -> List[ImageItem]:
        """Mark slot ``index`` as failed so the rest of the batch can still land."""
        if not self._resolve(index):
            return []
        return self._target._flush_batches(self)

    def _resolve(self, index: int) -> bool:
        if self.abandoned:
            return False
        if self.applied:
            raise RuntimeError("attach batch already applied")
        if index not in self._pending:
            raise ValueError(f"slot {index} already resolved or out of range")
        self._pending.discard(index)
        return True


class ImageSet:
    """Images in submission order with stable per-item identity."""

    def __init__(self) -> None:
        self._items: List[ImageItem] = []
        self._ids = itertools.count(1)
        self._batches: Deque[AttachBatch] = deque()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ImageItem]:
        return iter(list(self._items))

    def __bool__(self) -> bool:
        return bool(self._items)

    def items(self) -> List[ImageItem]:
        """Return a copy of the current ordering."""
        return list(self._items)

    def ids(self) -> List[int]:
        return [item.id for item in self._items]

    def get(self, item_id: int) -> Optional[ImageItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def index_of(self, item_id: int) -> int:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index
        return -1

    @property
    def pending_batches(self) -> int:
        return len(self._batches)

    def attach(self, blobs: Iterable[ImageBlob]) -> List[ImageItem]:
        """Append one item per image blob in input order; non-images are dropped.

        Synchronous blobs queue behind any batch that is still reading so
        they cannot overtake an earlier attach call.
        """
        batch = self.begin_attach(0)
        batch._slots = list(blobs)
        return self._flush_batches(batch)

    def begin_attach(self, count: int) -> AttachBatch:
        """Allocate an ordered batch for ``count`` reads that complete asynchronously."""
        batch = AttachBatch(self, count)
        self._batches.append(batch)
        return batch

    async def attach_async(self, handles: Iterable[Any], reader: BlobReader) -> List[ImageItem]:
        """Read every handle concurrently and append the results in input order."""
        pending = list(handles)
        batch = self.begin_attach(len(pending))

        async def _read(index: int, handle: Any) -> None:
            try:
                blob = await reader(handle)
            except (OSError, ValueError) as exc:
                logger.warning("Failed to read attachment #%d: %s", index, exc)
                batch.skip(index)
                return
            except BaseException:
                # an unresolved slot would block every later batch
                batch.skip(index)
                raise
            batch.fill(index, blob)

        if not pending:
            self._flush_batches(batch)
        try:
            await asyncio.gather(*(_read(index, handle) for index, handle in enumerate(pending)))
        except asyncio.CancelledError:
            # reads cancelled before they started never reach their own handler
            for index in sorted(batch._pending):
                batch.skip(index)
            raise
        return batch.items

    def _flush_batches(self, batch: AttachBatch) -> List[ImageItem]:
        while self._batches and self._batches[0].done:
            head = self._batches.popleft()
            head.items = self._append(head.blobs())
            head.applied = True
        return batch.items

    def _append(self, blobs: Iterable[ImageBlob]) -> List[ImageItem]:
        added: List[ImageItem] = []
        for blob in blobs:
            if not blob.is_image:
                logger.info("Skipping non-image file %s (%s)", blob.name, blob.mime_type)
                continue
            item = ImageItem(
                id=next(self._ids),
                display_name=blob.name,
                payload=blob.payload,
                mime_type=blob.mime_type,
            )
            self._items.append(item)
            added.append(item)
        return added

    def remove(self, item_id: int) -> bool:
        """Drop the item with ``item_id``; unknown ids are ignored."""
        index = self.index_of(item_id)
        if index < 0:
            return False
        del self._items[index]
        return True

    def reorder(self, item_id: int, target_index: int) -> bool:
        """Move an item to ``target_index`` (clamped), shifting the others."""
        index = self.index_of(item_id)
        if index < 0:
            return False
        item = self._items.pop(index)
        target = max(0, min(int(target_index), len(self._items)))
        self._items.insert(target, item)
        return True

    def clear(self) -> None:
        """Empty the set and abandon any reads still in progress."""
        self._items.clear()
        for batch in self._batches:
            batch.abandoned = True
        self._batches.clear()
