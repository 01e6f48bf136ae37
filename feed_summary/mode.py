"""Switches summary support on and off for a set of surfaces."""
from __future__ import annotations

import logging
from typing import Dict, Optional

from .summaries.service import SummaryStateMachine
from .surfaces import EntryDetailView, EntryListView, Surface, SurfaceRegistry
from .sync import DetailSynchronizer, InsertStrategy, ListSynchronizer, Notifier, insert_at_anchor


class SummaryMode:
    """Attaches synchronizers to every open surface while active.

    Surfaces opened later are picked up through the registry's open hook.
    Deactivating detaches everything and removes displayed summary blocks;
    cached summaries in the store are left alone.
    """

    def __init__(
        self,
        machine: SummaryStateMachine,
        registry: SurfaceRegistry,
        *,
        notify: Optional[Notifier] = None,
        insert: InsertStrategy = insert_at_anchor,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.machine = machine
        self.registry = registry
        self.notify = notify
        self.insert = insert
        self._logger = logger or logging.getLogger(__name__)
        self._list_syncs: Dict[int, ListSynchronizer] = {}
        self._detail_syncs: Dict[int, DetailSynchronizer] = {}
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def activate(self) -> None:
        if self._active:
            return
        self._active = True
        for surface in self.registry.surfaces:
            self._attach(surface)
        self.registry.add_open_hook(self._attach)
        self.registry.add_close_hook(self._detach)
        self._logger.debug("summary mode enabled for %d surfaces", len(self.registry.surfaces))

    def deactivate(self) -> None:
        if not self._active:
            return
        self._active = False
        self.registry.remove_open_hook(self._attach)
        self.registry.remove_close_hook(self._detach)
        for sync in list(self._list_syncs.values()):
            sync.detach()
        for sync in list(self._detail_syncs.values()):
            sync.detach()
        self._list_syncs.clear()
        self._detail_syncs.clear()
        self._logger.debug("summary mode disabled")

    def toggle(self) -> bool:
        if self._active:
            self.deactivate()
        else:
            self.activate()
        return self._active

    def list_synchronizer(self, surface: EntryListView) -> Optional[ListSynchronizer]:
        return self._list_syncs.get(id(surface))

    def detail_synchronizer(self, surface: EntryDetailView) -> Optional[DetailSynchronizer]:
        return self._detail_syncs.get(id(surface))

    def _attach(self, surface: Surface) -> None:
        key = id(surface)
        if isinstance(surface, EntryListView):
            if key not in self._list_syncs:
                sync = ListSynchronizer(self.machine, surface, notify=self.notify)
                sync.attach()
                self._list_syncs[key] = sync
        elif key not in self._detail_syncs:
            detail = DetailSynchronizer(self.machine, surface, notify=self.notify, insert=self.insert)
            self._detail_syncs[key] = detail
            detail.attach()

    def _detach(self, surface: Surface) -> None:
        key = id(surface)
        sync = self._list_syncs.pop(key, None) or self._detail_syncs.pop(key, None)
        if sync is not None:
            sync.detach()
