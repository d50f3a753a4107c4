"""Run-scoped read-through access to the product catalog.

A :class:`CatalogLookup` lives for a single detection or simulation run.
Entries are memoised for that run only, so two lookups of the same id within
one run agree, and the next run sees fresh catalog data.
"""

from __future__ import annotations

import logging
from typing import Sequence, TypeVar, cast

from application.services.ports import CatalogSource
from domain.exceptions import CatalogEntryNotFoundError
from domain.models.catalog import AddOn, CatalogEntry, CatalogKind, Plan, PremiumSms, Vas

logger = logging.getLogger(__name__)

_EntryT = TypeVar("_EntryT", Plan, AddOn, Vas, PremiumSms)

_EXPECTED_TYPE: dict[CatalogKind, type] = {
    CatalogKind.PLAN: Plan,
    CatalogKind.ADD_ON: AddOn,
    CatalogKind.VAS: Vas,
    CatalogKind.PREMIUM_SMS: PremiumSms,
}


class CatalogLookup:
    def __init__(self, source: CatalogSource) -> None:
        self._source = source
        self._entries: dict[tuple[CatalogKind, str], CatalogEntry] = {}
        self._listings: dict[CatalogKind, list[CatalogEntry]] = {}

    def resolve(self, kind: CatalogKind, entry_id: str) -> CatalogEntry:
        """Return the entry or raise :class:`CatalogEntryNotFoundError`."""
        key = (kind, entry_id)
        if key not in self._entries:
            entry = self._source.resolve_catalog_entry(kind, entry_id)
            if entry is None or not isinstance(entry, _EXPECTED_TYPE[kind]):
                raise CatalogEntryNotFoundError(kind.value, entry_id)
            self._entries[key] = entry
        return self._entries[key]

    def plan(self, plan_id: str) -> Plan:
        return self._typed(CatalogKind.PLAN, plan_id, Plan)

    def addon(self, addon_id: str) -> AddOn:
        return self._typed(CatalogKind.ADD_ON, addon_id, AddOn)

    def vas(self, vas_id: str) -> Vas:
        return self._typed(CatalogKind.VAS, vas_id, Vas)

    def addons(self, addon_ids: Sequence[str]) -> tuple[AddOn, ...]:
        return tuple(self.addon(addon_id) for addon_id in addon_ids)

    def services(self, vas_ids: Sequence[str]) -> tuple[Vas, ...]:
        return tuple(self.vas(vas_id) for vas_id in vas_ids)

    def listing(self, kind: CatalogKind) -> list[CatalogEntry]:
        if kind not in self._listings:
            entries = list(self._source.list_catalog_entries(kind))
            for entry in entries:
                self._entries.setdefault((kind, entry.id), entry)
            self._listings[kind] = entries
            logger.debug("Catalog listing for %s: %d entries", kind.value, len(entries))
        return self._listings[kind]

    def _typed(self, kind: CatalogKind, entry_id: str, expected: type[_EntryT]) -> _EntryT:
        entry = self.resolve(kind, entry_id)
        return cast(expected, entry)
