from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, Literal, Union

from geo.index import build_region_index
from layers.types import (
    BoundaryRecord,
    FeatureRef,
    LayerDescriptor,
    Record,
    StationRecord,
)

PickKind = Literal["hover", "click"]


@dataclass(frozen=True)
class PickEvent:
    """
    Raw pointer interaction emitted by the map canvas.

    `index` is the position of the picked feature in the layer's record array, or
    None when the pointer landed on the background.
    """

    layer_id: str | None
    index: int | None
    kind: PickKind = "click"
    coordinate: tuple[float, float] | None = None  # (lon, lat)


@dataclass(frozen=True)
class StationRef:
    layer_id: str
    index: int
    record: StationRecord


@dataclass(frozen=True)
class RegionRef:
    layer_id: str
    index: int
    record: BoundaryRecord


DomainReference = Union[StationRef, RegionRef]


@dataclass(frozen=True)
class HoverEvent:
    reference: DomainReference | None


@dataclass(frozen=True)
class SelectEvent:
    reference: DomainReference

    @property
    def selection(self) -> FeatureRef:
        return FeatureRef(layer_id=self.reference.layer_id, index=self.reference.index)


@dataclass(frozen=True)
class ClearSelection:
    pass


RoutedEvent = Union[HoverEvent, SelectEvent, ClearSelection]


def _reference(layer_id: str, index: int, record: Record) -> DomainReference:
    if isinstance(record, StationRecord):
        return StationRef(layer_id=layer_id, index=index, record=record)
    return RegionRef(layer_id=layer_id, index=index, record=record)


class InteractionRouter:
    """
    Maps (layer, feature index) picks back to domain records.

    `bind()` must be called with the descriptors currently on screen; the router
    keeps the exact record arrays those descriptors were built from.
    """

    def __init__(self) -> None:
        self._records: dict[str, tuple[Record, ...]] = {}
        self._origins: dict[str, FeatureRef] = {}
        self._boundaries: tuple[BoundaryRecord, ...] = ()

    def bind(self, layers: Iterable[LayerDescriptor]) -> None:
        records: dict[str, tuple[Record, ...]] = {}
        origins: dict[str, FeatureRef] = {}
        boundaries: tuple[BoundaryRecord, ...] = ()
        for layer in layers:
            records[layer.id] = tuple(layer.records)
            if layer.origin is not None:
                origins[layer.id] = layer.origin
            if layer.id == "boundaries":
                boundaries = tuple(
                    r for r in layer.records if isinstance(r, BoundaryRecord)
                )
        # Replace wholesale; never merge with a previous render.
        self._records = records
        self._origins = origins
        self._boundaries = boundaries

    def resolve(self, event: PickEvent) -> DomainReference | None:
        if event.layer_id is None or event.index is None:
            return None
        if isinstance(event.index, bool):
            return None
        records = self._records.get(event.layer_id)
        if records is None or not 0 <= event.index < len(records):
            return None

        origin = self._origins.get(event.layer_id)
        if origin is not None:
            # Overlay picks resolve to the record's position in its source layer.
            return _reference(origin.layer_id, origin.index, records[event.index])
        return _reference(event.layer_id, event.index, records[event.index])

    def region_at(self, lon: float, lat: float) -> RegionRef | None:
        if not self._boundaries:
            return None
        i = build_region_index(self._boundaries).region_at(lon, lat)
        if i is None:
            return None
        return RegionRef(layer_id="boundaries", index=i, record=self._boundaries[i])

    def dispatch(self, event: PickEvent) -> RoutedEvent:
        ref = self.resolve(event)
        if ref is None and event.index is None and event.coordinate is not None:
            ref = self.region_at(*event.coordinate)
        if event.kind == "hover":
            return HoverEvent(reference=ref)
        if ref is None:
            return ClearSelection()
        return SelectEvent(reference=ref)


class RouterRegistry:
    """
    One `InteractionRouter` per client session.

    Each client's picks resolve against the layers of that client's last render,
    never another client's. Least recently used sessions are dropped past
    `max_sessions`.
    """

    def __init__(self, max_sessions: int = 256) -> None:
        self._max = max_sessions
        self._routers: OrderedDict[str, InteractionRouter] = OrderedDict()

    def __len__(self) -> int:
        return len(self._routers)

    def for_session(self, session: str) -> InteractionRouter:
        router = self._routers.get(session)
        if router is None:
            router = self._routers[session] = InteractionRouter()
            while len(self._routers) > self._max:
                self._routers.popitem(last=False)
        else:
            self._routers.move_to_end(session)
        return router
