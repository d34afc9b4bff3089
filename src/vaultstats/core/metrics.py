"""
Metrics records and the aggregate accumulator.

A VaultMetrics record is the additive measurement of one document. The
AggregateMetrics object keeps the running sum over every known document and
notifies subscribers after each change.
"""

import logging
import weakref
from collections.abc import Callable
from dataclasses import asdict, dataclass, fields
from typing import Any

logger = logging.getLogger(__name__)

# Reported as the quality of a vault without notes instead of 0/0.
QUALITY_EPSILON = 0.00001

# Fields summed component-wise; quality is derived, never summed.
ADDITIVE_FIELDS = ("files", "notes", "attachments", "size", "links", "words", "tags")


def derive_quality(links: float, notes: float) -> float:
    """Links per note, or the epsilon default when there are no notes."""
    if notes == 0:
        return QUALITY_EPSILON
    return links / notes or QUALITY_EPSILON


@dataclass
class VaultMetrics:
    """
    Measurement of a single document, or a sum of measurements.

    Attributes:
        files: Number of files (1 for a single document)
        notes: Number of notes
        attachments: Number of attachments
        size: Size in bytes
        links: Number of outgoing links
        words: Number of words
        quality: Links per note
        tags: Number of tags
    """

    files: int = 0
    notes: int = 0
    attachments: int = 0
    size: int = 0
    links: int = 0
    words: int = 0
    quality: float = 0.0
    tags: int = 0

    def __add__(self, other: "VaultMetrics") -> "VaultMetrics":
        values = {name: getattr(self, name) + getattr(other, name) for name in ADDITIVE_FIELDS}
        return VaultMetrics(**values, quality=derive_quality(values["links"], values["notes"]))

    def __sub__(self, other: "VaultMetrics") -> "VaultMetrics":
        values = {name: getattr(self, name) - getattr(other, name) for name in ADDITIVE_FIELDS}
        return VaultMetrics(**values, quality=derive_quality(values["links"], values["notes"]))

    def to_dict(self) -> dict[str, Any]:
        """Serialize the record to a dictionary for JSON reporting."""
        return asdict(self)


MetricsListener = Callable[["AggregateMetrics"], Any]


class AggregateMetrics:
    """
    Running totals across all documents in the vault.

    This is the single owner of collection-wide state; other components only
    submit deltas through increment() and decrement(). Subscribers are called
    with the aggregate after every change. Bound-method subscribers are held
    weakly, so subscribing never keeps the subscriber alive.
    """

    def __init__(self) -> None:
        self._totals = VaultMetrics(quality=QUALITY_EPSILON)
        self._listeners: list[Callable[[], MetricsListener | None]] = []

    def __getattr__(self, name: str) -> Any:
        if name in ADDITIVE_FIELDS or name == "quality":
            return getattr(self._totals, name)
        raise AttributeError(name)

    def snapshot(self) -> VaultMetrics:
        """Return a detached copy of the current totals."""
        return VaultMetrics(**asdict(self._totals))

    def reset(self) -> None:
        """Zero every field and restore the epsilon quality."""
        self._totals = VaultMetrics(quality=QUALITY_EPSILON)
        self._notify()

    def increment(self, metrics: VaultMetrics | None) -> None:
        """Add a record to the totals."""
        self._apply(metrics, 1)

    def decrement(self, metrics: VaultMetrics | None) -> None:
        """Subtract a record from the totals."""
        self._apply(metrics, -1)

    def _apply(self, metrics: VaultMetrics | None, sign: int) -> None:
        if metrics is not None:
            for name in ADDITIVE_FIELDS:
                current = getattr(self._totals, name)
                setattr(self._totals, name, current + sign * getattr(metrics, name))
        self._totals.quality = derive_quality(self._totals.links, self._totals.notes)
        self._notify()

    def subscribe(self, listener: MetricsListener) -> Callable[[], None]:
        """
        Register a callback for the "updated" notification.

        Args:
            listener: Callable invoked with this aggregate after every change

        Returns:
            A function that removes the subscription when called
        """
        if hasattr(listener, "__self__") and hasattr(listener, "__func__"):
            ref: Callable[[], MetricsListener | None] = weakref.WeakMethod(listener)  # type: ignore[arg-type]
        else:
            ref = lambda: listener  # noqa: E731
        self._listeners.append(ref)

        def unsubscribe() -> None:
            if ref in self._listeners:
                self._listeners.remove(ref)

        return unsubscribe

    def unsubscribe(self, listener: MetricsListener) -> None:
        """Remove every subscription of *listener*."""
        self._listeners = [ref for ref in self._listeners if ref() not in (None, listener)]

    def subscriber_count(self) -> int:
        return sum(1 for ref in self._listeners if ref() is not None)

    def _notify(self) -> None:
        live: list[Callable[[], MetricsListener | None]] = []
        for ref in list(self._listeners):
            listener = ref()
            if listener is None:
                continue
            live.append(ref)
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Error in metrics listener: {e}", exc_info=True)
        if len(live) != len(self._listeners):
            self._listeners = [ref for ref in self._listeners if ref() is not None]

    def __repr__(self) -> str:
        fields_repr = ", ".join(f"{f.name}={getattr(self._totals, f.name)!r}" for f in fields(VaultMetrics))
        return f"AggregateMetrics({fields_repr})"
