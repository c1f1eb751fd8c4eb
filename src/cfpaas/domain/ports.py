"""Contract through which drivers report state changes to their owner."""

from typing import Any, Optional, Protocol, runtime_checkable

from cfpaas.domain.lifecycle import Attribute


@runtime_checkable
class StateListener(Protocol):
    """Receives every attribute change made by a driver."""

    def on_state_changed(self, attribute: Attribute, value: Any) -> None:
        """Called after ``attribute`` took ``value`` (``None`` means cleared)."""


class NullStateListener:
    """Listener that discards notifications."""

    def on_state_changed(self, attribute: Attribute, value: Any) -> None:
        return None


class AttributeStore:
    """
    Local snapshot of published attributes.

    Values are kept so the driver can answer queries without a round-trip,
    and every change is forwarded to the listener. ``update`` applies a group
    of values together so a listener never observes half of a running set
    when one of them fails validation.
    """

    def __init__(self, listener: Optional[StateListener] = None) -> None:
        self._listener = listener or NullStateListener()
        self._values: dict[Attribute, Any] = {}

    def get(self, attribute: Attribute, default: Any = None) -> Any:
        return self._values.get(attribute, default)

    def set(self, attribute: Attribute, value: Any) -> None:
        self.update({attribute: value})

    def update(self, values: dict[Attribute, Any]) -> None:
        changed = {Attribute.from_value(k): v for k, v in values.items()}
        self._values.update(changed)
        for attribute, value in changed.items():
            self._listener.on_state_changed(attribute, value)

    def clear(self, *attributes: Attribute) -> None:
        self.update({attribute: None for attribute in attributes})

    def snapshot(self) -> dict[Attribute, Any]:
        return dict(self._values)
