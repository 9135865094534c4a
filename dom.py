import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from bs4 import BeautifulSoup, Tag

MENU_HIDDEN_CLASS = "menu-hidden"
FEED_CONTAINER = ".feed"
ENTRY_SELECTOR = ".feed .entry"

Target = Union[str, Tag]


def _classes(element: Tag) -> list[str]:
    value = element.get("class") or []
    if isinstance(value, str):
        return value.split()
    return list(value)


@dataclass
class Event:
    type: str
    target: Tag
    current_target: Optional[Tag] = None
    default_prevented: bool = False
    propagation_stopped: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True

    def stop_propagation(self) -> None:
        self.propagation_stopped = True


@dataclass
class _Listener:
    element: Tag
    event_type: str
    handler: Callable[[Event], None]


class Document:
    """In-memory document backed by BeautifulSoup.

    Events are dispatched synchronously: `click` returns only after every
    listener on the target and its ancestors has run.
    """

    def __init__(self, markup: str):
        self.soup = BeautifulSoup(markup, "html.parser")
        self._listeners: list[_Listener] = []

    @property
    def body(self) -> Tag:
        body = self.soup.body
        if body is None:
            raise LookupError("document has no <body>")
        return body

    def select(self, selector: str) -> list[Tag]:
        return self.soup.select(selector)

    def select_one(self, selector: str) -> Optional[Tag]:
        return self.soup.select_one(selector)

    def resolve(self, target: Target) -> Tag:
        if isinstance(target, Tag):
            return target
        element = self.select_one(target)
        if element is None:
            raise LookupError(f"No element matches {target!r}")
        return element

    def has_class(self, target: Target, name: str) -> bool:
        return name in _classes(self.resolve(target))

    def toggle_class(self, target: Target, name: str) -> bool:
        element = self.resolve(target)
        classes = _classes(element)
        if name in classes:
            classes.remove(name)
        else:
            classes.append(name)
        element["class"] = classes
        return name in classes

    def add_listener(self, target: Target, event_type: str, handler: Callable[[Event], None]) -> None:
        self._listeners.append(_Listener(self.resolve(target), event_type, handler))

    def dispatch(self, target: Target, event_type: str) -> Event:
        element = self.resolve(target)
        event = Event(type=event_type, target=element)
        node = element
        while node is not None and not event.propagation_stopped:
            for listener in list(self._listeners):
                if listener.element is node and listener.event_type == event_type:
                    event.current_target = node
                    listener.handler(event)
            node = node.parent
        logging.debug(f"Dispatched {event_type} on <{element.name}>")
        return event

    def click(self, target: Target) -> Event:
        return self.dispatch(target, "click")


@dataclass
class DomProbe:
    """Read-only view of the widget state the suites assert against."""

    document: Document
    root: str = "body"
    container: str = FEED_CONTAINER
    entries: str = ENTRY_SELECTOR
    hidden_class: str = MENU_HIDDEN_CLASS

    def menu_hidden(self) -> bool:
        return self.document.has_class(self.root, self.hidden_class)

    def feed_snapshot(self) -> str:
        return self.document.resolve(self.container).decode_contents()

    def entry_count(self) -> int:
        return len(self.document.select(self.entries))
