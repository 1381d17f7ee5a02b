from dataclasses import dataclass, field
from typing import Callable, Protocol

Callback = Callable[[], None]

Disconnect = Callable[[], None]


@dataclass(frozen=True)
class Style:
    """Inline style overrides for a card. None leaves a property as it is."""
    display: str | None = None
    background_color: str | None = None


NO_CHANGE = Style()

HIDDEN = Style(display='none')


@dataclass
class Card:
    """
    A rendered profile card. Regular listing cards carry the profile id;
    highlighted (promoted) cards don't. Any field may be missing on a card
    which hasn't finished rendering.
    """
    id: str | None
    photo_url: str | None
    name: str | None
    display: str | None = None
    background_color: str | None = None

    @property
    def hidden(self) -> bool:
        return self.display == 'none'


class HostPage(Protocol):
    """
    The parts of the third-party page the filtering engine depends on.
    """

    def listing_cards(self) -> list[Card]:
        """Rendered, non-placeholder, visible listing cards."""

    def hidden_listing_cards(self) -> list[Card]: ...

    def highlighted_cards(self) -> list[Card]:
        """Visible highlighted cards."""

    def apply_style(self, card: Card, style: Style) -> None: ...

    def is_listings_ready(self) -> bool:
        """True once both the listings grid and the highlighted track exist."""

    def profile_photo_url(self) -> str | None: ...

    def observe(self, callback: Callback) -> Disconnect:
        """Call `callback` on any change to the page."""

    def observe_listings(self, callback: Callback) -> Disconnect:
        """Call `callback` when cards are added to or removed from the grid."""

    def on_navigate(self, callback: Callable[[str], None]) -> Disconnect: ...

    def current_path(self) -> str: ...

    def show_banner(self, text: str, color: str) -> None: ...

    def clear_banners(self) -> None: ...


@dataclass
class InMemoryHostPage:
    """
    A HostPage held entirely in memory, for headless runs and tests. Mutating
    methods fire the same notifications a browser page would.
    """
    path: str = '/'
    cards: list[Card] = field(default_factory=list)
    highlighted: list[Card] = field(default_factory=list)
    listings_ready: bool = True
    photo_url: str | None = None
    banners: list[tuple[str, str]] = field(default_factory=list)
    _observers: list[Callback] = field(default_factory=list)
    _listing_observers: list[Callback] = field(default_factory=list)
    _navigation_listeners: list[Callable[[str], None]] = field(
        default_factory=list)

    @staticmethod
    def _subscribe(listeners: list, callback) -> Disconnect:
        listeners.append(callback)

        def disconnect():
            if callback in listeners:
                listeners.remove(callback)

        return disconnect

    def _changed(self, listings: bool = False):
        for callback in list(self._observers):
            callback()
        if listings:
            for callback in list(self._listing_observers):
                callback()

    def listing_cards(self):
        return [c for c in self.cards if not c.hidden]

    def hidden_listing_cards(self):
        return [c for c in self.cards if c.hidden]

    def highlighted_cards(self):
        return [c for c in self.highlighted if not c.hidden]

    def apply_style(self, card, style):
        if style.display is not None:
            card.display = style.display
        if style.background_color is not None:
            card.background_color = style.background_color

    def is_listings_ready(self):
        return self.listings_ready

    def profile_photo_url(self):
        return self.photo_url

    def observe(self, callback):
        return self._subscribe(self._observers, callback)

    def observe_listings(self, callback):
        return self._subscribe(self._listing_observers, callback)

    def on_navigate(self, callback):
        return self._subscribe(self._navigation_listeners, callback)

    def current_path(self):
        return self.path

    def show_banner(self, text, color):
        self.banners.append((text, color))

    def clear_banners(self):
        self.banners.clear()

    def add_cards(self, *cards: Card):
        self.cards.extend(cards)
        self._changed(listings=True)

    def set_listings_ready(self, ready: bool = True):
        self.listings_ready = ready
        self._changed()

    def set_profile_photo_url(self, url: str | None):
        self.photo_url = url
        self._changed()

    def navigate(self, path: str):
        self.path = path
        for callback in list(self._navigation_listeners):
            callback(path)
