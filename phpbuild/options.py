"""
Configure option composition.

ConfigureOptionSet holds the flat list of tokens handed to ./configure.
Tokens are either bare flags (--enable-cli) or name=value pairs
(--with-openssl=/usr/local). Filtering is always by token name prefix.

Protected bindings (install prefix, php.ini locations) are kept apart
from the regular tokens: they are serialized last and cannot be removed
or replaced, so user tokens never shadow the paths later steps rely on.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class OptionToken:
    """One configure argument."""

    name: str
    value: Optional[str] = None

    @classmethod
    def parse(cls, token: str, value: Optional[str] = None) -> "OptionToken":
        """Build a token, splitting "name=value" when no explicit value is given."""
        if value is None and "=" in token:
            name, value = token.split("=", 1)
            return cls(name, value)
        return cls(token, value)

    def __str__(self) -> str:
        if self.value is None:
            return self.name
        return f"{self.name}={self.value}"


class ConfigureOptionSet:
    """Ordered, prefix-filterable set of configure tokens."""

    def __init__(self, tokens: Iterable[str] = ()):
        self._tokens: List[OptionToken] = []
        self._bindings: List[OptionToken] = []
        for token in tokens:
            self.add(token)

    def add(self, token: str, value: Optional[str] = None) -> "ConfigureOptionSet":
        """Append token (or token=value)."""
        self._tokens.append(OptionToken.parse(token, value))
        return self

    def remove(self, prefix: str) -> int:
        """
        Drop every regular token whose name starts with prefix.

        Returns:
            Number of tokens removed
        """
        kept = [t for t in self._tokens if not t.name.startswith(prefix)]
        removed = len(self._tokens) - len(kept)
        self._tokens = kept
        return removed

    def replace(self, prefix: str, token: str, value: Optional[str] = None) -> "ConfigureOptionSet":
        """
        Remove tokens matching prefix, then add token.

        The new token takes the slot of the first removed token; when
        nothing matched this is a plain add.
        """
        return self._replace_matching(
            lambda t: t.name.startswith(prefix), OptionToken.parse(token, value)
        )

    def set(self, token: str, value: Optional[str] = None) -> "ConfigureOptionSet":
        """Like replace(), but only tokens with exactly the same name are dropped."""
        new = OptionToken.parse(token, value)
        return self._replace_matching(lambda t: t.name == new.name, new)

    def _replace_matching(self, matches: Callable[[OptionToken], bool], new: OptionToken) -> "ConfigureOptionSet":
        position = next((i for i, t in enumerate(self._tokens) if matches(t)), None)
        self._tokens = [t for t in self._tokens if not matches(t)]
        if position is None:
            self._tokens.append(new)
        else:
            self._tokens.insert(position, new)
        return self

    def bind(self, name: str, value: str) -> "ConfigureOptionSet":
        """Set a protected binding, overwriting an earlier binding of the same name."""
        self._bindings = [b for b in self._bindings if b.name != name]
        self._bindings.append(OptionToken(name, value))
        return self

    def get(self, name: str) -> Optional[OptionToken]:
        """Effective token for an exact name (bindings win)."""
        for binding in self._bindings:
            if binding.name == name:
                return binding
        for token in reversed(self._tokens):
            if token.name == name:
                return token
        return None

    @property
    def bindings(self) -> Tuple[OptionToken, ...]:
        return tuple(self._bindings)

    def to_args(self) -> List[str]:
        """Serialize to an argument list: regular tokens, then bindings."""
        bound = {b.name for b in self._bindings}
        args = [str(t) for t in self._tokens if t.name not in bound]
        args.extend(str(b) for b in self._bindings)
        return args

    def __iter__(self) -> Iterator[OptionToken]:
        bound = {b.name for b in self._bindings}
        for token in self._tokens:
            if token.name not in bound:
                yield token
        yield from self._bindings

    def __len__(self) -> int:
        return len(self.to_args())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def __repr__(self) -> str:
        return f"ConfigureOptionSet({self.to_args()!r})"
