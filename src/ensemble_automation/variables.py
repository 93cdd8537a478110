from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Iterator, Mapping, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .cluster import Cluster, Node

logger = logging.getLogger(__name__)


class DynamicVariableProvider(ABC):
    """Computes the value of a ``%{name}`` placeholder at expansion time."""

    def __init__(self, priority: int = 0):
        self.priority = priority

    @abstractmethod
    def calculate(self, cluster: "Cluster", node: Optional["Node"]) -> str:
        """Return the current value for ``node`` in ``cluster``."""


class CallableProvider(DynamicVariableProvider):
    def __init__(self, func: Callable[["Cluster", Optional["Node"]], str], priority: int = 0):
        super().__init__(priority)
        self.func = func

    def calculate(self, cluster: "Cluster", node: Optional["Node"]) -> str:
        return self.func(cluster, node)


class DynamicVariableProviders:
    """Named providers for one cluster; the highest priority wins a name."""

    def __init__(self) -> None:
        self._providers: dict[str, DynamicVariableProvider] = {}

    def add(self, name: str, provider: DynamicVariableProvider) -> "DynamicVariableProviders":
        current = self._providers.get(name)
        if current is not None and current.priority >= provider.priority:
            logger.debug(
                "provider %s priority=%d ignored; keeping priority=%d",
                name,
                provider.priority,
                current.priority,
            )
            return self
        self._providers[name] = provider
        return self

    def add_all(self, providers: Mapping[str, DynamicVariableProvider]) -> "DynamicVariableProviders":
        for name, provider in providers.items():
            self.add(name, provider)
        return self

    def get(self, name: str) -> Optional[DynamicVariableProvider]:
        return self._providers.get(name)

    def names(self) -> list[str]:
        return sorted(self._providers)

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())


class StringExpander(ABC):
    """Substitutes ``%{name}`` placeholders.

    A backslash makes the next character literal. Placeholders whose name
    cannot be resolved are emitted unchanged, as is an unterminated ``%{``.
    """

    @abstractmethod
    def lookup_variable(self, name: str) -> Optional[str]:
        """Return the value of ``name`` or ``None`` when it is unknown."""

    def expand(self, text: str) -> str:
        output: list[str] = []
        index = 0
        length = len(text)
        while index < length:
            char = text[index]
            if char == "\\":
                if index + 1 < length:
                    output.append(text[index + 1])
                    index += 2
                else:
                    output.append(char)
                    index += 1
                continue
            if char == "%" and text.startswith("{", index + 1):
                end = text.find("}", index + 2)
                if end == -1:
                    output.append(text[index:])
                    break
                name = text[index + 2:end]
                value = self.lookup_variable(name)
                output.append("%{" + name + "}" if value is None else value)
                index = end + 1
                continue
            output.append(char)
            index += 1
        return "".join(output)

    def expand_value(self, value: Any) -> Any:
        """Expand strings nested anywhere inside mappings and lists."""

        if isinstance(value, str):
            return self.expand(value)
        if isinstance(value, Mapping):
            return {self.expand_value(k): self.expand_value(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self.expand_value(v) for v in value]
        return value


class MappingExpander(StringExpander):
    def __init__(self, values: Mapping[str, Any]):
        self.values = values

    def lookup_variable(self, name: str) -> Optional[str]:
        value = self.values.get(name)
        return None if value is None else str(value)


class DynamicVariableExpander(StringExpander):
    """Resolves placeholders through a cluster's providers, caching each value."""

    def __init__(
        self,
        providers: DynamicVariableProviders,
        cluster: "Cluster",
        node: Optional["Node"],
    ):
        self.providers = providers
        self.cluster = cluster
        self.node = node
        self._cache: dict[str, str] = {}

    def lookup_variable(self, name: str) -> Optional[str]:
        if name in self._cache:
            return self._cache[name]
        provider = self.providers.get(name)
        if provider is None:
            logger.debug("variable %s has no provider; leaving it unexpanded", name)
            return None
        value = provider.calculate(self.cluster, self.node)
        self._cache[name] = value
        return value
