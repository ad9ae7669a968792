from __future__ import annotations

import abc
import copy
import inspect
from typing import Awaitable, Callable, Mapping, Union

from ..core.exceptions import PageRenderError
from .models import MessageContent

PageGenerator = Callable[
    [int, int], Union[MessageContent, Awaitable[MessageContent]]
]


class Page(abc.ABC):
    """One logical screen of a menu.

    Use `Page.new_static` for pre-built content and `Page.new_dynamic` for
    content produced on demand from ``(index, total_pages)``.
    """

    @staticmethod
    def new_static(content: Mapping[str, object]) -> "StaticPage":
        return StaticPage(content)

    @staticmethod
    def new_dynamic(generator: PageGenerator) -> "DynamicPage":
        return DynamicPage(generator)

    @abc.abstractmethod
    async def resolve(self, index: int, total: int) -> MessageContent:
        """Content for page `index` of a menu with `total` pages."""


class StaticPage(Page):
    def __init__(self, content: Mapping[str, object]) -> None:
        if not isinstance(content, Mapping):
            raise TypeError("static page content must be a mapping")
        self._content: MessageContent = copy.deepcopy(dict(content))

    async def resolve(self, index: int, total: int) -> MessageContent:
        return copy.deepcopy(self._content)

    def __repr__(self) -> str:
        return f"StaticPage({self._content!r})"


class DynamicPage(Page):
    def __init__(self, generator: PageGenerator) -> None:
        if not callable(generator):
            raise TypeError("dynamic page generator must be callable")
        self._generator = generator

    async def resolve(self, index: int, total: int) -> MessageContent:
        try:
            result = self._generator(index, total)
            if inspect.isawaitable(result):
                result = await result
        except PageRenderError:
            raise
        except Exception as exc:
            raise PageRenderError(
                f"Failed to render page {index}: {exc}", page=index
            ) from exc
        if not isinstance(result, Mapping):
            raise PageRenderError(
                f"Page {index} generator returned {type(result).__name__}, "
                "expected a mapping",
                page=index,
            )
        return dict(result)

    def __repr__(self) -> str:
        name = getattr(self._generator, "__qualname__", repr(self._generator))
        return f"DynamicPage({name})"
