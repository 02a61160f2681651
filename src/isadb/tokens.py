from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator
from enum import Enum, EnumMeta
from re import Pattern
from typing import Any, Self, TypeVar, cast

from .input import BadInput, InputLocation


class TokenMeta(EnumMeta):
    """Metaclass for `TokenEnum`."""

    pattern: Pattern[str]

    def __new__(
        mcs,
        name: str,
        bases: tuple[type, ...],
        namespace: dict[str, Any],
        **kwargs: Any,
    ) -> TokenMeta:
        new_class = super().__new__(
            mcs,
            name,
            bases,
            # Work around typeshed using a private type for 'namespace'.
            namespace,  # type: ignore[arg-type]
            **kwargs,
        )
        if new_class.__members__:
            new_class.pattern = new_class._compile_pattern()
        return new_class

    def _compile_pattern(cls) -> Pattern[str]:
        raise NotImplementedError


class TokenEnum(Enum, metaclass=TokenMeta):
    """
    Base class for token types.

    Each member should have as its value the regular expression for
    matching that kind of token. When more than one member could match
    the same text, the member that is defined first wins.
    """

    def __init__(self, regex: str):
        self.regex = regex

    @classmethod
    def _compile_pattern(cls) -> Pattern[str]:
        patterns = [r"(\s+)"]
        patterns += (
            f"(?P<{name}>{token.regex})" for name, token in cls.__members__.items()
        )
        return re.compile("|".join(patterns))

    @classmethod
    def classify(cls, location: InputLocation) -> Self | None:
        """
        Return the token type that matches all of the text in the given
        location, or None if no token type does.
        """
        match = location.fullmatch(cls.pattern)
        if match is None:
            return None
        name = match.group_name
        return None if name is None else cls[name]

    @classmethod
    def _iter_tokens(cls: type[TokenT], location: InputLocation) -> TokenStream[TokenT]:
        pos = location.span[0]
        for match in location.find_matches(cls.pattern):
            match_location = match.group(0)
            start, end = match_location.span
            if start != pos:
                raise BadInput.with_text(
                    "invalid token", location.update_span((pos, start)).strip()
                )
            pos = end
            name = match.group_name
            if name is None:
                # Skip whitespace.
                continue
            yield cls[name], match_location
        if pos != location.span[1]:
            raise BadInput.with_text(
                "invalid token", location.update_span((pos, location.span[1])).strip()
            )
        # Sentinel.
        yield None, location.end_location


T = TypeVar("T")
TokenT = TypeVar("TokenT", bound=TokenEnum)
type TokenStream[TokenT] = Iterable[tuple[TokenT | None, InputLocation]]


class Tokenizer(Iterator[tuple[TokenT, InputLocation]]):
    """
    Specialized iterator for tokenized text.

    Can be used like any other Python iterator, but the `eat()` method is often
    more convenient to check for and consume expected tokens.
    """

    _token_class: type[TokenT]

    def __class_getitem__(cls, item: type[TokenT]) -> type[Tokenizer[TokenT]]:
        class SpecializedTokenizer(
            super().__class_getitem__(item)  # type: ignore[misc]
        ):
            _token_class = item

        return SpecializedTokenizer

    @classmethod
    def get_token_class(cls) -> type[TokenT]:
        try:
            return cls._token_class
        except AttributeError:
            raise TypeError(
                "Tokenizer must be specialized first, "
                "for example Tokenizer[MyTokenEnum]"
            ) from None

    @classmethod
    def scan(cls: type[T], location: InputLocation) -> T:
        """
        Split an input string into tokens.
        Raise `BadInput` if the string contains text that is not a token.
        """
        token_class = cast(Tokenizer[TokenT], cls).get_token_class()
        constructor = cast(Callable[[TokenStream[TokenT]], T], cls)
        return constructor(token_class._iter_tokens(location))

    _kind: TokenT | None
    _location: InputLocation

    def __init__(
        self, tokens: Iterable[tuple[TokenT | None, InputLocation]], start: int = 0
    ):
        """Use `scan()` instead of calling this directly."""
        self._tokens = tuple(tokens)
        self._token_index = start
        self._advance()

    def __next__(self) -> tuple[TokenT, InputLocation]:
        kind = self._kind
        if kind is None:
            raise StopIteration
        location = self._location
        self._advance()
        return kind, location

    def _advance(self) -> None:
        index = self._token_index
        self._kind, self._location = self._tokens[index]
        if index != len(self._tokens) - 1:
            self._token_index = index + 1

    def peek(self, kind: TokenT, value: str | None = None) -> bool:
        """
        Check whether the current token matches the given kind and,
        if specified, also the given value.
        Return True for a match, False otherwise.
        """
        return self._kind is kind and (value is None or self._location.text == value)

    def eat(self, kind: TokenT, value: str | None = None) -> InputLocation | None:
        """
        Consume the current token if it matches the given kind and,
        if specified, also the given value.
        Return the token's input location if the token was consumed,
        or None if no match was found.
        """
        found = self.peek(kind, value)
        if found:
            location = self._location
            self._advance()
            return location
        else:
            return None
