from __future__ import annotations

from pytest import raises

from isadb.input import BadInput, InputLocation
from isadb.tokens import TokenEnum, Tokenizer


class TestToken(TokenEnum):
    identifier = r"[A-Za-z_][A-Za-z0-9_]*"
    number = r"[0-9]+"


class TestTokenizer(Tokenizer[TestToken]):
    pass


def test_token_class_unspecialized() -> None:
    with raises(
        TypeError,
        match=r"^Tokenizer must be specialized first, "
        r"for example Tokenizer\[MyTokenEnum\]$",
    ):
        print(Tokenizer.get_token_class())


def test_token_class_specialized() -> None:
    assert Tokenizer[TestToken].get_token_class() is TestToken


def test_token_class_subclass() -> None:
    assert TestTokenizer.get_token_class() is TestToken


def test_tokenize_simple() -> None:
    tokens = TestTokenizer.scan(InputLocation.from_string("one 2 thr33"))
    assert [(typ, loc.text) for typ, loc in tokens] == [
        (TestToken.identifier, "one"),
        (TestToken.number, "2"),
        (TestToken.identifier, "thr33"),
    ]


def test_tokenize_unmatched() -> None:
    with raises(
        BadInput,
        match=r"^invalid token: \+$",
    ):
        TestTokenizer.scan(InputLocation.from_string("one + 2"))


def test_tokenizer_eat() -> None:
    """Tokens are only consumed if they match the requested kind and value."""
    tokens = TestTokenizer.scan(InputLocation.from_string("0 one"))
    assert tokens.eat(TestToken.identifier) is None
    assert tokens.eat(TestToken.number, "1") is None
    location = tokens.eat(TestToken.number, "0")
    assert location is not None and location.span == (0, 1)
    assert tokens.peek(TestToken.identifier, "one")
    location = tokens.eat(TestToken.identifier)
    assert location is not None and location.span == (2, 5)
    assert list(tokens) == []


def test_classify_whole_text() -> None:
    """A token type only classifies text that it matches completely."""
    identifier = InputLocation.from_string("abc12")
    assert TestToken.classify(identifier) is TestToken.identifier
    assert TestToken.classify(InputLocation.from_string("12")) is TestToken.number
    assert TestToken.classify(InputLocation.from_string("12abc")) is None
    assert TestToken.classify(InputLocation.from_string("")) is None
