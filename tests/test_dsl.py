"""Tests for the token registry and DSL compiler."""

import pytest

from stepflow.core.dsl import compile_pipeline, explain, parse_token, tokenize
from stepflow.core.errors import CompileError
from stepflow.core.registry import TokenRegistry, default_registry
from stepflow.core.state import PipelineState


def _setter(field):
    def factory(args=None):
        async def step(s: PipelineState) -> PipelineState:
            setattr(s, field, args or "")
            return s

        return step

    return factory


@pytest.fixture
def registry():
    reg = TokenRegistry()
    reg.register(["SetPrompt", "Set"], _setter("prompt"))
    reg.register(["SetQuery"], _setter("query"))
    return reg


# =============================================================================
# Registry
# =============================================================================


def test_resolve_is_case_insensitive(registry):
    factory, found = registry.resolve("setprompt")
    assert found
    assert registry.resolve("SET")[0] is factory


def test_resolve_unknown_name(registry):
    factory, found = registry.resolve("Nope")
    assert factory is None
    assert not found


def test_reregistering_same_factory_is_noop(registry):
    factory, _ = registry.resolve("Set")
    registry.register(["Set"], factory)
    assert len(registry) == 2
    assert registry.aliases(factory) == ["SetPrompt", "Set"]


def test_rebinding_name_to_other_factory_fails(registry):
    with pytest.raises(ValueError, match="Duplicate token name"):
        registry.register(["set"], _setter("topic"))


def test_register_requires_a_name():
    with pytest.raises(ValueError):
        TokenRegistry().register(["", "  "], _setter("prompt"))


def test_token_decorator_and_groups():
    reg = TokenRegistry()

    @reg.token("Upper", "Shout")
    def upper(args=None):
        async def step(s):
            s.output = s.output.upper()
            return s

        return step

    assert upper.__token_name__ == "Upper"
    assert reg.canonical_name(upper) == "Upper"
    assert reg.names() == ["Upper"]
    assert reg.groups() == [["Upper", "Shout"]]
    assert "shout" in reg


def test_default_registry_has_builtin_tokens():
    compile_pipeline("Set('x')")  # imports the step library
    for name in ("RAG", "DCRAG", "DARAG", "UseSelfCritique", "AutoAgent", "DAC", "SetK"):
        assert name in default_registry


# =============================================================================
# Tokenizer
# =============================================================================


def test_tokenize_skips_empty_segments():
    assert tokenize(" A | | B() |C ") == ["A", "B()", "C"]
    assert tokenize("") == []
    assert tokenize(None) == []


def test_tokenize_keeps_pipes_inside_quotes_and_parens():
    assert tokenize("Set('a|b') | Template(\"x | y\") | F(g(1|2))") == [
        "Set('a|b')",
        'Template("x | y")',
        "F(g(1|2))",
    ]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("SetK", ("SetK", None)),
        ("SetK(4)", ("SetK", "4")),
        ("Set('hello')", ("Set", "hello")),
        ('Set("hello")', ("Set", "hello")),
        ("Set()", ("Set", "")),
    ],
)
def test_parse_token(raw, expected):
    assert parse_token(raw) == expected


# =============================================================================
# Compilation
# =============================================================================


def test_compile_preserves_order_and_args(registry):
    steps = compile_pipeline("Set('a') | SetQuery(b)", registry)
    assert [s.name for s in steps] == ["Set", "SetQuery"]
    assert [s.args for s in steps] == ["a", "b"]


def test_compile_empty_expression(registry):
    assert compile_pipeline("  |  ", registry) == []


def test_unknown_token_rejects_whole_expression(registry):
    with pytest.raises(CompileError) as info:
        compile_pipeline("Set('a') | Bogus(1) | SetQuery(b)", registry)

    assert info.value.token == "Bogus"
    assert info.value.position == 1
    assert str(info.value) == "Unknown pipeline token 'Bogus' at position 1"


def test_empty_custom_registry_is_used():
    with pytest.raises(CompileError):
        compile_pipeline("Set('a')", TokenRegistry())


def test_explain_lists_resolution(registry):
    text = explain("set('a') | Bogus", registry)
    assert text.splitlines()[0] == "Pipeline tokens:"
    assert "set(a) -> SetPrompt" in text
    assert "Bogus -> (unknown)" in text
    assert "Available token groups:" in text
    assert "SetPrompt, Set" in text
