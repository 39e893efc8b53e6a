import pytest

from phpinfer.semantic.phpdoc import DocBlock, to_type, named_type
from phpinfer.semantic.type import ObjectType, UNKNOWN


# ── 文档块 ─────────────────────────────────────────────────────────────────

def test_parse_tags():
    doc = DocBlock.parse("""/**
     * Does things.
     *
     * @param int $a first
     * @param string|null $b
     * @return array{a: int}
     * @throws \\RuntimeException when broken
     */""")
    assert doc.summary == 'Does things.'
    a = doc.param_tag('a')
    assert (a.type_expr, a.variable, a.description) == ('int', 'a', 'first')
    assert doc.param_tag('b').type_expr == 'string|null'
    assert doc.first('return').type_expr == 'array{a: int}'
    assert doc.first('throws').description == 'when broken'


def test_var_tag_with_description():
    tag = DocBlock.parse('/** @var int $with_doc great */').var_tag()
    assert tag.type_expr == 'int'
    assert tag.variable == 'with_doc'
    assert tag.description == 'great'


def test_var_tag_without_type():
    tag = DocBlock.parse('/** @var $x just a note */').var_tag('x')
    assert tag.type_expr == ''
    assert tag.variable == 'x'
    assert tag.description == 'just a note'


def test_var_tag_filters_by_variable():
    doc = DocBlock.parse('/** @var int $a */')
    assert doc.var_tag('b') is None
    assert doc.var_tag('a') is not None


def test_type_expression_with_spaces():
    tag = DocBlock.parse('/** @return int | string the value */').first('return')
    assert tag.type_expr == 'int | string'
    assert tag.description == 'the value'


def test_empty_doc():
    assert not DocBlock.parse(None)
    assert DocBlock.parse('').tags == []


# ── 类型表达式 ─────────────────────────────────────────────────────────────

@pytest.mark.parametrize('expr, expected', [
    ('int', 'int'),
    ('integer', 'int'),
    ('bool', 'boolean'),
    ('mixed', 'unknown'),
    ('?int', 'int|null'),
    ('int|string', 'int|string'),
    ('int[]', 'array<int>'),
    ('(int|string)[]', 'array<int|string>'),
    ('array<string>', 'array<string>'),
    ('array<string, int>', 'array<string, int>'),
    ('list<int>', 'array<int>'),
    ('array{a: int, b?: string}', 'array{a: int, b?: string}'),
    ('array{int, string}', 'array{int, string}'),
    ('array{}', 'array{}'),
    ('Foo&Bar', 'Foo&Bar'),
    ('\\App\\Models\\User', 'App\\Models\\User'),
])
def test_to_type(expr, expected):
    assert to_type(expr).to_string() == expected


def test_unparseable_type_is_unknown():
    assert to_type('array<int') is UNKNOWN
    assert to_type('') is UNKNOWN


def test_self_resolves_to_class():
    assert to_type('static', self_class='Foo') == ObjectType('Foo')
    assert to_type('$this', self_class='Foo') == ObjectType('Foo')
    assert named_type('self') is UNKNOWN


def test_resolver_is_used_for_class_names():
    seen = []

    def resolver(name):
        seen.append(name)
        return ObjectType('Resolved\\' + name)

    assert to_type('User', resolver=resolver).to_string() == 'Resolved\\User'
    assert seen == ['User']
