from phpinfer.semantic.type import (
    ArrayItem, ArrayType, ArrayMapType, FunctionType, IntersectionType,
    IntegerType, FloatType, ObjectType, StringType, Union,
    UNKNOWN, NULL, BOOLEAN, INT, FLOAT, STRING,
    union, widen, remove_null, members, literal_of, is_numeric,
)


# ── to_string ──────────────────────────────────────────────────────────────

def test_scalar_strings():
    assert UNKNOWN.to_string() == 'unknown'
    assert NULL.to_string() == 'null'
    assert BOOLEAN.to_string() == 'boolean'
    assert INT.to_string() == 'int'
    assert IntegerType(1).to_string() == 'int(1)'
    assert FloatType(1.5).to_string() == 'float(1.5)'
    assert FloatType(2).to_string() == 'float(2.0)'
    assert StringType('foo').to_string() == 'string(foo)'


def test_array_strings():
    shape = ArrayType([ArrayItem('a', IntegerType(1)), ArrayItem('b', STRING, optional=True)])
    assert shape.to_string() == 'array{a: int(1), b?: string}'
    listing = ArrayType([ArrayItem(None, IntegerType(1)), ArrayItem(None, IntegerType(2))])
    assert listing.to_string() == 'array{int(1), int(2)}'
    assert listing.is_list
    assert not shape.is_list
    assert ArrayMapType(STRING, INT).to_string() == 'array<string, int>'
    assert ArrayMapType(None, INT).to_string() == 'array<int>'


def test_compound_strings():
    assert FunctionType(IntegerType(1)).to_string() == '(): int(1)'
    assert FunctionType(INT, [INT, UNKNOWN]).to_string() == '(int, unknown): int'
    assert IntersectionType([ObjectType('A'), ObjectType('B')]).to_string() == 'A&B'
    assert union([UNKNOWN, IntegerType(1)]).to_string() == 'unknown|int(1)'


# ── union ──────────────────────────────────────────────────────────────────

def test_union_collapses_singleton():
    assert union([INT]) is INT
    assert union([IntegerType(1), IntegerType(1)]) == IntegerType(1)
    assert not isinstance(union([INT, INT]), Union)


def test_union_of_nothing_is_unknown():
    assert union([]) is UNKNOWN


def test_union_flattens_and_keeps_order():
    inner = union([INT, STRING])
    result = union([NULL, inner, INT])
    assert isinstance(result, Union)
    assert result.to_string() == 'null|int|string'
    assert all(not isinstance(m, Union) for m in result.types)


def test_union_keeps_distinct_literals():
    result = union([IntegerType(1), IntegerType(2)])
    assert result.to_string() == 'int(1)|int(2)'


def test_union_equality_ignores_order():
    assert union([INT, STRING]) == union([STRING, INT])
    assert hash(union([INT, STRING])) == hash(union([STRING, INT]))


# ── 结构相等 ───────────────────────────────────────────────────────────────

def test_structural_equality():
    assert IntegerType(1) == IntegerType(1)
    assert IntegerType(1) != IntegerType(2)
    assert IntegerType(1) != INT
    assert IntegerType(1) != FloatType(1)
    assert ObjectType('\\App\\Foo') == ObjectType('app\\foo')
    assert ArrayType([ArrayItem('a', INT)]) == ArrayType([ArrayItem('a', INT, description='x')])


def test_with_item_replaces_existing_key():
    shape = ArrayType([ArrayItem('a', INT)]).with_item(ArrayItem('a', STRING))
    assert shape.to_string() == 'array{a: string}'
    appended = shape.with_item(ArrayItem(None, INT))
    assert appended.to_string() == 'array{a: string, int}'


# ── 工具函数 ───────────────────────────────────────────────────────────────

def test_widen():
    assert widen(IntegerType(3)) == INT
    assert widen(StringType('x')) == STRING
    assert widen(union([IntegerType(1), IntegerType(2)])) == INT
    assert widen(NULL) is NULL


def test_remove_null():
    assert remove_null(union([NULL, INT])) == INT
    assert remove_null(NULL) is UNKNOWN
    assert remove_null(STRING) is STRING


def test_members_and_literals():
    assert members(INT) == (INT,)
    assert len(members(union([INT, STRING]))) == 2
    assert literal_of(True) is BOOLEAN
    assert literal_of(3) == IntegerType(3)
    assert literal_of(2.5) == FloatType(2.5)
    assert literal_of('s') == StringType('s')
    assert literal_of(None) is NULL
    assert is_numeric(FLOAT) and not is_numeric(STRING)


def test_method_call_on_non_object_is_unknown():
    assert INT.get_method_call_type('foo') is UNKNOWN
    assert ObjectType('Nowhere').get_method_call_type('foo') is UNKNOWN
