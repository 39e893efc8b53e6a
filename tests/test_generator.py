import pytest

from phpinfer.generator.parameter import Parameter
from phpinfer.generator.schema import Components, Reference, Response, Schema
from phpinfer.generator.transformer import TypeToSchemaExtension, TypeTransformer
from phpinfer.generator import types as schema_types
from phpinfer.semantic import type as t
from phpinfer.semantic.phpdoc import to_type


@pytest.fixture
def transformer():
    return TypeTransformer(infer=None)


@pytest.mark.parametrize('type_, expected', [
    (t.INT, {'type': 'integer'}),
    (t.IntegerType(5), {'type': 'integer'}),
    (t.FLOAT, {'type': 'number'}),
    (t.STRING, {'type': 'string'}),
    (t.BOOLEAN, {'type': 'boolean'}),
    (t.NULL, {'type': 'null'}),
    (t.UNKNOWN, {'type': 'string'}),
    (t.ObjectType('Foo'), {'type': 'object'}),
])
def test_scalars(transformer, type_, expected):
    assert transformer.transform(type_).to_dict() == expected


def test_list_becomes_array_of_first_item(transformer):
    listing = to_type('array{int, string}')
    assert transformer.transform(listing).to_dict() == {'type': 'array', 'items': {'type': 'integer'}}


def test_empty_array_has_string_items(transformer):
    assert transformer.transform(t.ArrayType()).to_dict() == {'type': 'array', 'items': {'type': 'string'}}


def test_shape_becomes_object(transformer):
    shape = to_type('array{id: int, name?: string|null}')
    assert transformer.transform(shape).to_dict() == {
        'type': 'object',
        'properties': {
            'id': {'type': 'integer'},
            'name': {'type': 'string', 'nullable': True},
        },
        'required': ['id'],
    }


def test_single_int_key_is_array(transformer):
    shape = t.ArrayType([t.ArrayItem(0, t.STRING)])
    assert transformer.transform(shape).to_dict() == {'type': 'array', 'items': {'type': 'string'}}


def test_mixed_positional_and_keyed_items(transformer):
    shape = t.ArrayType([
        t.ArrayItem(None, t.INT),
        t.ArrayItem('id', t.STRING),
        t.ArrayItem(5, t.BOOLEAN, optional=True),
        t.ArrayItem(None, t.FLOAT),
    ])
    assert transformer.transform(shape).to_dict() == {
        'type': 'object',
        'properties': {
            '0': {'type': 'integer'},
            'id': {'type': 'string'},
            '5': {'type': 'boolean'},
            '6': {'type': 'number'},
        },
        'required': ['0', 'id', '6'],
    }


def test_item_description(transformer):
    shape = t.ArrayType([t.ArrayItem('id', t.INT, description='the id')])
    assert transformer.transform(shape).to_dict()['properties']['id'] == {
        'type': 'integer', 'description': 'the id',
    }


@pytest.mark.parametrize('expr, expected', [
    ('array<int, string>', {'type': 'array', 'items': {'type': 'string'}}),
    ('array<string>', {'type': 'array', 'items': {'type': 'string'}}),
    ('array<string, int>', {'type': 'object', 'additionalProperties': {'type': 'integer'}}),
])
def test_generic_arrays(transformer, expr, expected):
    assert transformer.transform(to_type(expr)).to_dict() == expected


def test_unions(transformer):
    assert transformer.transform(to_type('?int')).to_dict() == {'type': 'integer', 'nullable': True}
    assert transformer.transform(to_type('int|string')).to_dict() == {
        'anyOf': [{'type': 'integer'}, {'type': 'string'}],
    }
    assert transformer.transform(to_type('int|string|null')).to_dict() == {
        'anyOf': [{'type': 'integer'}, {'type': 'string'}, {'type': 'null'}],
    }


def test_intersection(transformer):
    assert transformer.transform(to_type('A&B')).to_dict() == {
        'allOf': [{'type': 'object'}, {'type': 'object'}],
    }


def test_default_response(transformer):
    response = transformer.to_response(to_type('array{id: int}'))
    assert response.to_dict() == {
        'description': '',
        'content': {'application/json': {'schema': {
            'type': 'object',
            'properties': {'id': {'type': 'integer'}},
            'required': ['id'],
        }}},
    }


# ── 扩展 ───────────────────────────────────────────────────────────────────

class _MoneyExtension(TypeToSchemaExtension):
    def should_handle(self, type_):
        return isinstance(type_, t.ObjectType) and type_.name == 'Money'

    def to_schema(self, type_, previous):
        return schema_types.StringType().set_format('money')


class _LastWinsExtension(_MoneyExtension):
    def to_schema(self, type_, previous):
        assert previous is not None
        return schema_types.NumberType()


class _ReferenceExtension(_MoneyExtension):
    calls = 0

    def reference(self, type_):
        return Reference('schemas', type_.name, self.components)

    def to_schema(self, type_, previous):
        type(self).calls += 1
        return schema_types.ObjectType().add_property('amount', schema_types.IntegerType())


class _ResponseExtension(_MoneyExtension):
    def to_response(self, type_, previous):
        return Response.make(201).set_description('created')


def test_extension_handles_type():
    tr = TypeTransformer(None, extensions=[_MoneyExtension])
    assert tr.transform(t.ObjectType('Money')).to_dict() == {'type': 'string', 'format': 'money'}
    assert tr.transform(t.ObjectType('Other')).to_dict() == {'type': 'object'}


def test_last_accepted_extension_wins():
    tr = TypeTransformer(None, extensions=[_MoneyExtension, _LastWinsExtension])
    assert tr.transform(t.ObjectType('Money')).to_dict() == {'type': 'number'}


def test_extension_reference_registers_schema_once():
    components = Components()
    tr = TypeTransformer(None, components, extensions=[_ReferenceExtension])
    _ReferenceExtension.calls = 0
    first = tr.transform(t.ObjectType('Money'))
    second = tr.transform(t.ObjectType('Money'))
    assert first.to_dict() == second.to_dict() == {'$ref': '#/components/schemas/Money'}
    assert components.get_schema('Money').to_dict() == {
        'type': 'object', 'properties': {'amount': {'type': 'integer'}},
    }
    assert _ReferenceExtension.calls == 1


def test_extensions_apply_inside_shapes():
    tr = TypeTransformer(None, extensions=[_MoneyExtension])
    shape = t.ArrayType([t.ArrayItem('price', t.ObjectType('Money'))])
    assert tr.transform(shape).to_dict()['properties']['price'] == {'type': 'string', 'format': 'money'}


def test_response_extension():
    tr = TypeTransformer(None, extensions=[_ResponseExtension])
    assert tr.to_response(t.ObjectType('Money')).to_dict() == {'description': 'created'}
    assert 'content' in tr.to_response(t.INT).to_dict()


# ── Components / Parameter ────────────────────────────────────────────────

def test_components_unique_names():
    components = Components()
    components.add_schema('App\\Money', Schema(schema_types.StringType()))
    assert components.unique_name('App\\Money') == 'Money'
    components.add_schema('Lib\\Money', Schema(schema_types.StringType()))
    assert components.unique_name('App\\Money') == 'App.Money'
    assert set(components.to_dict()['schemas']) == {'App.Money', 'Lib.Money'}


def test_path_parameter_is_required():
    param = Parameter.make('id', 'path')
    assert param.to_dict() == {'name': 'id', 'in': 'path', 'required': True}


def test_parameter_fields():
    param = (Parameter('q', 'query')
             .description('search term')
             .set_schema(Schema.from_type(schema_types.StringType())))
    assert param.to_dict() == {
        'name': 'q', 'in': 'query', 'description': 'search term',
        'schema': {'type': 'string'},
    }
    assert 'required' not in Parameter('q', 'query').to_dict()
    assert Parameter('q', 'query').required(True).to_dict()['required'] is True
