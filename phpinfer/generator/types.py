"""
OpenAPI Schema 类型
===================
推导类型转换后的目标：OpenAPI 3 schema 对象。
每个类型通过 to_dict() 输出规范形式；setter 返回 self 以便链式调用。
"""

from __future__ import annotations
from typing import Optional


class SchemaType:
    """所有 schema 类型的基类"""
    type_name = ''

    def __init__(self):
        self.nullable_:   bool = False
        self.description: str = ''
        self.format:      str = ''

    def nullable(self, value: bool = True) -> 'SchemaType':
        self.nullable_ = value
        return self

    def set_description(self, description: str) -> 'SchemaType':
        self.description = description
        return self

    def set_format(self, fmt: str) -> 'SchemaType':
        self.format = fmt
        return self

    def to_dict(self) -> dict:
        result = {'type': self.type_name} if self.type_name else {}
        if self.format:
            result['format'] = self.format
        if self.description:
            result['description'] = self.description
        if self.nullable_:
            result['nullable'] = True
        return result

    def __eq__(self, other):
        return type(other) is type(self) and other.to_dict() == self.to_dict()

    def __repr__(self):
        return f"{self.__class__.__name__}({self.to_dict()})"


class StringType(SchemaType):
    type_name = 'string'


class IntegerType(SchemaType):
    type_name = 'integer'


class NumberType(SchemaType):
    type_name = 'number'


class BooleanType(SchemaType):
    type_name = 'boolean'


class NullType(SchemaType):
    type_name = 'null'


class ArrayType(SchemaType):
    type_name = 'array'

    def __init__(self, items: Optional[SchemaType] = None):
        super().__init__()
        self.items = items or StringType()

    def set_items(self, items: SchemaType) -> 'ArrayType':
        self.items = items
        return self

    def to_dict(self):
        result = super().to_dict()
        result['items'] = self.items.to_dict()
        return result


class ObjectType(SchemaType):
    type_name = 'object'

    def __init__(self):
        super().__init__()
        self.properties: dict[str, SchemaType] = {}
        self.required: list[str] = []
        self.additional_properties: Optional[SchemaType] = None

    def add_property(self, name: str, schema: SchemaType) -> 'ObjectType':
        self.properties[name] = schema
        return self

    def set_required(self, keys: list) -> 'ObjectType':
        self.required = [str(k) for k in keys]
        return self

    def set_additional_properties(self, schema: SchemaType) -> 'ObjectType':
        self.additional_properties = schema
        return self

    def to_dict(self):
        result = super().to_dict()
        if self.properties:
            result['properties'] = {str(k): v.to_dict() for k, v in self.properties.items()}
        if self.required:
            result['required'] = list(self.required)
        if self.additional_properties is not None:
            result['additionalProperties'] = self.additional_properties.to_dict()
        return result


# ─── 组合类型 ──────────────────────────────────────────────────────────────────

class _Combined(SchemaType):
    keyword = ''

    def __init__(self, items: list[SchemaType] = ()):
        super().__init__()
        self.items = list(items)

    def set_items(self, items) -> '_Combined':
        self.items = [i for i in items if i is not None]
        return self

    def to_dict(self):
        result = super().to_dict()
        result[self.keyword] = [i.to_dict() for i in self.items]
        return result


class AnyOf(_Combined):
    keyword = 'anyOf'


class AllOf(_Combined):
    keyword = 'allOf'
