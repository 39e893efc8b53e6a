"""OpenAPI 请求参数"""

from __future__ import annotations
from typing import Optional

from .schema import Schema


class Parameter:
    """
    Attributes:
        name: 参数名
        in_:  "query" / "header" / "path" / "cookie"；path 参数总是 required
    """
    def __init__(self, name: str, in_: str):
        self.name = name
        self.in_ = in_
        self.required_ = in_ == 'path'
        self.description_ = ''
        self.deprecated = False
        self.allow_empty_value = False
        self.schema: Optional[Schema] = None

    @classmethod
    def make(cls, name: str, in_: str) -> 'Parameter':
        return cls(name, in_)

    def required(self, required: bool) -> 'Parameter':
        self.required_ = required
        return self

    def description(self, description: str) -> 'Parameter':
        self.description_ = description
        return self

    def set_schema(self, schema: Optional[Schema]) -> 'Parameter':
        self.schema = schema
        return self

    def to_dict(self) -> dict:
        fields = {
            'name': self.name,
            'in': self.in_,
            'required': self.required_,
            'description': self.description_,
            'deprecated': self.deprecated,
            'allowEmptyValue': self.allow_empty_value,
        }
        result = {k: v for k, v in fields.items() if v}
        if self.schema is not None:
            result['schema'] = self.schema.to_dict()
        return result
