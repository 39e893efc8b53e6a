"""
Schema 容器：Schema / Reference / Components / Response
"""

from __future__ import annotations
from typing import Optional

from .types import SchemaType


class Schema:
    """一个具名或匿名的 schema（包装 SchemaType）"""
    def __init__(self, type_: SchemaType, title: str = ''):
        self.type = type_
        self.title = title

    @classmethod
    def from_type(cls, type_: SchemaType) -> 'Schema':
        return cls(type_)

    def to_dict(self) -> dict:
        result = self.type.to_dict()
        if self.title:
            result = {'title': self.title, **result}
        return result


class Reference(SchemaType):
    """指向 components 中某个 schema 的 $ref"""
    def __init__(self, ref_type: str, full_name: str, components: 'Components'):
        super().__init__()
        self.ref_type = ref_type
        self.full_name = full_name
        self.components = components

    @property
    def short_name(self) -> str:
        return self.full_name.rsplit('\\', 1)[-1]

    def to_dict(self):
        return {'$ref': f"#/components/{self.ref_type}/{self.components.unique_name(self.full_name)}"}


class Components:
    """可复用 schema 的注册表，键为全限定类名"""
    def __init__(self):
        self.schemas: dict[str, Schema] = {}

    def has_schema(self, name: str) -> bool:
        return name in self.schemas

    def add_schema(self, name: str, schema: Schema) -> Reference:
        self.schemas[name] = schema
        return Reference('schemas', name, self)

    def get_schema(self, name: str) -> Optional[Schema]:
        return self.schemas.get(name)

    def unique_name(self, name: str) -> str:
        """短类名不冲突时用短类名，否则用点分的全名"""
        short = name.rsplit('\\', 1)[-1]
        clashes = [n for n in self.schemas if n.rsplit('\\', 1)[-1] == short]
        return short if len(clashes) <= 1 else name.replace('\\', '.')

    def to_dict(self) -> dict:
        if not self.schemas:
            return {}
        return {'schemas': {self.unique_name(n): s.to_dict() for n, s in self.schemas.items()}}


class Response:
    def __init__(self, code: int):
        self.code = code
        self.description = ''
        self.content: dict[str, Schema] = {}

    @classmethod
    def make(cls, code: int) -> 'Response':
        return cls(code)

    def set_content(self, media_type: str, schema: Schema) -> 'Response':
        self.content[media_type] = schema
        return self

    def set_description(self, description: str) -> 'Response':
        self.description = description
        return self

    def to_dict(self) -> dict:
        result = {'description': self.description}
        if self.content:
            result['content'] = {mt: {'schema': s.to_dict()} for mt, s in self.content.items()}
        return result
