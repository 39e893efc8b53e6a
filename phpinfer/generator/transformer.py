"""
推导类型 → OpenAPI Schema
==========================
TypeTransformer 把推导引擎得到的 Type 转换成 schema 类型：

    list 形状 array{int, int}          →  {type: array, items: <第一项>}
    array<int, V>                      →  {type: array, items: V}
    array<string, V>                   →  {type: object, additionalProperties: V}
    array{a: int, b?: string}          →  {type: object, properties, required: [a]}
    T|null                             →  T + nullable
    A|B / A&B                          →  anyOf / allOf
    unknown                            →  string（不加约束的默认）

注册的扩展按顺序依次尝试，后一个接受的结果覆盖前一个。
"""

from __future__ import annotations
import logging
from typing import Optional

from ..semantic import type as t
from .schema import Schema, Reference, Components, Response
from .types import (
    SchemaType, StringType, IntegerType, NumberType, BooleanType, NullType,
    ArrayType, ObjectType, AnyOf, AllOf,
)

logger = logging.getLogger(__name__)


class TypeToSchemaExtension:
    """
    扩展基类。子类按需覆盖：

        should_handle(type)            是否处理该类型
        to_schema(type, previous)      返回 SchemaType；None 表示不处理
        to_response(type, previous)    返回 Response；None 表示不处理
        reference(type)                返回 Reference 时结果登记到 components
    """
    def __init__(self, infer, transformer: 'TypeTransformer', components: Components):
        self.infer = infer
        self.transformer = transformer
        self.components = components

    def should_handle(self, type_: t.Type) -> bool:
        return False

    def to_schema(self, type_: t.Type, previous: Optional[SchemaType]) -> Optional[SchemaType]:
        return None

    def to_response(self, type_: t.Type, previous: Optional[Response]) -> Optional[Response]:
        return None

    def reference(self, type_: t.Type) -> Optional[Reference]:
        return None


class TypeTransformer:
    """
    用法::

        transformer = TypeTransformer(infer, Components(), extensions=[MyExtension])
        schema = transformer.transform(return_type)
        print(schema.to_dict())
    """

    def __init__(self, infer, components: Components = None, extensions: list = ()):
        """
        Args:
            infer:      推导上下文（传给扩展）
            components: 可复用 schema 注册表
            extensions: TypeToSchemaExtension 子类列表，按顺序归约
        """
        self.infer = infer
        self.components = components if components is not None else Components()
        self._extensions = [ext(infer, self, self.components) for ext in extensions]

    def get_components(self) -> Components:
        return self.components

    # ══════════════════════════════════════════════════════════════════════
    # Type → SchemaType
    # ══════════════════════════════════════════════════════════════════════

    def transform(self, type_: t.Type) -> SchemaType:
        schema = self._transform_builtin(type_)
        handled = self._handle_using_extensions(type_)
        if handled is not None:
            schema = handled
        return schema

    def _transform_builtin(self, type_: t.Type) -> SchemaType:
        if isinstance(type_, t.ArrayType):
            return self._transform_array(type_)
        if isinstance(type_, t.ArrayMapType):
            return self._transform_map(type_)
        if isinstance(type_, t.Union):
            return self._transform_union(type_)
        if isinstance(type_, t.IntersectionType):
            return AllOf().set_items(self.transform(m) for m in type_.types)
        if isinstance(type_, t.StringType):
            return StringType()
        if isinstance(type_, t.FloatType):
            return NumberType()
        if isinstance(type_, t.IntegerType):
            return IntegerType()
        if isinstance(type_, t.BooleanType):
            return BooleanType()
        if isinstance(type_, t.NullType):
            return NullType()
        if isinstance(type_, t.ObjectType):
            return ObjectType()
        return StringType()

    def _transform_array(self, type_: t.ArrayType) -> SchemaType:
        items = type_.items
        single_int_key = len(items) == 1 and isinstance(items[0].key, int)
        if type_.is_list or single_int_key:
            item_schema = self.transform(items[0].value) if items else StringType()
            return ArrayType(item_schema)

        obj = ObjectType()
        required = []
        next_index = 0
        for item in items:
            # 顺序项取 PHP 分配的下一个整数键
            key = next_index if item.key is None else item.key
            if isinstance(key, int):
                next_index = max(next_index, key + 1)
            if not item.optional:
                required.append(str(key))
            obj.add_property(str(key), self.transform_item(item))
        return obj.set_required(required)

    def transform_item(self, item: t.ArrayItem) -> SchemaType:
        """数组形状中的一项：@var 注释的说明文字写入 description"""
        schema = self.transform(item.value)
        if item.description:
            schema.set_description(item.description)
        return schema

    def _transform_map(self, type_: t.ArrayMapType) -> SchemaType:
        value = self.transform(type_.value_type)
        key = self.transform(type_.key_type) if type_.key_type is not None else IntegerType()
        if isinstance(key, IntegerType):
            return ArrayType(value)
        return ObjectType().set_additional_properties(value)

    def _transform_union(self, type_: t.Union) -> SchemaType:
        types = type_.types
        if len(types) == 2 and any(isinstance(m, t.NullType) for m in types):
            not_null = next(m for m in types if not isinstance(m, t.NullType))
            return self.transform(not_null).nullable(True)
        return AnyOf().set_items(self.transform(m) for m in types)

    def _handle_using_extensions(self, type_: t.Type) -> Optional[SchemaType]:
        acc = None
        for extension in self._extensions:
            if not extension.should_handle(type_):
                continue
            reference = extension.reference(type_)
            if reference is not None and self.components.has_schema(reference.full_name):
                acc = reference
                continue
            handled = extension.to_schema(type_, acc)
            if handled is None:
                continue
            if reference is not None:
                acc = self.components.add_schema(reference.full_name, Schema.from_type(handled))
            else:
                acc = handled
            logger.debug("%s handled %s", type(extension).__name__, type_)
        return acc

    # ══════════════════════════════════════════════════════════════════════
    # Type → Response
    # ══════════════════════════════════════════════════════════════════════

    def to_response(self, type_: t.Type) -> Response:
        response = self._handle_response_using_extensions(type_)
        if response is not None:
            return response
        return (Response.make(200)
                .set_content('application/json', Schema.from_type(self.transform(type_))))

    def _handle_response_using_extensions(self, type_: t.Type) -> Optional[Response]:
        acc = None
        for extension in self._extensions:
            if not extension.should_handle(type_):
                continue
            response = extension.to_response(type_, acc)
            if response is not None:
                acc = response
        return acc
