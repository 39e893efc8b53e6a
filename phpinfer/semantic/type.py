"""
PHP 推导类型系统
================
推导结果的代数表示：标量（可带字面量值）、数组形状、对象、
联合 / 交叉类型、可调用类型，以及推导失败时的 unknown。

所有类型都是不可变值对象，按结构比较；to_string() 给出规范文本
（如 ``int(1)``、``array{a: int(1)}``、``unknown|int(1)``），
既用于调试输出，也是测试断言的依据。
"""

from __future__ import annotations
from typing import Iterable, Optional


class Type:
    """所有类型的基类"""
    def __eq__(self, other):
        return type(other) is type(self)

    def __hash__(self):
        return hash(self.to_string())

    def __repr__(self):
        return self.to_string()

    def to_string(self) -> str:
        return self.__class__.__name__

    @property
    def is_literal(self) -> bool:
        return False

    def get_method_call_type(self, name: str) -> 'Type':
        """鸭子类型调用：只有已知类的对象能解析方法，其余一律 unknown"""
        return UNKNOWN


# ──────────────────────────────────────────────────────────────────────────────
# 哨兵 / 简单类型
# ──────────────────────────────────────────────────────────────────────────────

class UnknownType(Type):
    """推导不出的类型。下游生成 schema 时视为"无约束"而不是错误。"""
    def to_string(self):
        return 'unknown'


class NullType(Type):
    def to_string(self):
        return 'null'


class BooleanType(Type):
    def to_string(self):
        return 'boolean'


# ──────────────────────────────────────────────────────────────────────────────
# 可带字面量值的标量
# ──────────────────────────────────────────────────────────────────────────────

class _ScalarType(Type):
    """int / float / string 共用：value 为 None 表示非字面量"""
    name = ''

    def __init__(self, value=None):
        self.value = value

    @property
    def is_literal(self) -> bool:
        return self.value is not None

    def widen(self) -> '_ScalarType':
        return type(self)()

    def __eq__(self, other):
        return type(other) is type(self) and self.value == other.value

    def __hash__(self):
        return hash((self.name, self.value))

    def to_string(self):
        if self.value is None:
            return self.name
        return f"{self.name}({self._format_value()})"

    def _format_value(self) -> str:
        return str(self.value)


class IntegerType(_ScalarType):
    name = 'int'


class FloatType(_ScalarType):
    name = 'float'

    def _format_value(self):
        return repr(float(self.value))


class StringType(_ScalarType):
    name = 'string'


# ──────────────────────────────────────────────────────────────────────────────
# 数组
# ──────────────────────────────────────────────────────────────────────────────

class ArrayItem:
    """
    数组形状中的一项。

    Attributes:
        key:         int / str；None 表示顺序（list 风格）项
        value:       值类型
        optional:    键可能不存在
        description: 来自 @var 注释的说明文字（不参与比较）
        doc_hinted:  值类型来自 @var 注释
    """
    def __init__(self, key, value: Type, optional: bool = False,
                 description: str = '', doc_hinted: bool = False):
        self.key = key
        self.value = value
        self.optional = optional
        self.description = description
        self.doc_hinted = doc_hinted

    def __eq__(self, other):
        return (isinstance(other, ArrayItem) and self.key == other.key
                and self.value == other.value and self.optional == other.optional)

    def __hash__(self):
        return hash((self.key, self.value, self.optional))

    def __repr__(self):
        return self.to_string()

    def to_string(self) -> str:
        if self.key is None:
            return self.value.to_string()
        mark = '?' if self.optional else ''
        return f"{self.key}{mark}: {self.value.to_string()}"


class ArrayType(Type):
    """
    数组形状：有序的 (key, value, optional) 列表。
    全部 key 为 None 时表示 list；出现 str / int key 时表示 map 风格的形状。
    """
    def __init__(self, items: Iterable[ArrayItem] = ()):
        self.items: tuple[ArrayItem, ...] = tuple(items)

    @property
    def is_list(self) -> bool:
        return all(item.key is None for item in self.items)

    def get_item(self, key) -> Optional[ArrayItem]:
        for item in self.items:
            if item.key is not None and item.key == key:
                return item
        return None

    def with_item(self, item: ArrayItem) -> 'ArrayType':
        """返回替换（或追加）一项后的新形状"""
        if item.key is None:
            return ArrayType(self.items + (item,))
        items = list(self.items)
        for i, old in enumerate(items):
            if old.key == item.key:
                items[i] = item
                return ArrayType(items)
        items.append(item)
        return ArrayType(items)

    def __eq__(self, other):
        return isinstance(other, ArrayType) and self.items == other.items

    def __hash__(self):
        return hash(('array', self.items))

    def to_string(self):
        return 'array{' + ', '.join(i.to_string() for i in self.items) + '}'


class ArrayMapType(Type):
    """
    泛型键值数组 array<K, V>。
    key_type 为 None 表示 list<V>。
    数组字面量中出现无法静态确定的 key 时，整个形状退化成这种类型。
    """
    def __init__(self, key_type: Optional[Type], value_type: Type):
        self.key_type = key_type
        self.value_type = value_type

    def __eq__(self, other):
        return (isinstance(other, ArrayMapType) and self.key_type == other.key_type
                and self.value_type == other.value_type)

    def __hash__(self):
        return hash(('map', self.key_type, self.value_type))

    def to_string(self):
        if self.key_type is None:
            return f"array<{self.value_type.to_string()}>"
        return f"array<{self.key_type.to_string()}, {self.value_type.to_string()}>"


# ──────────────────────────────────────────────────────────────────────────────
# 对象
# ──────────────────────────────────────────────────────────────────────────────

class ObjectType(Type):
    """
    类实例类型。

    class_type 指向推导上下文里的 ClassType 记录（方法返回类型缓存）；
    未知类时为 None，此时所有方法调用都是 unknown。
    """
    def __init__(self, name: str, class_type=None):
        self.name = name.lstrip('\\')
        self.class_type = class_type

    @property
    def key(self) -> str:
        return self.name.lower()

    def get_method_call_type(self, name: str) -> Type:
        if self.class_type is None:
            return UNKNOWN
        return self.class_type.get_method_type(name)

    def get_property_type(self, name: str) -> Type:
        if self.class_type is None:
            return UNKNOWN
        return self.class_type.get_property_type(name)

    def __eq__(self, other):
        return isinstance(other, ObjectType) and self.key == other.key

    def __hash__(self):
        return hash(('object', self.key))

    def to_string(self):
        return self.name


# ──────────────────────────────────────────────────────────────────────────────
# 复合类型
# ──────────────────────────────────────────────────────────────────────────────

class Union(Type):
    """联合类型。不要直接构造，使用 union()，它负责展平 / 去重 / 单元素塌缩。"""
    def __init__(self, types: Iterable[Type]):
        self.types: tuple[Type, ...] = tuple(types)

    def __eq__(self, other):
        return isinstance(other, Union) and frozenset(self.types) == frozenset(other.types)

    def __hash__(self):
        return hash(('union', frozenset(self.types)))

    def to_string(self):
        return '|'.join(t.to_string() for t in self.types)


class IntersectionType(Type):
    def __init__(self, types: Iterable[Type]):
        self.types: tuple[Type, ...] = tuple(types)

    def __eq__(self, other):
        return (isinstance(other, IntersectionType)
                and frozenset(self.types) == frozenset(other.types))

    def __hash__(self):
        return hash(('intersection', frozenset(self.types)))

    def to_string(self):
        return '&'.join(t.to_string() for t in self.types)


class FunctionType(Type):
    """闭包 / 箭头函数：参数类型列表 + 返回类型"""
    def __init__(self, return_type: Type, params: Iterable[Type] = ()):
        self.return_type = return_type
        self.params: tuple[Type, ...] = tuple(params)

    def __eq__(self, other):
        return (isinstance(other, FunctionType) and self.return_type == other.return_type
                and self.params == other.params)

    def __hash__(self):
        return hash(('func', self.return_type, self.params))

    def to_string(self):
        params = ', '.join(p.to_string() for p in self.params)
        return f"({params}): {self.return_type.to_string()}"


# ──────────────────────────────────────────────────────────────────────────────
# 预定义类型常量
# ──────────────────────────────────────────────────────────────────────────────

UNKNOWN = UnknownType()
NULL    = NullType()
BOOLEAN = BooleanType()
INT     = IntegerType()
FLOAT   = FloatType()
STRING  = StringType()

# 类型提示 / PHPDoc 中可直接映射的标量名
SCALAR_TYPES: dict[str, Type] = {
    'int': INT, 'integer': INT,
    'positive-int': INT, 'negative-int': INT, 'non-negative-int': INT,
    'float': FLOAT, 'double': FLOAT,
    'string': STRING, 'non-empty-string': STRING, 'class-string': STRING,
    'numeric-string': STRING,
    'bool': BOOLEAN, 'boolean': BOOLEAN, 'true': BOOLEAN, 'false': BOOLEAN,
    'null': NULL, 'void': NULL,
    'mixed': UNKNOWN,
}


# ──────────────────────────────────────────────────────────────────────────────
# 类型工具函数
# ──────────────────────────────────────────────────────────────────────────────

def union(types: Iterable[Type]) -> Type:
    """
    由候选类型列表构造联合类型：
      - 递归展平嵌套 Union
      - 按结构去重
      - 保持首次出现顺序
      - 只剩一个成员时直接返回该成员；空列表为 unknown
    """
    members: list[Type] = []
    seen = set()
    for t in _flatten(types):
        if t in seen:
            continue
        seen.add(t)
        members.append(t)
    if not members:
        return UNKNOWN
    if len(members) == 1:
        return members[0]
    return Union(members)


def _flatten(types: Iterable[Type]):
    for t in types:
        if isinstance(t, Union):
            yield from _flatten(t.types)
        else:
            yield t


def widen(t: Type) -> Type:
    """去掉字面量值（int(1) → int），其他类型原样返回"""
    if isinstance(t, _ScalarType):
        return t.widen()
    if isinstance(t, Union):
        return union(widen(m) for m in t.types)
    return t


def remove_null(t: Type) -> Type:
    if isinstance(t, NullType):
        return UNKNOWN
    if isinstance(t, Union):
        return union(m for m in t.types if not isinstance(m, NullType))
    return t


def is_unknown(t: Type) -> bool:
    return isinstance(t, UnknownType)


def members(t: Type) -> tuple[Type, ...]:
    """联合类型的成员；非联合类型视为单成员"""
    return t.types if isinstance(t, Union) else (t,)


def literal_of(value) -> Type:
    """Python 值 → 字面量类型"""
    if value is None:
        return NULL
    if isinstance(value, bool):
        return BOOLEAN
    if isinstance(value, int):
        return IntegerType(value)
    if isinstance(value, float):
        return FloatType(value)
    if isinstance(value, str):
        return StringType(value)
    return UNKNOWN


def is_numeric(t: Type) -> bool:
    return isinstance(t, (IntegerType, FloatType))
