"""
PHPDoc 注释解析
================
把 /** ... */ 文档块拆成标签列表，并把标签里的类型表达式转换成推导类型。

支持的类型表达式：
    int / string / Foo\\Bar         标量与类名
    ?T   A|B   A&B   (A|B)[]        可空、联合、交叉、括号、列表后缀
    array<V>  array<K, V>  list<V>  泛型数组
    array{a: int, b?: string}       数组形状

类型表达式用一份内嵌的 Lark LALR 文法解析；无法解析时得到 unknown。
"""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from lark import Lark, Transformer, exceptions as lark_exc

from .type import (
    Type, ArrayType, ArrayItem, ArrayMapType, ObjectType, IntersectionType,
    FunctionType, UNKNOWN, NULL, SCALAR_TYPES, union,
)

logger = logging.getLogger(__name__)

# 名字 → ObjectType 的解析回调（由推导上下文提供，用于挂上 ClassType 记录）
ClassResolver = Callable[[str], Type]


# ──────────────────────────────────────────────────────────────────────────────
# 文档块 / 标签
# ──────────────────────────────────────────────────────────────────────────────

# 这些标签的第一个参数是类型表达式
_TYPED_TAGS = {
    'var', 'param', 'return', 'throws',
    'property', 'property-read', 'property-write',
}


@dataclass
class DocTag:
    """
    一条 @tag。

    @var int $with_doc great  →  name='var', type_expr='int',
                                  variable='with_doc', description='great'
    """
    name:        str
    type_expr:   str = ''
    variable:    Optional[str] = None
    description: str = ''

    def __str__(self):
        parts = [f"@{self.name}", self.type_expr]
        if self.variable:
            parts.append(f"${self.variable}")
        if self.description:
            parts.append(self.description)
        return ' '.join(p for p in parts if p)


@dataclass
class DocBlock:
    summary: str = ''
    tags:    list[DocTag] = field(default_factory=list)

    @classmethod
    def parse(cls, text: Optional[str]) -> 'DocBlock':
        if not text:
            return cls()
        body = text.strip()
        if body.startswith('/**'):
            body = body[3:]
        if body.endswith('*/'):
            body = body[:-2]

        summary: list[str] = []
        raw_tags: list[list[str]] = []
        for line in body.splitlines():
            line = re.sub(r'^\s*\*?\s?', '', line).rstrip()
            if line.startswith('@'):
                raw_tags.append([line])
            elif raw_tags:
                if line:
                    raw_tags[-1].append(line.strip())
            elif line:
                summary.append(line.strip())

        tags = [_parse_tag(' '.join(parts)) for parts in raw_tags]
        return cls(summary=' '.join(summary), tags=tags)

    def all(self, name: str) -> list[DocTag]:
        return [t for t in self.tags if t.name == name]

    def first(self, name: str) -> Optional[DocTag]:
        return next((t for t in self.tags if t.name == name), None)

    def var_tag(self, variable: str = None) -> Optional[DocTag]:
        """
        取 @var 标签。指定 variable 时只匹配同名或未写变量名的标签。
        """
        for tag in self.all('var'):
            if variable is None or tag.variable in (None, variable):
                return tag
        return None

    def param_tag(self, variable: str) -> Optional[DocTag]:
        return next((t for t in self.all('param') if t.variable == variable), None)

    def property_tags(self) -> list[DocTag]:
        return [t for t in self.tags
                if t.name in ('property', 'property-read', 'property-write')]

    def __bool__(self):
        return bool(self.summary or self.tags)


def _parse_tag(line: str) -> DocTag:
    m = re.match(r'@([\w\-\\]+)\s*(.*)', line, re.S)
    name, rest = m.group(1).lower(), m.group(2).strip()
    if name not in _TYPED_TAGS:
        return DocTag(name=name, description=rest)

    type_expr, rest = _split_type_expr(rest)
    variable = None
    vm = re.match(r'&?(?:\.\.\.)?\$(\w+)\s*(.*)', rest, re.S)
    if vm:
        variable, rest = vm.group(1), vm.group(2)
    elif type_expr.startswith('$'):
        # "@param $x desc"：没有写类型
        variable, type_expr = type_expr[1:], ''
    return DocTag(name=name, type_expr=type_expr, variable=variable,
                  description=rest.strip())


def _split_type_expr(text: str) -> tuple[str, str]:
    """
    从标签参数中切出类型表达式：括号层级为 0 时遇到空白即结束，
    但 | & , : 前后的空白视为表达式内部。
    """
    depth = 0
    i = 0
    while i < len(text):
        ch = text[i]
        if ch in '<{(':
            depth += 1
        elif ch in '>})':
            depth -= 1
        elif ch.isspace() and depth <= 0:
            rest = text[i:].lstrip()
            prev = text[:i].rstrip()[-1:] if text[:i].strip() else ''
            if rest[:1] in ('|', '&') or prev in ('|', '&'):
                i += 1
                continue
            return text[:i], rest
        i += 1
    return text, ''


# ──────────────────────────────────────────────────────────────────────────────
# 类型表达式文法
# ──────────────────────────────────────────────────────────────────────────────

_TYPE_GRAMMAR = r"""
?start: union

?union: intersection ("|" intersection)*
?intersection: postfix ("&" postfix)*

?postfix: primary
        | postfix "[" "]"                       -> list_of

?primary: atom
        | "?" atom                              -> nullable

?atom: NAME                                     -> named
     | NAME "<" union ("," union)* ">"          -> generic
     | NAME "{" [shape_items] "}"               -> shape
     | "(" union ")"

shape_items: shape_item ("," shape_item)* ","?
shape_item: shape_key OPTIONAL? ":" union       -> keyed_item
          | union                               -> value_item
shape_key: NAME | INT | STRING

OPTIONAL: "?"
NAME: /\$?\\?[A-Za-z_][\w\-]*(?:\\[A-Za-z_][\w\-]*)*/
INT: /-?\d+/
STRING: /'[^']*'|"[^"]*"/

%import common.WS
%ignore WS
"""

_parser: Optional[Lark] = None


def _get_parser() -> Lark:
    global _parser
    if _parser is None:
        _parser = Lark(_TYPE_GRAMMAR, parser='lalr')
    return _parser


_ARRAY_NAMES = {'array', 'iterable', 'list', 'non-empty-array', 'non-empty-list'}
_SELF_NAMES  = {'self', 'static', '$this'}


def named_type(name: str, self_class: Optional[str] = None,
               resolver: Optional[ClassResolver] = None) -> Type:
    """单个类型名 → 推导类型（标量表优先，其次是特殊名，最后视为类名）"""
    lname = name.lstrip('\\').lower()
    if lname in SCALAR_TYPES:
        return SCALAR_TYPES[lname]
    if lname in _ARRAY_NAMES:
        return ArrayType()
    if lname in _SELF_NAMES:
        if self_class is None:
            return UNKNOWN
        return resolver(self_class) if resolver else ObjectType(self_class)
    if lname == 'callable':
        return FunctionType(UNKNOWN)
    if lname in ('object', 'resource', 'never'):
        return ObjectType('object') if lname == 'object' else UNKNOWN
    clean = name.lstrip('\\')
    return resolver(clean) if resolver else ObjectType(clean)


class _TypeBuilder(Transformer):
    """类型表达式 CST → Type"""

    def __init__(self, self_class=None, resolver=None):
        super().__init__()
        self._self_class = self_class
        self._resolver = resolver

    def named(self, items):
        return named_type(str(items[0]), self._self_class, self._resolver)

    def generic(self, items):
        base, args = str(items[0]).lower(), items[1:]
        if base in _ARRAY_NAMES or base == 'collection':
            if len(args) == 1:
                return ArrayMapType(None, args[0])
            return ArrayMapType(args[0], args[-1])
        if base == 'class-string':
            return SCALAR_TYPES['string']
        # Collection<Foo> 之类：只保留容器类本身
        return named_type(str(items[0]), self._self_class, self._resolver)

    def shape(self, items):
        base = str(items[0]).lower()
        entries = items[1] or []
        if base == 'object':
            return ObjectType('object')
        return ArrayType(entries)

    def shape_items(self, items):
        return list(items)

    def keyed_item(self, items):
        key = items[0]
        optional = len(items) == 3
        return ArrayItem(key, items[-1], optional=optional)

    def value_item(self, items):
        return ArrayItem(None, items[0])

    def shape_key(self, items):
        tok = items[0]
        if tok.type == 'INT':
            return int(tok)
        if tok.type == 'STRING':
            return str(tok)[1:-1]
        return str(tok)

    def list_of(self, items):
        return ArrayMapType(None, items[0])

    def nullable(self, items):
        return union([items[0], NULL])

    def union(self, items):
        return union(items)

    def intersection(self, items):
        return IntersectionType(items)


def to_type(expr: str, self_class: Optional[str] = None,
            resolver: Optional[ClassResolver] = None) -> Type:
    """
    PHPDoc 类型表达式 → Type。空串或语法错误返回 unknown。
    """
    expr = (expr or '').strip()
    if not expr:
        return UNKNOWN
    try:
        tree = _get_parser().parse(expr)
    except lark_exc.LarkError as e:
        logger.debug("unparseable doc type %r: %s", expr, e)
        return UNKNOWN
    return _TypeBuilder(self_class, resolver).transform(tree)


def type_hint_to_type(hint, self_class: Optional[str] = None,
                      resolver: Optional[ClassResolver] = None) -> Type:
    """
    原生类型声明（transformer.TypeHint）→ Type。hint 为 None 时返回 unknown。
    """
    if hint is None:
        return UNKNOWN
    parts = [named_type(n, self_class, resolver) for n in hint.names]
    if hint.kind == 'nullable':
        return union(parts + [NULL])
    if hint.kind == 'intersection':
        return IntersectionType(parts)
    return union(parts)
