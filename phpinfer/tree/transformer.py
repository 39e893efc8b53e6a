"""
PHP AST Transformer
===================
将 Lark 生成的 CST（具体语法树）转换为推导器使用的 AST 节点树。

使用 Lark 的 Transformer 机制：每个方法对应 grammar 中一条规则（或别名），
接收已转换的子节点，返回 AST 节点对象。

文档注释（/** ... */）在文法里被忽略；Transformer 构造时从源码中
单独收集，按"注释结束后紧跟的位置"挂到对应节点的 .doc 上。

使用方式：
    transformer = PhpTransformer(source)
    ast = transformer.transform(lark_tree)
"""

import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

from lark import Transformer, Token, v_args


# ──────────────────────────────────────────────────────────────────────────────
# AST 节点基类
# ──────────────────────────────────────────────────────────────────────────────

class ASTNode:
    """
    所有 AST 节点的公共基类。

    Attributes:
        line, col: 源码位置（由 Transformer 从 meta 填入）
        doc:       紧贴在节点前的文档注释原文（没有则为 None）
    """
    line: int = -1
    col:  int = -1
    doc:  Optional[str] = None

    def _pos(self):
        return f"{self.line}:{self.col}"

    def __repr__(self):
        return f"{self.__class__.__name__}@{self._pos()}"


# ──────────────────────────────────────────────────────────────────────────────
# 顶层 & 声明节点
# ──────────────────────────────────────────────────────────────────────────────

@dataclass
class FileNode(ASTNode):
    """一个 .php 文件"""
    stmts: List[ASTNode] = field(default_factory=list)


@dataclass
class NamespaceDecl(ASTNode):
    name: str = ''


@dataclass
class UseDecl(ASTNode):
    """use Foo\\Bar as Baz; → items = [('Foo\\Bar', 'Baz')]"""
    items: List[tuple] = field(default_factory=list)


@dataclass
class TypeHint(ASTNode):
    """原生类型声明：kind 为 'union' / 'nullable' / 'intersection'"""
    kind:  str = 'union'
    names: List[str] = field(default_factory=list)


@dataclass
class Param(ASTNode):
    name:      str = ''
    type_hint: Optional[TypeHint] = None
    default:   Optional[ASTNode] = None
    variadic:  bool = False
    modifiers: List[str] = field(default_factory=list)


@dataclass
class MethodDecl(ASTNode):
    name:        str = ''
    params:      List[Param] = field(default_factory=list)
    return_hint: Optional[TypeHint] = None
    body:        Optional['Block'] = None      # None：抽象方法 / 接口方法
    modifiers:   List[str] = field(default_factory=list)

    @property
    def is_static(self) -> bool:
        return 'static' in self.modifiers


@dataclass
class FunctionDecl(ASTNode):
    name:        str = ''
    params:      List[Param] = field(default_factory=list)
    return_hint: Optional[TypeHint] = None
    body:        'Block' = None
    namespace:   str = ''
    uses:        dict = field(default_factory=dict)

    @property
    def fqn(self) -> str:
        return f"{self.namespace}\\{self.name}" if self.namespace else self.name


@dataclass
class PropertyDecl(ASTNode):
    name:      str = ''
    type_hint: Optional[TypeHint] = None
    default:   Optional[ASTNode] = None
    modifiers: List[str] = field(default_factory=list)


@dataclass
class ConstDecl(ASTNode):
    name:  str = ''
    value: ASTNode = None


@dataclass
class ClassDecl(ASTNode):
    """
    class / trait / interface 声明。
    namespace 由 ClassIndex 登记时填写。
    """
    name:       str = ''
    kind:       str = 'class'
    parent:     Optional[str] = None
    interfaces: List[str] = field(default_factory=list)
    traits:     List[str] = field(default_factory=list)
    methods:    List[MethodDecl] = field(default_factory=list)
    properties: List[PropertyDecl] = field(default_factory=list)
    constants:  List[ConstDecl] = field(default_factory=list)
    modifiers:  List[str] = field(default_factory=list)
    namespace:  str = ''
    uses:       dict = field(default_factory=dict)

    @property
    def fqn(self) -> str:
        return f"{self.namespace}\\{self.name}" if self.namespace else self.name

    def find_method(self, name: str) -> Optional[MethodDecl]:
        lname = name.lower()
        return next((m for m in self.methods if m.name.lower() == lname), None)

    def find_property(self, name: str) -> Optional[PropertyDecl]:
        return next((p for p in self.properties if p.name == name), None)


# ──────────────────────────────────────────────────────────────────────────────
# 语句节点
# ──────────────────────────────────────────────────────────────────────────────

@dataclass
class Block(ASTNode):
    stmts: List[ASTNode] = field(default_factory=list)


@dataclass
class ExprStmt(ASTNode):
    expr: ASTNode = None


@dataclass
class ElseIf(ASTNode):
    cond: ASTNode = None
    body: ASTNode = None


@dataclass
class IfStmt(ASTNode):
    cond:    ASTNode = None
    then_br: ASTNode = None
    elifs:   List[ElseIf] = field(default_factory=list)
    else_br: Optional[ASTNode] = None


@dataclass
class WhileStmt(ASTNode):
    cond: ASTNode = None
    body: ASTNode = None


@dataclass
class DoWhileStmt(ASTNode):
    body: ASTNode = None
    cond: ASTNode = None


@dataclass
class ForStmt(ASTNode):
    init: List[ASTNode] = field(default_factory=list)
    cond: List[ASTNode] = field(default_factory=list)
    step: List[ASTNode] = field(default_factory=list)
    body: ASTNode = None


@dataclass
class ForeachStmt(ASTNode):
    iterable:  ASTNode = None
    key_var:   Optional[ASTNode] = None
    value_var: ASTNode = None
    body:      ASTNode = None


@dataclass
class SwitchCase(ASTNode):
    test:  Optional[ASTNode] = None       # None：default 分支
    stmts: List[ASTNode] = field(default_factory=list)


@dataclass
class SwitchStmt(ASTNode):
    subject: ASTNode = None
    cases:   List[SwitchCase] = field(default_factory=list)


@dataclass
class CatchClause(ASTNode):
    types: List[str] = field(default_factory=list)
    var:   Optional[str] = None
    body:  'Block' = None


@dataclass
class TryStmt(ASTNode):
    body:         'Block' = None
    catches:      List[CatchClause] = field(default_factory=list)
    finally_body: Optional['Block'] = None


@dataclass
class ReturnStmt(ASTNode):
    value: Optional[ASTNode] = None


@dataclass
class BreakStmt(ASTNode):
    pass


@dataclass
class ContinueStmt(ASTNode):
    pass


@dataclass
class ThrowStmt(ASTNode):
    value: ASTNode = None


@dataclass
class EchoStmt(ASTNode):
    exprs: List[ASTNode] = field(default_factory=list)


@dataclass
class GlobalStmt(ASTNode):
    names: List[str] = field(default_factory=list)


@dataclass
class StaticVarStmt(ASTNode):
    vars: List[tuple] = field(default_factory=list)   # (name, default)


@dataclass
class IncludeStmt(ASTNode):
    expr: ASTNode = None


# ──────────────────────────────────────────────────────────────────────────────
# 表达式节点
# ──────────────────────────────────────────────────────────────────────────────

@dataclass
class Variable(ASTNode):
    name: str = ''

    def __repr__(self):
        return f"Var(${self.name})"


@dataclass
class IntLiteral(ASTNode):
    value: int = 0


@dataclass
class FloatLiteral(ASTNode):
    value: float = 0.0


@dataclass
class StringLiteral(ASTNode):
    value:        str = ''
    interpolated: bool = False    # 双引号字符串中含有 $var / {$expr}


@dataclass
class BoolLiteral(ASTNode):
    value: bool = False


@dataclass
class NullLiteral(ASTNode):
    pass


@dataclass
class ConstFetch(ASTNode):
    name: str = ''


@dataclass
class ArrayItemNode(ASTNode):
    key:    Optional[ASTNode] = None
    value:  ASTNode = None
    spread: bool = False


@dataclass
class ArrayLiteral(ASTNode):
    items: List[ArrayItemNode] = field(default_factory=list)


@dataclass
class BinaryOp(ASTNode):
    op:    str = ''
    left:  ASTNode = None
    right: ASTNode = None

    def __repr__(self):
        return f"BinOp({self.op})"


@dataclass
class UnaryOp(ASTNode):
    op:      str = ''
    operand: ASTNode = None


@dataclass
class CastExpr(ASTNode):
    target: str = ''      # 规范化后的目标类型名：int / float / string / bool / array / object
    expr:   ASTNode = None


@dataclass
class IncDec(ASTNode):
    op:     str = '++'
    target: ASTNode = None
    prefix: bool = False


@dataclass
class Assign(ASTNode):
    op:     str = '='     # '=', '+=', '.=', '??=' ...
    target: ASTNode = None
    value:  ASTNode = None


@dataclass
class TernaryOp(ASTNode):
    """cond ? then_expr : else_expr；短三元 a ?: b 的 then_expr 为 None"""
    cond:      ASTNode = None
    then_expr: Optional[ASTNode] = None
    else_expr: ASTNode = None


@dataclass
class Instanceof(ASTNode):
    expr:      ASTNode = None
    class_ref: Any = None


@dataclass
class CloneExpr(ASTNode):
    expr: ASTNode = None


@dataclass
class Argument(ASTNode):
    value:  ASTNode = None
    name:   Optional[str] = None
    spread: bool = False


@dataclass
class MethodCall(ASTNode):
    obj:      ASTNode = None
    name:     str = ''
    args:     List[Argument] = field(default_factory=list)
    nullsafe: bool = False


@dataclass
class PropertyFetch(ASTNode):
    obj:      ASTNode = None
    name:     str = ''
    nullsafe: bool = False


@dataclass
class IndexFetch(ASTNode):
    obj:   ASTNode = None
    index: Optional[ASTNode] = None    # None：$a[] 追加写法


@dataclass
class StaticCall(ASTNode):
    class_ref: Any = None     # str 类名（含 self/static/parent）或 Variable
    name:      str = ''
    args:      List[Argument] = field(default_factory=list)


@dataclass
class StaticPropertyFetch(ASTNode):
    class_ref: Any = None
    name:      str = ''


@dataclass
class ClassConstFetch(ASTNode):
    class_ref: Any = None
    name:      str = ''


@dataclass
class FuncCall(ASTNode):
    name: str = ''
    args: List[Argument] = field(default_factory=list)


@dataclass
class DynamicCall(ASTNode):
    callee: ASTNode = None
    args:   List[Argument] = field(default_factory=list)


@dataclass
class NewExpr(ASTNode):
    class_ref: Any = None
    args:      List[Argument] = field(default_factory=list)


@dataclass
class Closure(ASTNode):
    """
    闭包 function () use (...) { ... } 与箭头函数 fn () => expr。
    箭头函数 arrow=True，函数体是 body_expr。
    """
    params:      List[Param] = field(default_factory=list)
    uses:        List[str] = field(default_factory=list)
    return_hint: Optional[TypeHint] = None
    body:        Optional[Block] = None
    body_expr:   Optional[ASTNode] = None
    arrow:       bool = False
    is_static:   bool = False


@dataclass
class MatchArm(ASTNode):
    conds: Optional[List[ASTNode]] = None     # None：default 分支
    body:  ASTNode = None


@dataclass
class MatchExpr(ASTNode):
    subject: ASTNode = None
    arms:    List[MatchArm] = field(default_factory=list)


# ──────────────────────────────────────────────────────────────────────────────
# 辅助
# ──────────────────────────────────────────────────────────────────────────────

_DOC_RE = re.compile(r'/\*\*[\s\S]*?\*/')

_CAST_NAMES = {
    'int': 'int', 'integer': 'int',
    'bool': 'bool', 'boolean': 'bool',
    'float': 'float', 'double': 'float', 'real': 'float',
    'string': 'string', 'binary': 'string',
    'array': 'array', 'object': 'object',
}

_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', 'v': '\v', 'f': '\f',
            'e': '\x1b', '0': '\0', '\\': '\\', '$': '$', '"': '"'}

_INTERPOLATION_RE = re.compile(r'(?<!\\)(\$[a-zA-Z_{]|\{\$)')


def collect_docs(source: str) -> dict[int, str]:
    """文档注释 → {注释后第一个非空白字符的偏移: 注释原文}"""
    docs = {}
    for m in _DOC_RE.finditer(source):
        end = m.end()
        while end < len(source) and source[end].isspace():
            end += 1
        docs[end] = m.group(0)
    return docs


def _str(tok) -> str:
    return str(tok)


def _is_tok(tok, *types) -> bool:
    return isinstance(tok, Token) and str(tok.type) in types


def _parse_int(raw: str) -> int:
    raw = raw.replace('_', '')
    low = raw.lower()
    if low.startswith(('0x', '0b')):
        return int(raw, 0)
    if len(raw) > 1 and raw.startswith('0'):
        return int(raw, 8)    # PHP 旧式八进制 0755
    return int(raw)


def _unquote(raw: str) -> tuple[str, bool]:
    """去掉引号并处理转义，返回 (值, 是否含插值)"""
    quote, body = raw[0], raw[1:-1]
    if quote == "'":
        return re.sub(r"\\([\\'])", r'\1', body), False
    interpolated = bool(_INTERPOLATION_RE.search(body))
    value = re.sub(r'\\(.)', lambda m: _ESCAPES.get(m.group(1), m.group(0)), body)
    return value, interpolated


def _args(items) -> List[Argument]:
    return list(items) if items else []


# ──────────────────────────────────────────────────────────────────────────────
# Transformer
# ──────────────────────────────────────────────────────────────────────────────

class PhpTransformer(Transformer):
    """
    将 Lark CST 转换为 PHP AST。
    规则名 / 别名与 php.lark 中的产生式保持一致。

    使用 @v_args(meta=True) 来获取源码位置。
    """

    def __init__(self, source: str = ''):
        super().__init__()
        self._docs = collect_docs(source)

    # ── 辅助 ────────────────────────────────────────────────────────────────

    def _set_pos(self, node: ASTNode, meta, with_doc=False) -> ASTNode:
        if meta is not None and not getattr(meta, 'empty', True):
            node.line = getattr(meta, 'line', -1)
            node.col  = getattr(meta, 'column', -1)
            if with_doc:
                node.doc = self._docs.get(meta.start_pos)
        return node

    @staticmethod
    def _tok_pos(node: ASTNode, tok) -> ASTNode:
        node.line = getattr(tok, 'line', -1) or -1
        node.col  = getattr(tok, 'column', -1) or -1
        return node

    # ── 顶层 ────────────────────────────────────────────────────────────────

    def start(self, items):
        stmts = []
        for item in items:
            if isinstance(item, list):      # 顶层 const A = 1, B = 2;
                stmts.extend(item)
            elif item is not None:
                stmts.append(item)
        return FileNode(stmts=stmts)

    @v_args(meta=True)
    def namespace_decl(self, meta, items):
        return self._set_pos(NamespaceDecl(name=_str(items[0]).lstrip('\\')), meta)

    @v_args(meta=True)
    def use_decl(self, meta, items):
        return self._set_pos(UseDecl(items=list(items)), meta)

    def use_item(self, items):
        name = _str(items[0]).lstrip('\\')
        alias = _str(items[1]) if len(items) > 1 and items[1] is not None else name.rsplit('\\', 1)[-1]
        return (name, alias)

    # ── 类 ──────────────────────────────────────────────────────────────────

    @v_args(meta=True)
    def class_decl(self, meta, items):
        modifiers = [i for i in items if isinstance(i, str) and not isinstance(i, Token)]
        name_tok = next(i for i in items if _is_tok(i, 'NAME'))
        parent = next((i[1] for i in items if isinstance(i, tuple) and i[0] == 'extends'), None)
        interfaces = next((i[1] for i in items if isinstance(i, tuple) and i[0] == 'implements'), [])
        node = ClassDecl(name=_str(name_tok), kind='class', parent=parent,
                         interfaces=interfaces, modifiers=modifiers)
        self._fill_body(node, items[-1])
        return self._set_pos(node, meta, with_doc=True)

    @v_args(meta=True)
    def trait_decl(self, meta, items):
        node = ClassDecl(name=_str(items[0]), kind='trait')
        self._fill_body(node, items[-1])
        return self._set_pos(node, meta, with_doc=True)

    @v_args(meta=True)
    def interface_decl(self, meta, items):
        parents = items[1][1] if len(items) > 2 and items[1] is not None else []
        node = ClassDecl(name=_str(items[0]), kind='interface', interfaces=parents)
        self._fill_body(node, items[-1])
        return self._set_pos(node, meta, with_doc=True)

    @staticmethod
    def _fill_body(node: ClassDecl, members):
        for member in members:
            if isinstance(member, MethodDecl):
                node.methods.append(member)
            elif isinstance(member, list):
                # property_decl / const_decl 一行可声明多个
                for sub in member:
                    if isinstance(sub, PropertyDecl):
                        node.properties.append(sub)
                    elif isinstance(sub, ConstDecl):
                        node.constants.append(sub)
            elif isinstance(member, tuple) and member[0] == 'traits':
                node.traits.extend(member[1])

    def extends(self, items):
        return ('extends', _str(items[0]).lstrip('\\'))

    def implements(self, items):
        return ('implements', items[0])

    def interface_extends(self, items):
        return ('extends', items[0])

    def name_list(self, items):
        return [_str(i).lstrip('\\') for i in items]

    def class_modifier(self, items):
        return _str(items[0]).lower()

    def modifier(self, items):
        return _str(items[0]).lower()

    def class_body(self, items):
        return list(items)

    def trait_use(self, items):
        return ('traits', items[0])

    @v_args(meta=True)
    def method_decl(self, meta, items):
        modifiers = [i for i in items if isinstance(i, str) and not isinstance(i, Token)]
        # member_name 返回 ('name', str)，与 modifier 的普通 str 区分
        name = next(i[1] for i in items if isinstance(i, tuple) and i[0] == 'name')
        params = next((i for i in items if isinstance(i, list)), [])
        hint = next((i for i in items if isinstance(i, TypeHint)), None)
        body = next((i for i in items if isinstance(i, Block)), None)
        node = MethodDecl(name=name, params=params, return_hint=hint,
                          body=body, modifiers=modifiers)
        return self._set_pos(node, meta, with_doc=True)

    @v_args(meta=True)
    def property_decl(self, meta, items):
        modifiers = [i for i in items if isinstance(i, str) and not isinstance(i, Token)]
        hint = next((i for i in items if isinstance(i, TypeHint)), None)
        result = []
        for item in items:
            if isinstance(item, PropertyDecl):
                item.modifiers = modifiers
                item.type_hint = hint
                self._set_pos(item, meta, with_doc=True)
                result.append(item)
        return result

    def property_item(self, items):
        default = items[1] if len(items) > 1 else None
        return PropertyDecl(name=_str(items[0])[1:], default=default)

    @v_args(meta=True)
    def const_decl(self, meta, items):
        result = [i for i in items if isinstance(i, ConstDecl)]
        for item in result:
            self._set_pos(item, meta, with_doc=True)
        return result

    def const_item(self, items):
        return ConstDecl(name=items[0][1], value=items[1])

    @v_args(meta=True)
    def function_decl(self, meta, items):
        name_tok = next(i for i in items if _is_tok(i, 'NAME'))
        params = next((i for i in items if isinstance(i, list)), [])
        hint = next((i for i in items if isinstance(i, TypeHint)), None)
        body = next(i for i in items if isinstance(i, Block))
        node = FunctionDecl(name=_str(name_tok), params=params, return_hint=hint, body=body)
        return self._set_pos(node, meta, with_doc=True)

    def params(self, items):
        return [i for i in items if isinstance(i, Param)]

    @v_args(meta=True)
    def param(self, meta, items):
        modifiers = [i for i in items if isinstance(i, str) and not isinstance(i, Token)]
        hint = next((i for i in items if isinstance(i, TypeHint)), None)
        var_idx = next(idx for idx, i in enumerate(items) if _is_tok(i, 'VARIABLE'))
        default = items[var_idx + 1] if var_idx + 1 < len(items) else None
        node = Param(name=_str(items[var_idx])[1:], type_hint=hint, default=default,
                     variadic=any(_is_tok(i, 'ELLIPSIS') for i in items),
                     modifiers=modifiers)
        return self._set_pos(node, meta)

    def return_hint(self, items):
        return items[0]

    @v_args(meta=True)
    def nullable_hint(self, meta, items):
        return self._set_pos(TypeHint(kind='nullable', names=list(items)), meta)

    @v_args(meta=True)
    def union_hint(self, meta, items):
        return self._set_pos(TypeHint(kind='union', names=list(items)), meta)

    @v_args(meta=True)
    def intersection_hint(self, meta, items):
        return self._set_pos(TypeHint(kind='intersection', names=list(items)), meta)

    def type_atom(self, items):
        return _str(items[0]).lstrip('\\')

    # ── 语句 ────────────────────────────────────────────────────────────────

    @v_args(meta=True)
    def block(self, meta, items):
        return self._set_pos(Block(stmts=[i for i in items if i is not None]), meta)

    @v_args(meta=True)
    def if_stmt(self, meta, items):
        cond, then_br = items[0], items[1]
        elifs = [i for i in items[2:] if isinstance(i, ElseIf)]
        else_br = items[-1] if len(items) > 2 and not isinstance(items[-1], ElseIf) else None
        node = IfStmt(cond=cond, then_br=then_br, elifs=elifs, else_br=else_br)
        return self._set_pos(node, meta, with_doc=True)

    @v_args(meta=True)
    def elseif_clause(self, meta, items):
        return self._set_pos(ElseIf(cond=items[0], body=items[1]), meta)

    def else_clause(self, items):
        return items[0]

    @v_args(meta=True)
    def while_stmt(self, meta, items):
        return self._set_pos(WhileStmt(cond=items[0], body=items[1]), meta)

    @v_args(meta=True)
    def do_stmt(self, meta, items):
        return self._set_pos(DoWhileStmt(body=items[0], cond=items[1]), meta)

    @v_args(meta=True)
    def for_stmt(self, meta, items):
        init, cond, step, body = items
        node = ForStmt(init=init or [], cond=cond or [], step=step or [], body=body)
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def foreach_stmt(self, meta, items):
        iterable, (key_var, value_var), body = items
        node = ForeachStmt(iterable=iterable, key_var=key_var, value_var=value_var, body=body)
        return self._set_pos(node, meta)

    def foreach_pair(self, items):
        return (items[0], items[1])

    def foreach_value(self, items):
        return (None, items[0])

    def expr_list(self, items):
        return list(items)

    @v_args(meta=True)
    def switch_stmt(self, meta, items):
        node = SwitchStmt(subject=items[0], cases=list(items[1:]))
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def case_clause(self, meta, items):
        node = SwitchCase(test=items[0], stmts=[i for i in items[1:] if i is not None])
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def default_clause(self, meta, items):
        return self._set_pos(SwitchCase(test=None, stmts=[i for i in items if i is not None]), meta)

    @v_args(meta=True)
    def try_stmt(self, meta, items):
        finally_body = items[-1] if len(items) > 1 and isinstance(items[-1], tuple) else None
        node = TryStmt(body=items[0],
                       catches=[i for i in items if isinstance(i, CatchClause)],
                       finally_body=finally_body[1] if finally_body else None)
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def catch_clause(self, meta, items):
        types = [_str(i).lstrip('\\') for i in items if _is_tok(i, 'NAME')]
        var = next((_str(i)[1:] for i in items if _is_tok(i, 'VARIABLE')), None)
        node = CatchClause(types=types, var=var, body=items[-1])
        return self._set_pos(node, meta)

    def finally_clause(self, items):
        return ('finally', items[0])

    @v_args(meta=True)
    def return_stmt(self, meta, items):
        value = items[0] if items else None
        return self._set_pos(ReturnStmt(value=value), meta, with_doc=True)

    @v_args(meta=True)
    def break_stmt(self, meta, items):
        return self._set_pos(BreakStmt(), meta)

    @v_args(meta=True)
    def continue_stmt(self, meta, items):
        return self._set_pos(ContinueStmt(), meta)

    @v_args(meta=True)
    def throw_stmt(self, meta, items):
        return self._set_pos(ThrowStmt(value=items[0]), meta)

    @v_args(meta=True)
    def echo_stmt(self, meta, items):
        return self._set_pos(EchoStmt(exprs=items[0]), meta)

    @v_args(meta=True)
    def global_stmt(self, meta, items):
        return self._set_pos(GlobalStmt(names=[_str(i)[1:] for i in items]), meta)

    @v_args(meta=True)
    def static_var_stmt(self, meta, items):
        return self._set_pos(StaticVarStmt(vars=[i for i in items if isinstance(i, tuple)]), meta)

    def static_var(self, items):
        default = items[1] if len(items) > 1 else None
        return (_str(items[0])[1:], default)

    @v_args(meta=True)
    def include_stmt(self, meta, items):
        return self._set_pos(IncludeStmt(expr=items[-1]), meta)

    @v_args(meta=True)
    def expr_stmt(self, meta, items):
        return self._set_pos(ExprStmt(expr=items[0]), meta, with_doc=True)

    def empty_stmt(self, items):
        return None

    # ── 表达式 ──────────────────────────────────────────────────────────────

    @v_args(meta=True)
    def assign(self, meta, items):
        node = Assign(op='=', target=items[0], value=items[-1])
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def compound_assign(self, meta, items):
        node = Assign(op=_str(items[1]), target=items[0], value=items[2])
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def ternary(self, meta, items):
        node = TernaryOp(cond=items[0], then_expr=items[1], else_expr=items[2])
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def short_ternary(self, meta, items):
        node = TernaryOp(cond=items[0], then_expr=None, else_expr=items[1])
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def coalesce(self, meta, items):
        node = BinaryOp(op='??', left=items[0], right=items[1])
        return self._set_pos(node, meta)

    # 以下二元运算规则统一处理（左结合，多个运算符）
    def _fold_binary(self, meta, items):
        result = items[0]
        i = 1
        while i < len(items):
            op  = _str(items[i]); i += 1
            rhs = items[i];       i += 1
            node = BinaryOp(op=op.lower(), left=result, right=rhs)
            self._set_pos(node, meta)
            result = node
        return result

    @v_args(meta=True)
    def bool_or(self, meta, items):
        return self._fold_binary(meta, items)

    @v_args(meta=True)
    def bool_and(self, meta, items):
        return self._fold_binary(meta, items)

    @v_args(meta=True)
    def bit_or(self, meta, items):
        return self._fold_binary(meta, items)

    @v_args(meta=True)
    def bit_xor(self, meta, items):
        return self._fold_binary(meta, items)

    @v_args(meta=True)
    def bit_and(self, meta, items):
        return self._fold_binary(meta, items)

    @v_args(meta=True)
    def equality(self, meta, items):
        return self._fold_binary(meta, items)

    @v_args(meta=True)
    def relational(self, meta, items):
        return self._fold_binary(meta, items)

    @v_args(meta=True)
    def shift(self, meta, items):
        return self._fold_binary(meta, items)

    @v_args(meta=True)
    def concat(self, meta, items):
        return self._fold_binary(meta, items)

    @v_args(meta=True)
    def additive(self, meta, items):
        return self._fold_binary(meta, items)

    @v_args(meta=True)
    def multiplicative(self, meta, items):
        return self._fold_binary(meta, items)

    @v_args(meta=True)
    def power(self, meta, items):
        node = BinaryOp(op='**', left=items[0], right=items[-1])
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def instanceof(self, meta, items):
        return self._set_pos(Instanceof(expr=items[0], class_ref=items[1]), meta)

    @v_args(meta=True)
    def unary_op(self, meta, items):
        return self._set_pos(UnaryOp(op=_str(items[0]), operand=items[1]), meta)

    @v_args(meta=True)
    def cast(self, meta, items):
        name = _str(items[0])[1:-1].strip().lower()
        node = CastExpr(target=_CAST_NAMES.get(name, name), expr=items[1])
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def pre_incdec(self, meta, items):
        return self._set_pos(IncDec(op=_str(items[0]), target=items[1], prefix=True), meta)

    @v_args(meta=True)
    def post_incdec(self, meta, items):
        return self._set_pos(IncDec(op=_str(items[1]), target=items[0], prefix=False), meta)

    @v_args(meta=True)
    def clone(self, meta, items):
        return self._set_pos(CloneExpr(expr=items[0]), meta)

    @v_args(meta=True)
    def print_expr(self, meta, items):
        return self._set_pos(UnaryOp(op='print', operand=items[0]), meta)

    # ── 后缀 / 调用 ─────────────────────────────────────────────────────────

    @v_args(meta=True)
    def method_call(self, meta, items):
        nullsafe = _is_tok(items[1], 'NULLSAFE')
        obj, (_, name), args = [i for i in items if not _is_tok(i, 'NULLSAFE')]
        node = MethodCall(obj=obj, name=name, args=args, nullsafe=nullsafe)
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def property_fetch(self, meta, items):
        nullsafe = _is_tok(items[1], 'NULLSAFE')
        obj, (_, name) = [i for i in items if not _is_tok(i, 'NULLSAFE')]
        return self._set_pos(PropertyFetch(obj=obj, name=name, nullsafe=nullsafe), meta)

    @v_args(meta=True)
    def index(self, meta, items):
        index = items[1] if len(items) > 1 else None
        return self._set_pos(IndexFetch(obj=items[0], index=index), meta)

    @v_args(meta=True)
    def static_call(self, meta, items):
        class_ref, (_, name), args = items
        return self._set_pos(StaticCall(class_ref=class_ref, name=name, args=args), meta)

    @v_args(meta=True)
    def static_property(self, meta, items):
        node = StaticPropertyFetch(class_ref=items[0], name=_str(items[1])[1:])
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def class_constant(self, meta, items):
        node = ClassConstFetch(class_ref=items[0], name=items[1][1])
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def func_call(self, meta, items):
        node = FuncCall(name=_str(items[0]).lstrip('\\'), args=items[1])
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def dynamic_call(self, meta, items):
        callee = self._tok_pos(Variable(name=_str(items[0])[1:]), items[0])
        return self._set_pos(DynamicCall(callee=callee, args=items[1]), meta)

    def class_ref(self, items):
        tok = items[0]
        if _is_tok(tok, 'VARIABLE'):
            return self._tok_pos(Variable(name=_str(tok)[1:]), tok)
        return _str(tok).lstrip('\\')

    def member_name(self, items):
        return ('name', _str(items[0]))

    def arguments(self, items):
        return _args(items)

    @v_args(meta=True)
    def positional_arg(self, meta, items):
        return self._set_pos(Argument(value=items[0]), meta)

    @v_args(meta=True)
    def spread_arg(self, meta, items):
        return self._set_pos(Argument(value=items[-1], spread=True), meta)

    @v_args(meta=True)
    def named_arg(self, meta, items):
        return self._set_pos(Argument(value=items[1], name=_str(items[0])), meta)

    # ── 主表达式 ─────────────────────────────────────────────────────────────

    def variable(self, items):
        tok = items[0]
        return self._tok_pos(Variable(name=_str(tok)[1:]), tok)

    def int_lit(self, items):
        tok = items[0]
        return self._tok_pos(IntLiteral(value=_parse_int(_str(tok))), tok)

    def float_lit(self, items):
        tok = items[0]
        return self._tok_pos(FloatLiteral(value=float(_str(tok).replace('_', ''))), tok)

    def string_lit(self, items):
        tok = items[0]
        value, interpolated = _unquote(_str(tok))
        return self._tok_pos(StringLiteral(value=value, interpolated=interpolated), tok)

    def bool_lit(self, items):
        tok = items[0]
        return self._tok_pos(BoolLiteral(value=_str(tok).lower() == 'true'), tok)

    def null_lit(self, items):
        return self._tok_pos(NullLiteral(), items[0])

    def constant(self, items):
        tok = items[0]
        return self._tok_pos(ConstFetch(name=_str(tok).lstrip('\\')), tok)

    @v_args(meta=True)
    def array_literal(self, meta, items):
        node = ArrayLiteral(items=[i for i in items if isinstance(i, ArrayItemNode)])
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def keyed_item(self, meta, items):
        node = ArrayItemNode(key=items[0], value=items[-1])
        return self._set_pos(node, meta, with_doc=True)

    @v_args(meta=True)
    def value_item(self, meta, items):
        return self._set_pos(ArrayItemNode(value=items[-1]), meta, with_doc=True)

    @v_args(meta=True)
    def spread_item(self, meta, items):
        return self._set_pos(ArrayItemNode(value=items[-1], spread=True), meta, with_doc=True)

    @v_args(meta=True)
    def new_expr(self, meta, items):
        args = items[1] if len(items) > 1 and items[1] is not None else []
        return self._set_pos(NewExpr(class_ref=items[0], args=args), meta)

    @v_args(meta=True)
    def arrow_fn(self, meta, items):
        params = next((i for i in items[:-1] if isinstance(i, list)), [])
        hint = next((i for i in items[:-1] if isinstance(i, TypeHint)), None)
        node = Closure(params=params, return_hint=hint, body_expr=items[-1], arrow=True,
                       is_static=_is_tok(items[0], 'STATIC'))
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def closure(self, meta, items):
        params = next((i for i in items if isinstance(i, list)), [])
        uses = next((i[1] for i in items if isinstance(i, tuple) and i[0] == 'use'), [])
        hint = next((i for i in items if isinstance(i, TypeHint)), None)
        node = Closure(params=params, uses=uses, return_hint=hint, body=items[-1],
                       is_static=_is_tok(items[0], 'STATIC'))
        return self._set_pos(node, meta)

    def closure_use(self, items):
        return ('use', list(items))

    def closure_var(self, items):
        return _str(items[-1])[1:]

    @v_args(meta=True)
    def match_expr(self, meta, items):
        node = MatchExpr(subject=items[0], arms=[i for i in items[1:] if isinstance(i, MatchArm)])
        return self._set_pos(node, meta)

    @v_args(meta=True)
    def match_arm(self, meta, items):
        return self._set_pos(MatchArm(conds=list(items[:-1]), body=items[-1]), meta)

    @v_args(meta=True)
    def match_default(self, meta, items):
        return self._set_pos(MatchArm(conds=None, body=items[-1]), meta)
