"""
PHP 方法体推导器
================
对一个方法（或函数、闭包）体做抽象解释：

  1. 按源码顺序执行语句，维护 Scope（变量 → 类型）
  2. 表达式求值得到推导类型；字面量运算即时折叠
  3. 分支语句在 fork 出的作用域中求值，结束后合并成联合类型
  4. 收集所有 return 的类型

设计原则：
  - 推导器"总能给出答案"：找不到的符号、不支持的节点都降级为 unknown，
    在诊断袋中留下一条 warning，不中断分析
  - 方法调用通过 Infer 上下文解析（带记忆化与环检测）
  - 循环体只求值一遍，不做不动点迭代
"""

from __future__ import annotations
import logging
import math
from typing import Optional

from ..error import DiagnosticBag, UnresolvableSymbol, UnsupportedConstruct
from ..tree.transformer import (
    ASTNode, Block, ExprStmt, IfStmt, WhileStmt, DoWhileStmt, ForStmt,
    ForeachStmt, SwitchStmt, TryStmt, ReturnStmt, BreakStmt, ThrowStmt,
    Variable, StringLiteral,
    ArrayLiteral, IndexFetch, PropertyFetch, StaticPropertyFetch,
    Closure, Param,
)
from .phpdoc import DocBlock, to_type, type_hint_to_type
from .scope import Scope
from .type import (
    Type, ArrayType, ArrayItem, ArrayMapType, ObjectType, FunctionType,
    IntegerType, FloatType, StringType, NullType,
    UNKNOWN, NULL, BOOLEAN, INT, FLOAT, STRING,
    union, widen, is_unknown, members, literal_of,
)

logger = logging.getLogger(__name__)


_COMPARISON_OPS = {'==', '!=', '===', '!==', '<', '>', '<=', '>=', '&&', '||',
                   'and', 'or', 'xor'}
_ARITHMETIC_OPS = {'+', '-', '*', '/', '%', '**'}
_BITWISE_OPS    = {'&', '|', '^', '<<', '>>'}

_CAST_TYPES = {'int': INT, 'float': FLOAT, 'string': STRING, 'bool': BOOLEAN}

# 不依赖任何声明的常用全局常量
_KNOWN_CONSTANTS = {
    'php_eol': STRING, 'php_version': STRING, 'php_os': STRING,
    'directory_separator': STRING,
    'php_int_max': INT, 'php_int_min': INT, 'php_int_size': INT,
    'php_float_epsilon': FLOAT, 'php_float_max': FLOAT,
    'm_pi': FLOAT, 'm_e': FLOAT, 'nan': FLOAT, 'inf': FLOAT,
    'e_all': INT, 'e_error': INT, 'e_warning': INT, 'e_notice': INT,
    'json_pretty_print': INT, 'json_unescaped_unicode': INT,
    'json_unescaped_slashes': INT, 'json_throw_on_error': INT,
    'sort_regular': INT, 'count_recursive': INT,
}


class MethodAnalyzer:
    """
    单个方法体的推导器。

    用法：
        analyzer = MethodAnalyzer(infer, class_type, context=class_decl)
        return_type = analyzer.analyze(method_decl)

    Args:
        infer:      推导上下文（记忆表、类索引、内置函数表）
        class_type: 声明该方法的 ClassType；顶层函数为 None
        context:    解析类名时所在的声明（ClassDecl / FunctionDecl）
        scope:      初始作用域（闭包求值时由外层传入）
    """

    def __init__(self, infer, class_type=None, context=None, scope: Scope = None):
        self._infer = infer
        self._class = class_type
        self._context = context
        self.scope = scope if scope is not None else Scope()
        self.diag: DiagnosticBag = infer.diag
        self._returns: list[Type] = []
        self._resolve_class = infer.resolver_for(context)

    # ══════════════════════════════════════════════════════════════════════
    # 入口
    # ══════════════════════════════════════════════════════════════════════

    def analyze(self, decl) -> Type:
        """
        推导 MethodDecl / FunctionDecl 的返回类型（不含 @return 覆盖）。
        函数体可能走到末尾时隐含返回 null。
        """
        self._bind_params(decl.params, DocBlock.parse(decl.doc))
        if decl.body is None:
            return UNKNOWN
        return self.run_body(decl.body)

    def run_body(self, body: Block) -> Type:
        terminated = self._exec_block(body.stmts)
        returns = list(self._returns)
        if not terminated:
            returns.append(NULL)
        return union(returns)

    def evaluate(self, expr: ASTNode) -> Type:
        """在当前作用域中求一个表达式的类型（类常量、参数默认值等）"""
        return self._visit(expr)

    @property
    def self_name(self) -> Optional[str]:
        return self._class.name if self._class else None

    def _this_type(self) -> Type:
        return self._class.object_type if self._class else UNKNOWN

    def _bind_params(self, params: list[Param], doc: DocBlock) -> list[Type]:
        """按 @param、原生类型声明的顺序确定形参类型并写入作用域"""
        types = []
        for param in params:
            tag = doc.param_tag(param.name)
            if tag is not None and tag.type_expr:
                t = to_type(tag.type_expr, self.self_name, self._resolve_class)
            else:
                t = type_hint_to_type(param.type_hint, self.self_name, self._resolve_class)
            if param.variadic:
                t = ArrayMapType(None, t)
            self.scope.set(param.name, t)
            types.append(t)
        return types

    # ══════════════════════════════════════════════════════════════════════
    # 分发器
    # ══════════════════════════════════════════════════════════════════════

    def _visit(self, node: ASTNode) -> Type:
        """
        表达式分发到 _visit_* 方法，返回表达式类型。
        推导规则内部抛出的 UnresolvableSymbol / UnsupportedConstruct
        在这里降级为 unknown 并记录 warning。
        """
        if node is None:
            return UNKNOWN
        method = '_visit_' + type(node).__name__
        handler = getattr(self, method, self._visit_default)
        try:
            result = handler(node)
        except (UnresolvableSymbol, UnsupportedConstruct) as e:
            self.diag.warning(str(e), e.node or node, kind=e.kind)
            logger.debug("degraded to unknown: %s", e)
            return UNKNOWN
        return result if result is not None else UNKNOWN

    def _visit_default(self, node: ASTNode):
        raise UnsupportedConstruct(f"不支持的表达式 {type(node).__name__}", node)

    def _exec(self, node: ASTNode) -> bool:
        """
        语句分发到 _exec_* 方法。
        返回 True 表示该语句之后的代码不可达（return / throw）。
        """
        if node is None:
            return False
        handler = getattr(self, '_exec_' + type(node).__name__, None)
        if handler is None:
            # 嵌套的类 / 函数声明与推导无关
            if type(node).__name__ in ('ClassDecl', 'FunctionDecl', 'ConstDecl',
                                       'NamespaceDecl', 'UseDecl'):
                return False
            self.diag.warning(f"不支持的语句 {type(node).__name__}", node)
            return False
        return bool(handler(node))

    def _exec_block(self, stmts) -> bool:
        for stmt in stmts:
            if self._exec(stmt):
                return True
        return False

    def _exec_in(self, scope: Scope, stmt) -> bool:
        """在指定作用域中执行语句（用于分支）"""
        saved, self.scope = self.scope, scope
        try:
            return self._exec(stmt)
        finally:
            self.scope = saved

    def _visit_in(self, scope: Scope, expr) -> Type:
        saved, self.scope = self.scope, scope
        try:
            return self._visit(expr)
        finally:
            self.scope = saved

    # ══════════════════════════════════════════════════════════════════════
    # 语句
    # ══════════════════════════════════════════════════════════════════════

    def _exec_Block(self, node: Block):
        return self._exec_block(node.stmts)

    def _exec_ExprStmt(self, node: ExprStmt):
        self._visit(node.expr)
        if node.doc:
            self._apply_var_doc(node.doc, node.expr)
        return False

    def _apply_var_doc(self, doc: str, expr):
        """/** @var T $x */ 覆盖紧随其后赋值给 $x 的类型"""
        target = getattr(expr, 'target', expr)
        if not isinstance(target, Variable):
            return
        tag = DocBlock.parse(doc).var_tag(target.name)
        if tag is not None and tag.type_expr:
            self.scope.set(target.name, to_type(tag.type_expr, self.self_name, self._resolve_class))

    def _exec_ReturnStmt(self, node: ReturnStmt):
        t = self._visit(node.value) if node.value is not None else NULL
        self._returns.append(t)
        return True

    def _exec_ThrowStmt(self, node: ThrowStmt):
        self._visit(node.value)
        return True

    def _exec_BreakStmt(self, node):
        return False

    def _exec_ContinueStmt(self, node):
        return False

    def _exec_EchoStmt(self, node):
        for expr in node.exprs:
            self._visit(expr)
        return False

    def _exec_GlobalStmt(self, node):
        for name in node.names:
            self.scope.set(name, UNKNOWN)
        return False

    def _exec_StaticVarStmt(self, node):
        for name, default in node.vars:
            self.scope.set(name, widen(self._visit(default)) if default is not None else NULL)
        return False

    def _exec_IncludeStmt(self, node):
        self._visit(node.expr)
        return False

    # ── 分支 ────────────────────────────────────────────────────────────────

    def _merge(self, live: list[Scope]) -> bool:
        """合并存活分支；没有存活分支时语句本身终止"""
        if not live:
            return True
        self.scope.merge_branches(live)
        return False

    def _exec_IfStmt(self, node: IfStmt):
        self._visit(node.cond)
        for elif_ in node.elifs:
            self._visit(elif_.cond)

        live = []
        bodies = [node.then_br] + [e.body for e in node.elifs]
        if node.else_br is not None:
            bodies.append(node.else_br)
        for body in bodies:
            branch = self.scope.fork()
            if not self._exec_in(branch, body):
                live.append(branch)
        if node.else_br is None:
            live.append(self.scope.fork())
        return self._merge(live)

    def _exec_SwitchStmt(self, node: SwitchStmt):
        self._visit(node.subject)
        for case in node.cases:
            if case.test is not None:
                self._visit(case.test)

        live = []
        for start in range(len(node.cases)):
            branch = self.scope.fork()
            if not self._run_case(branch, node.cases[start:]):
                live.append(branch)
        if not any(case.test is None for case in node.cases):
            live.append(self.scope.fork())
        return self._merge(live)

    def _run_case(self, scope: Scope, cases) -> bool:
        """从某个 case 开始执行（含贯穿），遇到 break 结束；返回是否终止"""
        for case in cases:
            for stmt in case.stmts:
                if isinstance(stmt, BreakStmt):
                    return False
                if self._exec_in(scope, stmt):
                    return True
        return False

    def _exec_TryStmt(self, node: TryStmt):
        live = []
        branch = self.scope.fork()
        if not self._exec_in(branch, node.body):
            live.append(branch)
        for catch in node.catches:
            branch = self.scope.fork()
            if catch.var:
                caught = [self._resolve_class(t) for t in catch.types]
                branch.set(catch.var, union(caught))
            if not self._exec_in(branch, catch.body):
                live.append(branch)
        terminated = self._merge(live)
        if node.finally_body is not None and self._exec(node.finally_body):
            return True
        return terminated

    # ── 循环（单遍求值） ─────────────────────────────────────────────────────

    def _loop(self, body, before=None) -> Scope:
        """在 fork 的作用域中执行一遍循环体，与循环前的作用域合并"""
        pre = self.scope.fork()
        branch = self.scope.fork()
        if before is not None:
            before(branch)
        self._exec_in(branch, body)
        self.scope.merge_branches([pre, branch])
        return branch

    def _exec_WhileStmt(self, node: WhileStmt):
        self._visit(node.cond)
        self._loop(node.body)
        return False

    def _exec_DoWhileStmt(self, node: DoWhileStmt):
        pre = self.scope.fork()
        branch = self.scope.fork()
        if self._exec_in(branch, node.body):
            return True
        self._visit_in(branch, node.cond)
        self.scope.merge_branches([pre, branch])
        return False

    def _exec_ForStmt(self, node: ForStmt):
        for expr in node.init:
            self._visit(expr)
        for expr in node.cond:
            self._visit(expr)
        pre = self.scope.fork()
        branch = self.scope.fork()
        self._exec_in(branch, node.body)
        for expr in node.step:
            self._visit_in(branch, expr)
        self.scope.merge_branches([pre, branch])
        return False

    def _exec_ForeachStmt(self, node: ForeachStmt):
        key_t, value_t = self._iterate(self._visit(node.iterable))

        def bind(scope: Scope):
            saved, self.scope = self.scope, scope
            try:
                if node.key_var is not None:
                    self._assign_to(node.key_var, key_t)
                self._assign_to(node.value_var, value_t)
            except UnsupportedConstruct as e:
                self.diag.warning(str(e), e.node or node, kind=e.kind)
            finally:
                self.scope = saved
        self._loop(node.body, before=bind)
        return False

    @staticmethod
    def _iterate(t: Type) -> tuple[Type, Type]:
        """被遍历类型 → (键类型, 值类型)"""
        keys, values = [], []
        for m in members(t):
            if isinstance(m, ArrayType):
                for item in m.items:
                    keys.append(INT if item.key is None else widen(literal_of(item.key)))
                    values.append(item.value)
            elif isinstance(m, ArrayMapType):
                keys.append(m.key_type if m.key_type is not None else INT)
                values.append(m.value_type)
            else:
                keys.append(UNKNOWN)
                values.append(UNKNOWN)
        return union(keys), union(values)

    # ══════════════════════════════════════════════════════════════════════
    # 字面量 / 变量
    # ══════════════════════════════════════════════════════════════════════

    def _visit_Variable(self, node: Variable):
        if node.name == 'this':
            return self._this_type()
        return self.scope.get(node.name)

    def _visit_IntLiteral(self, node):
        # 超出 64 位的整数字面量在 PHP 中是 float
        folded = _number(node.value)
        return folded if folded is not None else FLOAT

    def _visit_FloatLiteral(self, node):
        return FloatType(node.value)

    def _visit_StringLiteral(self, node: StringLiteral):
        return STRING if node.interpolated else StringType(node.value)

    def _visit_BoolLiteral(self, node):
        return BOOLEAN

    def _visit_NullLiteral(self, node):
        return NULL

    def _visit_ConstFetch(self, node):
        known = _KNOWN_CONSTANTS.get(node.name.lower())
        if known is not None:
            return known
        t = self._infer.get_global_constant_type(node.name)
        if t is None:
            raise UnresolvableSymbol(f"未定义的常量 '{node.name}'", node)
        return t

    # ══════════════════════════════════════════════════════════════════════
    # 数组
    # ══════════════════════════════════════════════════════════════════════

    def _visit_ArrayLiteral(self, node: ArrayLiteral):
        shape = ArrayType()
        key_types, value_types = [], []
        degraded = False

        for it in node.items:
            value = self._visit(it.value)
            if it.spread:
                if isinstance(value, ArrayType):
                    for item in value.items:
                        shape = shape.with_item(item)
                        key_types.append(INT if item.key is None else widen(literal_of(item.key)))
                        value_types.append(item.value)
                    continue
                degraded = True
                k, v = self._iterate(value)
                key_types.append(k)
                value_types.append(v)
                continue

            item = ArrayItem(None, value)
            if it.doc:
                item = self._doc_item(it.doc, item)

            if it.key is None:
                key_types.append(INT)
            else:
                key_t = self._visit(it.key)
                if isinstance(key_t, (IntegerType, StringType)) and key_t.is_literal:
                    item.key = key_t.value
                    key_types.append(widen(key_t))
                else:
                    degraded = True
                    key_types.append(key_t)
            value_types.append(item.value)
            shape = shape.with_item(item)

        if degraded:
            return ArrayMapType(union(key_types), union(value_types))
        return shape

    def _doc_item(self, doc: str, item: ArrayItem) -> ArrayItem:
        """数组项前的 @var 注释：覆盖值类型，保留说明文字"""
        tag = DocBlock.parse(doc).var_tag()
        if tag is None:
            return item
        value = item.value
        if tag.type_expr:
            value = to_type(tag.type_expr, self.self_name, self._resolve_class)
        return ArrayItem(item.key, value, item.optional,
                         description=tag.description,
                         doc_hinted=bool(tag.type_expr))

    def _visit_IndexFetch(self, node: IndexFetch):
        container = self._visit(node.obj)
        if node.index is None:
            raise UnsupportedConstruct("读取上下文中不能使用 []", node)
        index = self._visit(node.index)
        return union(self._read_index(m, index) for m in members(container))

    @staticmethod
    def _read_index(container: Type, index: Type) -> Type:
        if isinstance(container, ArrayType):
            if isinstance(index, (IntegerType, StringType)) and index.is_literal:
                item = container.get_item(index.value)
                if item is not None:
                    return item.value
                positional = [i for i in container.items if i.key is None]
                if isinstance(index, IntegerType) and 0 <= index.value < len(positional):
                    return positional[index.value].value
                return UNKNOWN
            return union(i.value for i in container.items)
        if isinstance(container, ArrayMapType):
            return container.value_type
        if isinstance(container, StringType):
            return STRING
        return UNKNOWN

    # ══════════════════════════════════════════════════════════════════════
    # 赋值
    # ══════════════════════════════════════════════════════════════════════

    def _visit_Assign(self, node):
        if node.op == '=':
            t = self._visit(node.value)
        elif node.op == '??=':
            t = self._coalesce(self._visit(node.target), self._visit(node.value))
        else:
            left = self._visit(node.target)
            t = self._binary(node.op[:-1], left, self._visit(node.value))
        self._assign_to(node.target, t)
        return t

    def _assign_to(self, target, t: Type):
        if isinstance(target, Variable):
            if target.name != 'this':
                self.scope.set(target.name, t)
        elif isinstance(target, IndexFetch):
            container = self._current(target.obj)
            key_t = self._visit(target.index) if target.index is not None else None
            self._assign_to(target.obj, self._write_index(container, key_t, t))
        elif isinstance(target, ArrayLiteral):
            # [$a, $b] = ... / ['x' => $x] = ...
            position = 0
            for it in target.items:
                if it.key is None:
                    key_t, position = IntegerType(position), position + 1
                else:
                    key_t = self._visit(it.key)
                self._assign_to(it.value, self._read_index(t, key_t))
        elif isinstance(target, (PropertyFetch, StaticPropertyFetch)):
            self._visit(target)
        else:
            raise UnsupportedConstruct(f"不支持的赋值目标 {type(target).__name__}", target)

    def _current(self, node) -> Optional[Type]:
        """赋值目标的当前类型；未定义的变量为 None（写入时自动创建数组）"""
        if isinstance(node, Variable):
            return self.scope.get(node.name) if self.scope.has(node.name) else None
        if isinstance(node, IndexFetch):
            outer = self._current(node.obj)
            if outer is None or node.index is None:
                return None
            index = self._visit(node.index)
            if (isinstance(outer, ArrayType) and isinstance(index, (IntegerType, StringType))
                    and index.is_literal and outer.get_item(index.value) is None):
                return None
            return self._read_index(outer, index)
        return self._visit(node)

    @staticmethod
    def _write_index(container: Optional[Type], key_t: Optional[Type], value: Type) -> Type:
        if container is None or isinstance(container, NullType):
            container = ArrayType()
        if isinstance(container, ArrayType):
            if key_t is None:
                return container.with_item(ArrayItem(None, value))
            if isinstance(key_t, (IntegerType, StringType)) and key_t.is_literal:
                return container.with_item(ArrayItem(key_t.value, value))
            keys = [INT if i.key is None else widen(literal_of(i.key)) for i in container.items]
            values = [i.value for i in container.items]
            return ArrayMapType(union(keys + [key_t]), union(values + [value]))
        if isinstance(container, ArrayMapType):
            key = container.key_type
            if key_t is not None:
                key = union([key, key_t]) if key is not None else union([INT, key_t])
            return ArrayMapType(key, union([container.value_type, value]))
        return container

    def _visit_IncDec(self, node):
        t = widen(self._visit(node.target))
        if isinstance(node.target, Variable) and t in (INT, FLOAT):
            self.scope.set(node.target.name, t)
        return t

    # ══════════════════════════════════════════════════════════════════════
    # 运算符
    # ══════════════════════════════════════════════════════════════════════

    def _visit_BinaryOp(self, node):
        left = self._visit(node.left)
        right = self._visit(node.right)
        if node.op == '??':
            return self._coalesce(left, right)
        return self._binary(node.op, left, right)

    @staticmethod
    def _coalesce(left: Type, right: Type) -> Type:
        non_null = [m for m in members(left) if not isinstance(m, NullType)]
        return union(non_null + [right])

    def _binary(self, op: str, left: Type, right: Type) -> Type:
        if op in _COMPARISON_OPS:
            return BOOLEAN
        if op == '<=>':
            return INT
        if op == '.':
            return self._concat(left, right)
        if op in _BITWISE_OPS:
            folded = self._fold_int(op, left, right)
            return folded if folded is not None else INT
        if op in _ARITHMETIC_OPS:
            return self._arithmetic(op, left, right)
        raise UnsupportedConstruct(f"不支持的运算符 '{op}'")

    @staticmethod
    def _concat(left: Type, right: Type) -> Type:
        if all(isinstance(t, (StringType, IntegerType)) and t.is_literal for t in (left, right)):
            return StringType(f"{left.value}{right.value}")
        return STRING

    @staticmethod
    def _fold_int(op, left, right) -> Optional[Type]:
        if not (isinstance(left, IntegerType) and isinstance(right, IntegerType)
                and left.is_literal and right.is_literal):
            return None
        a, b = left.value, right.value
        if op == '&':
            return IntegerType(a & b)
        if op == '|':
            return IntegerType(a | b)
        if op == '^':
            return IntegerType(a ^ b)
        if b < 0 or b > 63:
            return None
        if op == '>>':
            return IntegerType(a >> b)
        return IntegerType(_wrap_int64(a << b))

    @staticmethod
    def _arithmetic(op: str, left: Type, right: Type) -> Type:
        numeric = (IntegerType, FloatType)
        if isinstance(left, numeric) and isinstance(right, numeric):
            if left.is_literal and right.is_literal:
                raw = _fold_arithmetic(op, left.value, right.value)
                folded = _number(raw)
                if folded is not None:
                    return folded
                if raw is not None or op == '**':
                    return FLOAT        # 溢出
            if isinstance(left, FloatType) or isinstance(right, FloatType):
                return FLOAT
            if op == '/':
                return union([INT, FLOAT])
            return INT
        if isinstance(left, FloatType) or isinstance(right, FloatType):
            return FLOAT
        if op == '%':
            return INT
        return union([INT, FLOAT])

    def _visit_UnaryOp(self, node):
        t = self._visit(node.operand)
        if node.op == '!':
            return BOOLEAN
        if node.op == '~':
            return INT
        if node.op == 'print':
            return IntegerType(1)
        if node.op in ('-', '+'):
            if isinstance(t, (IntegerType, FloatType)):
                if t.is_literal:
                    folded = _number(-t.value if node.op == '-' else t.value)
                    return folded if folded is not None else widen(t)
                return t
            return union([INT, FLOAT])
        return t        # @ 抑制错误

    def _visit_CastExpr(self, node):
        t = self._visit(node.expr)
        if node.target in _CAST_TYPES:
            return _CAST_TYPES[node.target]
        if node.target == 'array':
            if all(isinstance(m, (ArrayType, ArrayMapType)) for m in members(t)):
                return t
            return ArrayMapType(UNKNOWN, UNKNOWN)
        if node.target == 'object':
            return t if isinstance(t, ObjectType) else ObjectType('stdClass')
        raise UnsupportedConstruct(f"不支持的类型转换 ({node.target})", node)

    def _visit_TernaryOp(self, node):
        cond = self._visit(node.cond)
        then_scope, else_scope = self.scope.fork(), self.scope.fork()
        if node.then_expr is None:
            then_t = cond
        else:
            then_t = self._visit_in(then_scope, node.then_expr)
        else_t = self._visit_in(else_scope, node.else_expr)
        self.scope.merge_branches([then_scope, else_scope])
        return union([then_t, else_t])

    def _visit_Instanceof(self, node):
        self._visit(node.expr)
        return BOOLEAN

    def _visit_CloneExpr(self, node):
        return self._visit(node.expr)

    def _visit_MatchExpr(self, node):
        self._visit(node.subject)
        results, live = [], []
        for arm in node.arms:
            for cond in arm.conds or []:
                self._visit(cond)
            branch = self.scope.fork()
            results.append(self._visit_in(branch, arm.body))
            live.append(branch)
        self._merge(live)
        return union(results)

    # ══════════════════════════════════════════════════════════════════════
    # 调用
    # ══════════════════════════════════════════════════════════════════════

    def _visit_args(self, args):
        return [self._visit(a.value) for a in args]

    def _visit_MethodCall(self, node):
        receiver = self._visit(node.obj)
        self._visit_args(node.args)
        if isinstance(receiver, ObjectType):
            return self._method_on(receiver, node.name, node)
        results = []
        for m in members(receiver):
            if isinstance(m, NullType) and node.nullsafe:
                results.append(NULL)
            else:
                results.append(m.get_method_call_type(node.name))
        return union(results)

    def _method_on(self, receiver: ObjectType, name: str, node) -> Type:
        ct = receiver.class_type
        if ct is None:
            raise UnresolvableSymbol(f"找不到类 '{receiver.name}'（调用 {name}()）", node)
        if self._infer.find_method(ct.decl, name) is None:
            if self._infer.find_method(ct.decl, '__call') is not None:
                return UNKNOWN
            raise UnresolvableSymbol(f"类 '{ct.name}' 中找不到方法 '{name}'", node)
        return receiver.get_method_call_type(name)

    def _visit_PropertyFetch(self, node):
        receiver = self._visit(node.obj)
        results = []
        for m in members(receiver):
            if isinstance(m, ObjectType):
                results.append(m.get_property_type(node.name))
            elif isinstance(m, NullType) and node.nullsafe:
                results.append(NULL)
            else:
                results.append(UNKNOWN)
        return union(results)

    def _class_of(self, ref, node) -> ObjectType:
        """静态访问左侧的 Foo / self / static / parent / $obj"""
        if isinstance(ref, Variable):
            t = self._visit(ref)
            if isinstance(t, ObjectType):
                return t
            if isinstance(t, StringType) and t.is_literal:
                return self._resolve_class(t.value)
            raise UnresolvableSymbol(f"无法确定 ${ref.name} 的类", node)
        lname = ref.lower()
        if lname in ('self', 'static'):
            if self._class is None:
                raise UnresolvableSymbol(f"类外使用 {ref}::", node)
            return self._class.object_type
        if lname == 'parent':
            parent = self._infer.parent_of(self._class.decl) if self._class else None
            if parent is None:
                raise UnresolvableSymbol("没有父类可供 parent:: 访问", node)
            return self._infer.object_type(parent.fqn)
        return self._resolve_class(ref)

    def _visit_StaticCall(self, node):
        self._visit_args(node.args)
        cls = self._class_of(node.class_ref, node)
        if cls.class_type is None:
            raise UnresolvableSymbol(f"找不到类 '{cls.name}'（调用 {node.name}()）", node)
        if self._infer.find_method(cls.class_type.decl, node.name) is None:
            if self._infer.find_method(cls.class_type.decl, '__callStatic') is not None:
                return UNKNOWN
            raise UnresolvableSymbol(f"类 '{cls.name}' 中找不到方法 '{node.name}'", node)
        return self._infer.get_method_type(cls.name, node.name)

    def _visit_StaticPropertyFetch(self, node):
        cls = self._class_of(node.class_ref, node)
        return cls.get_property_type(node.name)

    def _visit_ClassConstFetch(self, node):
        if node.name.lower() == 'class':
            if isinstance(node.class_ref, Variable):
                self._visit(node.class_ref)
                return STRING
            return StringType(self._class_of(node.class_ref, node).name)
        cls = self._class_of(node.class_ref, node)
        if cls.class_type is None:
            raise UnresolvableSymbol(f"找不到类 '{cls.name}'（常量 {node.name}）", node)
        return self._infer.get_constant_type(cls.name, node.name)

    def _visit_NewExpr(self, node):
        self._visit_args(node.args)
        if isinstance(node.class_ref, Variable):
            t = self._visit(node.class_ref)
            if isinstance(t, StringType) and t.is_literal:
                return self._resolve_class(t.value)
            return t if isinstance(t, ObjectType) else UNKNOWN
        if node.class_ref.lower() in ('self', 'static', 'parent'):
            return self._class_of(node.class_ref, node)
        return self._resolve_class(node.class_ref)

    def _visit_FuncCall(self, node):
        lname = node.name.lower().rsplit('\\', 1)[-1]
        special = getattr(self, '_call_' + lname, None)
        if special is not None:
            return special(node)

        self._visit_args(node.args)
        if self._infer.index.resolve_function(node.name) is not None:
            return self._infer.get_function_type(node.name)
        native = self._infer.natives.get(lname)
        if native is not None:
            return native.return_type
        raise UnresolvableSymbol(f"未定义的函数 '{node.name}'", node)

    # 语言结构（语法上与函数调用相同）

    def _call_unset(self, node):
        for arg in node.args:
            if isinstance(arg.value, Variable):
                self.scope.unset(arg.value.name)
        return NULL

    def _call_isset(self, node):
        self._visit_args(node.args)
        return BOOLEAN

    _call_empty = _call_isset

    def _call_compact(self, node):
        shape = ArrayType()
        for arg in node.args:
            if isinstance(arg.value, StringLiteral):
                name = arg.value.value
                shape = shape.with_item(ArrayItem(name, self.scope.get(name)))
            else:
                self._visit(arg.value)
        return shape

    def _visit_DynamicCall(self, node):
        callee = self._visit(node.callee)
        self._visit_args(node.args)
        results = []
        for m in members(callee):
            results.append(m.return_type if isinstance(m, FunctionType) else UNKNOWN)
        return union(results)

    # ══════════════════════════════════════════════════════════════════════
    # 闭包
    # ══════════════════════════════════════════════════════════════════════

    def _visit_Closure(self, node: Closure):
        if node.arrow:
            scope = self.scope.fork()
        else:
            scope = Scope({name: self.scope.get(name) for name in node.uses})
        sub = MethodAnalyzer(self._infer, self._class, self._context, scope)
        params = sub._bind_params(node.params, DocBlock.parse(node.doc))
        if node.arrow:
            ret = sub._visit(node.body_expr)
        else:
            ret = sub.run_body(node.body)
        if is_unknown(ret) and node.return_hint is not None:
            ret = type_hint_to_type(node.return_hint, self.self_name, self._resolve_class)
        return FunctionType(ret, params)

    def _visit_Argument(self, node):
        return self._visit(node.value)


# ──────────────────────────────────────────────────────────────────────────────
# 字面量折叠
# ──────────────────────────────────────────────────────────────────────────────

_INT_MIN, _INT_MAX = -2 ** 63, 2 ** 63 - 1


def _wrap_int64(value: int) -> int:
    """移位结果按 64 位补码截断"""
    value &= 2 ** 64 - 1
    return value - 2 ** 64 if value > _INT_MAX else value


def _number(value) -> Optional[Type]:
    """
    折叠结果 → 字面量类型，按 PHP 的整数语义：
    超出 64 位的整数变成 float；float 也溢出时返回 None（结果退化为宽类型）。
    """
    if value is None:
        return None
    if isinstance(value, int) and not _INT_MIN <= value <= _INT_MAX:
        try:
            value = float(value)
        except OverflowError:
            return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return literal_of(value)


def _fold_arithmetic(op: str, a, b):
    """两个数值字面量的运算结果；除零、溢出等无法折叠的情况返回 None"""
    if op == '+':
        return a + b
    if op == '-':
        return a - b
    if op == '*':
        return a * b
    if op == '/':
        if b == 0:
            return None
        if isinstance(a, int) and isinstance(b, int) and a % b == 0:
            return a // b
        return a / b
    if op == '%':
        if not (math.isfinite(a) and math.isfinite(b)):
            return None
        a, b = int(a), int(b)
        if b == 0:
            return None
        rem = abs(a) % abs(b)
        return -rem if a < 0 else rem
    if op == '**':
        return _power(a, b)
    return None


def _power(a, b):
    if isinstance(a, int) and isinstance(b, int):
        if b < 0:
            return float(a) ** b if a != 0 else None
        # |a| > 1 且指数超过 64 时结果必然超出 64 位，改用 float 计算
        if abs(a) <= 1 or b <= 64:
            return a ** b
    try:
        result = float(a) ** b
    except (OverflowError, ZeroDivisionError):
        return None
    return result if isinstance(result, float) else None
