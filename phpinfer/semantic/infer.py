"""
方法解析与记忆化
================
推导上下文 Infer 持有一次分析运行的全部状态：

    类名 → ClassType 记录 → 方法名 → MethodEntry(state, type)

每个 (类, 方法) 键只会被求值一次：

    UNREQUESTED ──> IN_PROGRESS ──> RESOLVED(type)

求值过程中再次请求一个 IN_PROGRESS 的键说明调用图有环，
这一次请求直接得到 unknown（只有流入 return 时才出现在结果里），
并把该方法标记为 cyclic；cyclic 方法结果中的 unknown 排在最前。

求值本身失败（递归过深等）时该键记为 RESOLVED(unknown)，并留下 INTERNAL warning。

reset() 清空全部记录，供下一次运行使用。
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from ..error import DiagnosticBag, DiagKind
from ..tree.transformer import ClassDecl, MethodDecl, PropertyDecl
from .analyzer import MethodAnalyzer
from .index import ClassIndex
from .phpdoc import DocBlock, to_type, type_hint_to_type
from .type import (
    Type, ObjectType, FunctionType, UNKNOWN, union, is_unknown, members,
)

logger = logging.getLogger(__name__)


class ResolutionState(Enum):
    UNREQUESTED = auto()
    IN_PROGRESS = auto()
    RESOLVED    = auto()


@dataclass
class MethodEntry:
    state:  ResolutionState = ResolutionState.UNREQUESTED
    type:   Type = UNKNOWN
    cyclic: bool = False


class ClassType:
    """
    一个类在本次运行中的记录：方法返回类型缓存。
    对外通过 object_type（同一个 ObjectType 实例）暴露。
    """
    def __init__(self, decl: ClassDecl, infer: 'Infer'):
        self.decl = decl
        self.name = decl.fqn
        self._infer = infer
        self.methods: dict[str, MethodEntry] = {}
        self.object_type = ObjectType(self.name, self)

    def entry(self, method: str) -> MethodEntry:
        return self.methods.setdefault(method.lower(), MethodEntry())

    def get_method_type(self, name: str) -> Type:
        return self._infer.get_method_type(self.name, name)

    def get_property_type(self, name: str) -> Type:
        return self._infer.get_property_type(self.name, name)

    def __repr__(self):
        return f"ClassType({self.name}, {len(self.methods)} method(s))"


class Infer:
    """
    推导上下文。

    用法::

        infer = Infer(index, natives=loader.get_builtins())
        foo = infer.analyze_class('Foo')
        print(foo.get_method_call_type('bar'))      # int(1)
    """

    def __init__(self, index: ClassIndex, natives: dict = None,
                 diags: DiagnosticBag = None):
        """
        Args:
            index:   类 / 函数索引
            natives: 内置函数表 { 小写函数名: FunctionType }
            diags:   warning 写入的诊断袋（不传则新建）
        """
        self.index = index
        self.natives: dict[str, FunctionType] = dict(natives or {})
        self.diag = diags if diags is not None else DiagnosticBag()
        self._classes:   dict[str, ClassType] = {}
        self._functions: dict[str, MethodEntry] = {}
        self._const_stack: set[tuple] = set()

    def reset(self):
        """清空记忆表（两次运行之间调用）"""
        self._classes.clear()
        self._functions.clear()
        self._const_stack.clear()

    # ══════════════════════════════════════════════════════════════════════
    # 类记录
    # ══════════════════════════════════════════════════════════════════════

    def class_type(self, name: str) -> Optional[ClassType]:
        """按名字取 ClassType；首次引用时创建。类不存在返回 None。"""
        decl = self.index.resolve(name)
        if decl is None:
            return None
        key = decl.fqn.lower()
        ct = self._classes.get(key)
        if ct is None:
            ct = self._classes[key] = ClassType(decl, self)
        return ct

    def object_type(self, name: str) -> ObjectType:
        """类名 → ObjectType；未知类得到不带记录的 ObjectType"""
        ct = self.class_type(name)
        return ct.object_type if ct else ObjectType(name)

    def resolver_for(self, context):
        """
        返回在 context（ClassDecl / FunctionDecl）的命名空间中解析类名的函数，
        供 PHPDoc / 类型声明转换使用。
        """
        namespace = getattr(context, 'namespace', '')
        uses = getattr(context, 'uses', {})

        def resolve(name: str) -> ObjectType:
            qualified = ClassIndex.qualify(name, namespace, uses)
            if self.index.resolve(qualified) is None and self.index.resolve(name) is not None:
                qualified = name
            return self.object_type(qualified)
        return resolve

    # ══════════════════════════════════════════════════════════════════════
    # 入口
    # ══════════════════════════════════════════════════════════════════════

    def analyze_class(self, name: str) -> ObjectType:
        """
        解析类的全部方法（含继承来的），返回该类的 ObjectType。
        重复调用返回同一个对象，已解析的方法不会重新求值。
        """
        ct = self.class_type(name)
        if ct is None:
            self.diag.warning(f"找不到类 '{name}'", kind=DiagKind.UNRESOLVABLE_SYMBOL)
            return ObjectType(name)
        seen = set()
        for decl in self.lineage(ct.decl):
            for method in decl.methods:
                if method.name.lower() not in seen:
                    seen.add(method.name.lower())
                    self.get_method_type(ct.name, method.name)
        return ct.object_type

    def get_method_type(self, class_name: str, method: str) -> Type:
        """(类, 方法) → 返回类型；找不到时为 unknown"""
        ct = self.class_type(class_name)
        if ct is None:
            return UNKNOWN
        found = self.find_method(ct.decl, method)
        if found is None:
            return UNKNOWN
        owner, decl = found
        owner_ct = self.class_type(owner.fqn)
        return self._resolve(owner_ct.entry(decl.name), decl, owner_ct,
                             f"{owner.fqn}::{decl.name}")

    def get_function_type(self, name: str) -> Type:
        """顶层函数的返回类型，记忆键为 (None, 函数名)"""
        decl = self.index.resolve_function(name)
        if decl is None:
            return UNKNOWN
        entry = self._functions.setdefault(decl.fqn.lower(), MethodEntry())
        return self._resolve(entry, decl, None, decl.fqn)

    def _resolve(self, entry: MethodEntry, decl, ct: Optional[ClassType], label: str) -> Type:
        if entry.state is ResolutionState.RESOLVED:
            return entry.type
        if entry.state is ResolutionState.IN_PROGRESS:
            logger.debug("cycle detected at %s", label)
            entry.cyclic = True
            return UNKNOWN

        logger.debug("resolving %s", label)
        entry.state = ResolutionState.IN_PROGRESS
        try:
            analyzer = MethodAnalyzer(self, ct, context=ct.decl if ct else decl)
            inferred = analyzer.analyze(decl)
        except (RecursionError, ArithmeticError, ValueError) as e:
            logger.warning("analysis of %s failed: %r", label, e)
            self.diag.warning(f"{label} 推导失败: {e!r}", decl, kind=DiagKind.INTERNAL)
            entry.type, entry.state = UNKNOWN, ResolutionState.RESOLVED
            return UNKNOWN
        if entry.cyclic and any(is_unknown(m) for m in members(inferred)):
            # 环上的占位 unknown 排在最前
            inferred = union([UNKNOWN, inferred])
        entry.type = self._declared_return(decl, inferred, ct)
        entry.state = ResolutionState.RESOLVED
        logger.debug("resolved %s: %s", label, entry.type)
        return entry.type

    def _declared_return(self, decl, inferred: Type, ct: Optional[ClassType]) -> Type:
        """@return 覆盖推导结果；原生返回类型只在推导结果是 unknown 时使用"""
        context = ct.decl if ct else decl
        resolver = self.resolver_for(context)
        self_name = ct.name if ct else None
        tag = DocBlock.parse(decl.doc).first('return')
        if tag is not None and tag.type_expr:
            return to_type(tag.type_expr, self_name, resolver)
        if is_unknown(inferred) and decl.return_hint is not None:
            return type_hint_to_type(decl.return_hint, self_name, resolver)
        return inferred

    # ══════════════════════════════════════════════════════════════════════
    # 继承链查找
    # ══════════════════════════════════════════════════════════════════════

    def lineage(self, decl: ClassDecl):
        """decl 自身、trait、父类链，按方法查找顺序产出（防止循环继承）"""
        seen = set()
        queue = [decl]
        while queue:
            current = queue.pop(0)
            if current is None or current.fqn.lower() in seen:
                continue
            seen.add(current.fqn.lower())
            yield current
            queue.extend(self.index.resolve(t) for t in current.traits)
            if current.parent:
                queue.append(self.index.resolve(current.parent))
            queue.extend(self.index.resolve(i) for i in current.interfaces)

    def find_method(self, decl: ClassDecl, name: str) -> Optional[tuple[ClassDecl, MethodDecl]]:
        for owner in self.lineage(decl):
            method = owner.find_method(name)
            if method is not None:
                return owner, method
        return None

    def parent_of(self, decl: ClassDecl) -> Optional[ClassDecl]:
        return self.index.resolve(decl.parent) if decl.parent else None

    # ══════════════════════════════════════════════════════════════════════
    # 属性 / 常量
    # ══════════════════════════════════════════════════════════════════════

    def get_property_type(self, class_name: str, prop: str) -> Type:
        """
        属性类型：属性上的 @var、原生类型声明、类注释中的 @property，依次查找。
        动态属性（未声明）为 unknown。
        """
        ct = self.class_type(class_name)
        if ct is None:
            return UNKNOWN
        resolver = self.resolver_for(ct.decl)
        for owner in self.lineage(ct.decl):
            decl: PropertyDecl = owner.find_property(prop)
            if decl is not None:
                tag = DocBlock.parse(decl.doc).var_tag(prop)
                if tag is not None and tag.type_expr:
                    return to_type(tag.type_expr, owner.fqn, resolver)
                if decl.type_hint is not None:
                    return type_hint_to_type(decl.type_hint, owner.fqn, resolver)
                return UNKNOWN
            for tag in DocBlock.parse(owner.doc).property_tags():
                if tag.variable == prop:
                    return to_type(tag.type_expr, owner.fqn, resolver)
        return UNKNOWN

    def get_constant_type(self, class_name: str, const: str) -> Type:
        ct = self.class_type(class_name)
        if ct is None:
            return UNKNOWN
        for owner in self.lineage(ct.decl):
            for decl in owner.constants:
                if decl.name == const:
                    return self._eval_constant((owner.fqn.lower(), const), decl.value,
                                               self.class_type(owner.fqn))
        return UNKNOWN

    def get_global_constant_type(self, name: str) -> Optional[Type]:
        decl = self.index.resolve_constant(name)
        if decl is None:
            return None
        return self._eval_constant((None, decl.name), decl.value, None)

    def _eval_constant(self, key, expr, ct: Optional[ClassType]) -> Type:
        if key in self._const_stack:
            return UNKNOWN
        self._const_stack.add(key)
        try:
            return MethodAnalyzer(self, ct, context=ct.decl if ct else None).evaluate(expr)
        finally:
            self._const_stack.discard(key)
