"""
类 / 函数索引
=============
推导器的符号查找协作者：把解析得到的 ClassDecl / FunctionDecl 按
全限定名登记，供 Infer 按名字取回声明。

PHP 特性：
  - 类名、函数名大小写不敏感
  - namespace + use 别名决定短名字的全限定名
  - 在命名空间中找不到的函数回退到全局函数
"""

from __future__ import annotations
import logging
from typing import Optional

from ..tree.transformer import (
    FileNode, NamespaceDecl, UseDecl, ClassDecl, FunctionDecl, ConstDecl,
)

logger = logging.getLogger(__name__)


def _key(name: str) -> str:
    return name.lstrip('\\').lower()


class ClassIndex:
    """
    全限定名 → 声明 的映射。

    resolve() 先按全限定名精确查找；找不到时，如果短名字只对应一个类，
    就返回那个类（分析单个文件时常常缺少 use 语句上下文）。
    """
    def __init__(self):
        self._classes:   dict[str, ClassDecl] = {}
        self._short:     dict[str, list[ClassDecl]] = {}
        self._functions: dict[str, FunctionDecl] = {}
        self._constants: dict[str, ConstDecl] = {}

    # ── 登记 ────────────────────────────────────────────────────────────────

    def add(self, file_node: FileNode) -> int:
        """登记一个文件中的全部顶层声明，返回登记的类数量"""
        namespace = ''
        uses: dict[str, str] = {}
        count = 0
        for stmt in file_node.stmts:
            if isinstance(stmt, NamespaceDecl):
                namespace, uses = stmt.name, {}
            elif isinstance(stmt, UseDecl):
                for name, alias in stmt.items:
                    uses[alias.lower()] = name
            elif isinstance(stmt, ClassDecl):
                stmt.namespace, stmt.uses = namespace, dict(uses)
                stmt.parent = self.qualify(stmt.parent, namespace, uses) if stmt.parent else None
                stmt.interfaces = [self.qualify(n, namespace, uses) for n in stmt.interfaces]
                stmt.traits = [self.qualify(n, namespace, uses) for n in stmt.traits]
                self._add_class(stmt)
                count += 1
            elif isinstance(stmt, FunctionDecl):
                stmt.namespace, stmt.uses = namespace, dict(uses)
                self._functions[_key(stmt.fqn)] = stmt
            elif isinstance(stmt, ConstDecl):
                self._constants[stmt.name] = stmt
        logger.debug("indexed %d class(es), namespace=%r", count, namespace)
        return count

    def _add_class(self, decl: ClassDecl):
        key = _key(decl.fqn)
        if key in self._classes:
            logger.debug("class %s redeclared, keeping the latest", decl.fqn)
            old = self._classes[key]
            self._short[old.name.lower()].remove(old)
        self._classes[key] = decl
        self._short.setdefault(decl.name.lower(), []).append(decl)

    # ── 查询 ────────────────────────────────────────────────────────────────

    def resolve(self, name: str) -> Optional[ClassDecl]:
        if not name:
            return None
        decl = self._classes.get(_key(name))
        if decl is not None:
            return decl
        candidates = self._short.get(_key(name).rsplit('\\', 1)[-1], [])
        return candidates[0] if len(candidates) == 1 else None

    def resolve_function(self, name: str) -> Optional[FunctionDecl]:
        """全限定名 → 全局函数 → 唯一的同名命名空间函数"""
        decl = self._functions.get(_key(name))
        if decl is not None:
            return decl
        short = _key(name).rsplit('\\', 1)[-1]
        decl = self._functions.get(short)
        if decl is not None:
            return decl
        candidates = [f for f in self._functions.values() if f.name.lower() == short]
        return candidates[0] if len(candidates) == 1 else None

    def resolve_constant(self, name: str) -> Optional[ConstDecl]:
        return self._constants.get(name.lstrip('\\').rsplit('\\', 1)[-1])

    def classes(self) -> list[ClassDecl]:
        return list(self._classes.values())

    def functions(self) -> list[FunctionDecl]:
        return list(self._functions.values())

    def __contains__(self, name):
        return self.resolve(name) is not None

    def __len__(self):
        return len(self._classes)

    # ── 名字解析 ────────────────────────────────────────────────────────────

    @staticmethod
    def qualify(name: str, namespace: str = '', uses: dict = None) -> str:
        """
        按 PHP 规则把源码中的类名展开为全限定名（不含前导 \\）。
        self / static / parent 原样返回。
        """
        if name.startswith('\\'):
            return name[1:]
        if name.lower() in ('self', 'static', 'parent'):
            return name
        head, _, rest = name.partition('\\')
        target = (uses or {}).get(head.lower())
        if target:
            return f"{target}\\{rest}" if rest else target
        return f"{namespace}\\{name}" if namespace else name

    def dump(self) -> str:
        lines = []
        for decl in self._classes.values():
            extra = f" extends {decl.parent}" if decl.parent else ''
            lines.append(f"[{decl.kind}] {decl.fqn}{extra}")
            for m in decl.methods:
                lines.append(f"  {m.name}()")
        for fn in self._functions.values():
            lines.append(f"[function] {fn.fqn}()")
        return '\n'.join(lines)
