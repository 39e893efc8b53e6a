"""
变量作用域
==========
一个方法体对应一个 Scope：变量名 → 当前推导类型。

分支语句（if / switch / 循环体）在 fork() 出来的子作用域里求值，
结束后用 merge_branches() 把各分支的绑定按变量取并集写回父作用域。
"""

from __future__ import annotations
from typing import Iterable

from .type import Type, UNKNOWN, union


class Scope:
    """
    变量名 → 类型 的映射。

    与 PHP 语义一致：读取未声明变量不报错，直接得到 unknown。
    """
    def __init__(self, bindings: dict[str, Type] = None):
        self._table: dict[str, Type] = dict(bindings or {})

    def get(self, name: str) -> Type:
        return self._table.get(name, UNKNOWN)

    def set(self, name: str, t: Type):
        self._table[name] = t

    def has(self, name: str) -> bool:
        return name in self._table

    def unset(self, name: str):
        self._table.pop(name, None)

    def fork(self) -> 'Scope':
        """子作用域：预先复制当前全部绑定"""
        return Scope(self._table)

    def merge_branches(self, branches: Iterable['Scope']) -> 'Scope':
        """
        合并分支作用域，结果写回 self 并返回 self。

        对至少在一个分支中出现的变量，取它在所有出现分支中的类型并集；
        只在部分分支中赋值的变量不额外并入"未定义"标记。
        没有任何分支时（全部分支都已 return）self 保持不变。
        """
        branches = list(branches)
        if not branches:
            return self
        merged: dict[str, list[Type]] = {}
        for branch in branches:
            for name, t in branch._table.items():
                merged.setdefault(name, []).append(t)
        for name, types in merged.items():
            self._table[name] = union(types)
        return self

    def names(self):
        return self._table.keys()

    def items(self):
        return self._table.items()

    def __contains__(self, name):
        return name in self._table

    def __repr__(self):
        inner = ', '.join(f"${k}: {v}" for k, v in self._table.items())
        return f"Scope({inner})"
