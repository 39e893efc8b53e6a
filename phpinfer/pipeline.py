"""
phpinfer 分析流水线
====================
将词法分析 → 语法分析 → AST 转换 → 类索引 → 类型推导串联为一个高层接口。
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from lark import Lark, exceptions as lark_exc

from .tree.transformer import PhpTransformer, FileNode
from .semantic.index import ClassIndex
from .semantic.infer import Infer
from .semantic.natives import NativeLoader, COMMON_NATIVES
from .error import DiagnosticBag, DiagKind

logger = logging.getLogger(__name__)

GRAMMAR_FILE = Path(__file__).parent / 'tree' / 'php.lark'


# ─── 结果对象 ──────────────────────────────────────────────────────────────────

@dataclass
class FrontendResult:
    """分析流水线的输出"""
    ast:   Optional[FileNode]      # None 表示语法分析失败
    diags: DiagnosticBag
    index: ClassIndex

    @property
    def success(self) -> bool:
        return self.ast is not None and not self.diags.has_errors


# ─── 主流水线 ─────────────────────────────────────────────────────────────────

class InferFrontend:
    """
    PHP 类型推导前端。

    主要流程：
      1. Lark 解析（词法 + 语法）→ CST
      2. PhpTransformer → AST（附带文档注释）
      3. ClassIndex     → 登记类 / 函数声明
      4. Infer          → 按需推导方法返回类型

    用法::

        frontend = InferFrontend()
        frontend.load_natives_common()          # 加载常用内置函数
        frontend.process_file("app/Foo.php")
        infer = frontend.infer()
        foo = infer.analyze_class('App\\\\Foo')
        print(foo.get_method_call_type('bar'))
    """

    def __init__(self, grammar_text: str = None, grammar_file: str | Path = None):
        """
        Args:
            grammar_text: 直接传入 grammar 字符串
            grammar_file: .lark 文件路径；两者都不传时使用内置的 PHP 子集文法
        """
        options = dict(
            parser='earley',
            lexer='basic',
            propagate_positions=True,
            ambiguity='resolve',
        )
        if grammar_text is not None:
            self._parser = Lark(grammar_text, **options)
        else:
            self._parser = Lark.open(str(grammar_file or GRAMMAR_FILE), **options)

        self._native_loader = NativeLoader()
        self._index = ClassIndex()
        self._diags = DiagnosticBag()

    @property
    def index(self) -> ClassIndex:
        return self._index

    # ── 加载内置函数 ───────────────────────────────────────────────────────

    def load_natives_common(self):
        """加载内置的常用函数定义（无需外部文件）"""
        self._native_loader.load_from_dict(COMMON_NATIVES)

    def load_natives_from_file(self, path: str | Path) -> int:
        """从 PHP stub 文件加载，返回加载的函数数量；读取失败记为 IO warning"""
        before = len(self._native_loader.load_errors)
        count = self._native_loader.load_from_file(path)
        for problem in self._native_loader.load_errors[before:]:
            self._diags.warning(problem, kind=DiagKind.IO)
        return count

    def load_natives_from_dict(self, definitions: dict):
        """从手工字典加载（格式见 NativeLoader.load_from_dict）"""
        self._native_loader.load_from_dict(definitions)

    # ── 分析入口 ───────────────────────────────────────────────────────────

    def process_file(self, path: str | Path) -> FrontendResult:
        """解析单个 .php 文件并登记其中的声明"""
        path = Path(path)
        if not path.exists():
            diag = DiagnosticBag()
            diag.error(f"文件不存在: {path}", kind=DiagKind.IO)
            self._diags.extend(diag)
            return FrontendResult(ast=None, diags=diag, index=self._index)
        source = path.read_text(encoding='utf-8', errors='replace')
        return self.process_string(source, source_name=str(path))

    def process_string(self, source: str, source_name: str = '<input>') -> FrontendResult:
        """
        解析源码字符串，登记声明，返回 FrontendResult。
        语法错误时不登记任何声明。
        """
        diag = DiagnosticBag()
        ast = self._parse(source, source_name, diag)
        if ast is not None:
            self._index.add(ast)
        self._diags.extend(diag)
        return FrontendResult(ast=ast, diags=diag, index=self._index)

    def _parse(self, source: str, source_name: str, diag: DiagnosticBag) -> Optional[FileNode]:
        # ── Step 1: 词法 + 语法分析 ─────────────────────────────────────
        try:
            cst = self._parser.parse(source)
        except lark_exc.UnexpectedCharacters as e:
            diag.error(
                f"{source_name}: 词法错误：意外字符 '{e.char}' at {e.line}:{e.column}",
                hint=f"期望：{sorted(e.allowed or [])}")
            return None
        except lark_exc.UnexpectedToken as e:
            diag.error(
                f"{source_name}: 语法错误：意外 token '{e.token}' (类型 {e.token.type}) "
                f"at {e.line}:{e.column}",
                hint=f"期望：{sorted(e.expected or [])}")
            return None
        except lark_exc.UnexpectedEOF as e:
            diag.error(f"{source_name}: 语法错误：文件意外结束",
                       hint=f"期望：{sorted(e.expected or [])}")
            return None
        except lark_exc.ParseError as e:
            diag.error(f"{source_name}: 语法分析失败: {e}")
            return None

        # ── Step 2: CST → AST ───────────────────────────────────────────
        try:
            ast = PhpTransformer(source).transform(cst)
        except lark_exc.VisitError as e:
            diag.error(f"{source_name}: AST 转换失败（{e.rule}）: {e.orig_exc}")
            return None

        if not isinstance(ast, FileNode):
            diag.error(f"{source_name}: AST 根节点类型错误：{type(ast).__name__}")
            return None
        logger.debug("parsed %s: %d top-level statement(s)", source_name, len(ast.stmts))
        return ast

    # ── 推导 ───────────────────────────────────────────────────────────────

    def infer(self) -> Infer:
        """
        在已处理的全部源码上建立推导上下文。
        推导期间的 warning 写入前端的汇总诊断袋（见 diags）。
        """
        return Infer(self._index, natives=self._native_loader.get_builtins(),
                     diags=self._diags)

    @property
    def diags(self) -> DiagnosticBag:
        """所有 process_* 调用与推导的汇总诊断"""
        return self._diags

    # ── 调试工具 ───────────────────────────────────────────────────────────

    def parse_only(self, source: str):
        """仅做语法分析，返回 Lark Tree（调试用）"""
        return self._parser.parse(source)

    def transform_only(self, source: str) -> FileNode:
        """语法分析 + AST 转换，不登记声明（调试用）"""
        return PhpTransformer(source).transform(self._parser.parse(source))
