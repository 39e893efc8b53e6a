"""
phpinfer 诊断体系
==================
推导引擎"尽量给出答案"：无法解析的符号、不支持的语法结构都降级为
unknown 类型，只在诊断袋里留下一条 warning，而不是中断整个分析。
"""

from dataclasses import dataclass
from enum import Enum, auto


class ErrorSeverity(Enum):
    WARNING = auto()
    ERROR   = auto()


class DiagKind(Enum):
    SYNTAX                = auto()   # 词法/语法错误，无 AST
    UNRESOLVABLE_SYMBOL   = auto()   # 找不到类 / 方法 / 函数
    UNSUPPORTED_CONSTRUCT = auto()   # 推导器没有对应规则的节点
    IO                    = auto()   # 文件读取失败
    INTERNAL              = auto()   # 推导过程本身失败（递归过深等）


@dataclass
class SemanticDiag:
    """一条诊断信息"""
    severity: ErrorSeverity
    kind:     DiagKind
    message:  str
    line:     int = -1
    column:   int = -1
    hint:     str = ''

    def __str__(self):
        where = f"{self.line}:{self.column}" if self.line > 0 else '-'
        text = f"{self.severity.name.lower()} {self.kind.name} @{where}: {self.message}"
        return f"{text}\n    {self.hint}" if self.hint else text


class InferError(Exception):
    """推导错误基类（fail-fast 模式或内部传递用）"""
    kind = DiagKind.SYNTAX

    def __init__(self, message, node=None):
        super().__init__(message)
        self.node = node


class UnresolvableSymbol(InferError):
    """类 / 方法 / 函数在符号表中不存在"""
    kind = DiagKind.UNRESOLVABLE_SYMBOL


class UnsupportedConstruct(InferError):
    """推导器没有处理规则的 AST 节点"""
    kind = DiagKind.UNSUPPORTED_CONSTRUCT


class DiagnosticBag:
    """
    推导过程中的 warning / error 汇总。

    前端每处理一个文件得到一个袋子，随后并入 InferFrontend 的汇总袋；
    推导期间的 warning 直接写入汇总袋。
    """
    def __init__(self):
        self._items: list[SemanticDiag] = []

    # ── 写入 ────────────────────────────────────────────────────────────────

    def _add(self, severity, kind, message, node, hint):
        line, column = _loc(node)
        self._items.append(SemanticDiag(severity, kind, message, line, column, hint))

    def error(self, message: str, node=None, hint: str = '',
              kind: DiagKind = DiagKind.SYNTAX):
        self._add(ErrorSeverity.ERROR, kind, message, node, hint)

    def warning(self, message: str, node=None, hint: str = '',
                kind: DiagKind = DiagKind.UNSUPPORTED_CONSTRUCT):
        self._add(ErrorSeverity.WARNING, kind, message, node, hint)

    def extend(self, other: 'DiagnosticBag'):
        self._items.extend(other)

    def clear(self):
        self._items.clear()

    # ── 读取 ────────────────────────────────────────────────────────────────

    def _with(self, severity: ErrorSeverity) -> list[SemanticDiag]:
        return [d for d in self._items if d.severity is severity]

    @property
    def errors(self):
        return self._with(ErrorSeverity.ERROR)

    @property
    def warnings(self):
        return self._with(ErrorSeverity.WARNING)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def of_kind(self, kind: DiagKind):
        return [d for d in self._items if d.kind is kind]

    def __iter__(self):
        return iter(self._items)

    def __len__(self):
        return len(self._items)

    # ── 报告 ────────────────────────────────────────────────────────────────

    def report(self) -> str:
        """按产生顺序列出诊断，末尾附计数"""
        if not self._items:
            return "无诊断信息"
        body = '\n'.join(map(str, self._items))
        return f"{body}\n{'─' * 40}\n错误 {len(self.errors)} 条，警告 {len(self.warnings)} 条"

    def raise_if_errors(self):
        errors = self.errors
        if errors:
            details = '\n'.join(map(str, errors))
            raise InferError(f"共 {len(errors)} 条错误：\n{details}")


def _loc(node) -> tuple[int, int]:
    """AST 节点（line/col）或 lark Token（line/column）的位置；没有位置时为 (-1, -1)"""
    line = getattr(node, 'line', None)
    column = getattr(node, 'col', getattr(node, 'column', None))
    if not line:
        return -1, -1
    return line, column or -1
