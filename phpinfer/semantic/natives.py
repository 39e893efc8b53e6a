"""
内置函数签名
============
推导 `strlen($s)`、`json_encode($x)` 这类调用只需要内置函数的返回类型。
签名来源有两种：

  - stub 文件：逐行匹配 `function strlen(string $string): int {}` 形式的声明
  - 字典：{ 名字: (返回类型, [参数类型...]) }，类型串按 PHPDoc 语法解析

    loader = NativeLoader()
    loader.load_from_dict(COMMON_NATIVES)
    infer = Infer(index, natives=loader.get_builtins())
"""

from __future__ import annotations
import logging
import re
from pathlib import Path

from .type import FunctionType, Type, UNKNOWN
from .phpdoc import to_type

logger = logging.getLogger(__name__)


# function &name(params): ret
_FUNCTION_RE = re.compile(
    r'function\s+&?'
    r'(?P<name>[a-zA-Z_]\w*)\s*'              # 函数名
    r'\((?P<params>[^)]*)\)\s*'               # 参数列表
    r'(?::\s*(?P<ret>[?\\\w|&]+))?'           # 返回类型（可省略）
)

_PARAM_RE = re.compile(
    r'(?P<type>[?\\\w|&]+)?\s*&?(?:\.\.\.)?\$(?P<name>\w+)'
)


def _parse_type_str(type_str: str) -> Type:
    """stub 中出现的类型串 → Type（与 PHPDoc 共用同一套解析）"""
    if not type_str:
        return UNKNOWN
    return to_type(type_str)


class NativeLoader:
    """内置函数名（小写）→ FunctionType"""

    def __init__(self):
        self._signatures: dict[str, FunctionType] = {}
        self._problems: list[str] = []

    def load_from_file(self, path: str | Path) -> int:
        """读取一个 stub 文件，返回其中识别出的函数声明数"""
        path = Path(path)
        try:
            text = path.read_text(encoding='utf-8', errors='replace')
        except OSError as e:
            self._problems.append(f"无法读取 {path}: {e}")
            return 0

        found = [m for m in map(_FUNCTION_RE.search, text.splitlines()) if m]
        for m in found:
            self._signatures[m.group('name').lower()] = FunctionType(
                _parse_type_str(m.group('ret')), _stub_params(m.group('params')))
        logger.debug("loaded %d native functions from %s", len(found), path)
        return len(found)

    def load_from_dict(self, definitions: dict[str, tuple]):
        """
        definitions: { 函数名: (返回类型串, [参数类型串, ...]) }，
        类型串使用 PHPDoc 语法，如 'int|false'、'array<int, string>'。
        """
        for name, (ret, params) in definitions.items():
            self._signatures[name.lower()] = FunctionType(
                _parse_type_str(ret), [_parse_type_str(p) for p in params])

    def get_builtins(self) -> dict[str, FunctionType]:
        return dict(self._signatures)

    @property
    def load_errors(self):
        return list(self._problems)


def _stub_params(text: str) -> list[Type]:
    """'int $a, string ...$rest = null' → [int, string]"""
    types = []
    for part in filter(None, (p.split('=', 1)[0].strip() for p in text.split(','))):
        m = _PARAM_RE.search(part)
        if m:
            types.append(_parse_type_str(m.group('type')))
    return types


# ─── 内置常用函数的手工定义（用于不依赖 stub 文件的快速测试）────────────────────

COMMON_NATIVES = {
    # 数组
    'count':         ('int',    ['array']),
    'array_keys':    ('array<int, string>', ['array']),
    'array_values':  ('array',  ['array']),
    'array_merge':   ('array',  ['array']),
    'array_map':     ('array',  ['callable', 'array']),
    'array_filter':  ('array',  ['array', 'callable']),
    'in_array':      ('bool',   ['mixed', 'array', 'bool']),
    'array_key_exists': ('bool', ['mixed', 'array']),
    'implode':       ('string', ['string', 'array']),
    'explode':       ('array<int, string>', ['string', 'string', 'int']),

    # 字符串
    'strlen':        ('int',    ['string']),
    'strtolower':    ('string', ['string']),
    'strtoupper':    ('string', ['string']),
    'trim':          ('string', ['string', 'string']),
    'sprintf':       ('string', ['string']),
    'str_replace':   ('string', ['string', 'string', 'string']),
    'substr':        ('string', ['string', 'int', 'int']),
    'str_contains':  ('bool',   ['string', 'string']),
    'str_starts_with': ('bool', ['string', 'string']),
    'ucfirst':       ('string', ['string']),
    'strpos':        ('int|false', ['string', 'string', 'int']),

    # JSON / 序列化
    'json_encode':   ('string|false', ['mixed', 'int', 'int']),
    'json_decode':   ('mixed',  ['string', 'bool', 'int', 'int']),
    'serialize':     ('string', ['mixed']),

    # 类型判断 / 转换
    'is_array':      ('bool',   ['mixed']),
    'is_string':     ('bool',   ['mixed']),
    'is_int':        ('bool',   ['mixed']),
    'is_numeric':    ('bool',   ['mixed']),
    'is_null':       ('bool',   ['mixed']),
    'intval':        ('int',    ['mixed', 'int']),
    'floatval':      ('float',  ['mixed']),
    'strval':        ('string', ['mixed']),
    'boolval':       ('bool',   ['mixed']),
    'gettype':       ('string', ['mixed']),
    'get_class':     ('string', ['object']),

    # 数学
    'abs':           ('int|float', ['int|float']),
    'round':         ('float',  ['int|float', 'int']),
    'floor':         ('float',  ['int|float']),
    'ceil':          ('float',  ['int|float']),
    'max':           ('mixed',  ['mixed']),
    'min':           ('mixed',  ['mixed']),
    'rand':          ('int',    ['int', 'int']),
    'random_int':    ('int',    ['int', 'int']),

    # 时间
    'time':          ('int',    []),
    'date':          ('string', ['string', 'int']),
    'microtime':     ('string|float', ['bool']),
}
