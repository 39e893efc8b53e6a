"""
phpinfer - PHP 静态类型推导引擎
================================
模块结构：
  phpinfer/
    __init__.py          本文件：公共 API
    error.py             诊断信息系统
    pipeline.py          解析 → AST → 索引 → 推导 流水线
    cli.py               命令行入口
    tree/
      php.lark           PHP 子集文法
      transformer.py     CST → AST 转换器 & AST 节点定义
    semantic/
      type.py            推导类型代数
      scope.py           变量作用域
      phpdoc.py          PHPDoc 注释与类型表达式
      natives.py         内置函数返回类型表
      index.py           类 / 函数索引
      analyzer.py        方法体推导器
      infer.py           方法解析与记忆化
    generator/
      types.py           OpenAPI schema 类型
      schema.py          Schema / Reference / Components / Response
      transformer.py     推导类型 → schema
      parameter.py       请求参数

快速使用示例：

    from phpinfer import InferFrontend

    frontend = InferFrontend()
    frontend.load_natives_common()
    frontend.process_string(source_code)

    foo = frontend.infer().analyze_class('Foo')
    print(foo.get_method_call_type('bar'))    # int(1)
"""

from .pipeline import InferFrontend, FrontendResult
from .error import (
    DiagnosticBag, DiagKind, InferError, UnresolvableSymbol, UnsupportedConstruct,
)
from .semantic.type import (
    UNKNOWN, NULL, BOOLEAN, INT, FLOAT, STRING,
    Type, ArrayType, ArrayItem, ArrayMapType, ObjectType, Union,
    IntersectionType, FunctionType, union,
)
from .semantic.infer import Infer
from .semantic.index import ClassIndex
from .semantic.natives import COMMON_NATIVES

__all__ = [
    'InferFrontend', 'FrontendResult',
    'DiagnosticBag', 'DiagKind', 'InferError', 'UnresolvableSymbol', 'UnsupportedConstruct',
    'UNKNOWN', 'NULL', 'BOOLEAN', 'INT', 'FLOAT', 'STRING',
    'Type', 'ArrayType', 'ArrayItem', 'ArrayMapType', 'ObjectType', 'Union',
    'IntersectionType', 'FunctionType', 'union',
    'Infer', 'ClassIndex', 'COMMON_NATIVES',
]
