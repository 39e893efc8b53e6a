"""phpinfer 测试公共夹具"""

import pytest

from phpinfer import InferFrontend


@pytest.fixture
def frontend():
    fe = InferFrontend()
    fe.load_natives_common()
    return fe


@pytest.fixture
def analyze(frontend):
    """
    解析一段 PHP 源码并返回 Infer 上下文::

        infer = analyze('<?php class Foo { function bar() { return 1; } }')
        infer.analyze_class('Foo').get_method_call_type('bar')
    """
    def _analyze(source: str):
        result = frontend.process_string(source)
        assert result.success, frontend.diags.report()
        return frontend.infer()
    return _analyze


@pytest.fixture
def method_type(analyze):
    """单个方法的推导类型文本，如 'int(1)'"""
    def _method_type(source: str, cls: str, method: str) -> str:
        obj = analyze(source).analyze_class(cls)
        return obj.get_method_call_type(method).to_string()
    return _method_type


@pytest.fixture
def body_type(method_type):
    """把方法体包进 class Foo 后推导 bar() 的返回类型"""
    def _body_type(body: str, members: str = '') -> str:
        source = f"<?php\nclass Foo {{\n{members}\npublic function bar() {{\n{body}\n}}\n}}\n"
        return method_type(source, 'Foo', 'bar')
    return _body_type
