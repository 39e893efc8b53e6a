import pytest

from phpinfer.error import DiagKind
from phpinfer.semantic.analyzer import MethodAnalyzer
from phpinfer.semantic.infer import ResolutionState
from phpinfer.semantic.type import ArrayType, ObjectType


# ══════════════════════════════════════════════════════════════════════════
# 方法解析 / 记忆化
# ══════════════════════════════════════════════════════════════════════════

def test_simply_infers_method_types(method_type):
    source = """<?php
    class Foo_SampleClass {
        public function bar() { return 1; }
        public function foo() { return $this->bar(); }
    }
    """
    assert method_type(source, 'Foo_SampleClass', 'bar') == 'int(1)'
    assert method_type(source, 'Foo_SampleClass', 'foo') == 'int(1)'


def test_methods_declared_not_in_order(method_type):
    source = """<?php
    class FooTwo_SampleClass {
        public function foo() { return fn () => $this->bar(); }
        public function bar() { return 1; }
    }
    """
    assert method_type(source, 'FooTwo_SampleClass', 'foo') == '(): int(1)'


def test_method_types_in_array(method_type):
    source = """<?php
    class FooFour_SampleClass {
        public function foo() { return ['a' => $this->bar()]; }
        public function bar() { return 1; }
    }
    """
    assert method_type(source, 'FooFour_SampleClass', 'foo') == 'array{a: int(1)}'


def test_unknown_method_call(analyze):
    infer = analyze("""<?php
    class FooThree_SampleClass {
        public function foo() {
            return [
                'a' => $this->bar(),
                'b' => $this->someMethod(),
            ];
        }
        public function bar() { return ['p' => $a]; }
    }
    """)
    obj = infer.analyze_class('FooThree_SampleClass')
    assert obj.get_method_call_type('foo').to_string() == 'array{a: array{p: unknown}, b: unknown}'
    warnings = infer.diag.of_kind(DiagKind.UNRESOLVABLE_SYMBOL)
    assert any('someMethod' in w.message for w in warnings)


def test_cast(method_type):
    source = """<?php
    class FooFive_SampleClass {
        public function foo() { return (int) $a; }
    }
    """
    assert method_type(source, 'FooFive_SampleClass', 'foo') == 'int'


def test_cyclic_dependency(method_type):
    source = """<?php
    class FooSix_SampleClass {
        public function foo() {
            if (piu()) {
                return 1;
            }
            return $this->foo();
        }
    }
    """
    assert method_type(source, 'FooSix_SampleClass', 'foo') == 'unknown|int(1)'


def test_mutual_recursion_terminates(analyze):
    infer = analyze("""<?php
    class Ping {
        public function a($flag) {
            if ($flag) { return 1; }
            return $this->b();
        }
        public function b() { return $this->a(true); }
    }
    """)
    obj = infer.analyze_class('Ping')
    assert obj.get_method_call_type('a').to_string() == 'unknown|int(1)'
    assert obj.get_method_call_type('b').to_string() == 'unknown'


def test_discarded_cyclic_call_adds_nothing(analyze):
    infer = analyze("""<?php
    class Loop {
        public function self_call() {
            $x = $this->self_call();
            return 1;
        }
        public function a() { return $this->b(); }
        public function b() {
            $this->a();
            return 2;
        }
    }
    """)
    obj = infer.analyze_class('Loop')
    assert obj.get_method_call_type('self_call').to_string() == 'int(1)'
    assert obj.get_method_call_type('a').to_string() == 'int(2)'
    assert obj.get_method_call_type('b').to_string() == 'int(2)'


def test_failed_analysis_resolves_to_unknown(analyze, monkeypatch):
    infer = analyze("""<?php
    class Foo {
        public function bar() { return 1; }
        public function baz() { return $this->bar(); }
    }
    """)
    original = MethodAnalyzer.analyze

    def exploding(self, decl):
        if decl.name == 'bar':
            raise RecursionError('maximum recursion depth exceeded')
        return original(self, decl)

    monkeypatch.setattr(MethodAnalyzer, 'analyze', exploding)
    obj = infer.analyze_class('Foo')
    assert obj.get_method_call_type('bar').to_string() == 'unknown'
    assert obj.get_method_call_type('baz').to_string() == 'unknown'
    entry = infer.class_type('Foo').entry('bar')
    assert entry.state is ResolutionState.RESOLVED
    assert not entry.cyclic
    internal = infer.diag.of_kind(DiagKind.INTERNAL)
    assert len(internal) == 1
    assert 'Foo::bar' in internal[0].message


def test_this_return(method_type):
    source = """<?php
    class FooSeven_SampleClass {
        public function foo() { return $this; }
    }
    """
    assert method_type(source, 'FooSeven_SampleClass', 'foo') == 'FooSeven_SampleClass'


def test_analyze_class_is_idempotent(analyze):
    infer = analyze("""<?php
    class Foo {
        public function bar() { return [1, undefined_fn()]; }
    }
    """)
    first = infer.analyze_class('Foo')
    warnings = len(infer.diag)
    second = infer.analyze_class('Foo')
    assert first is second
    assert first.get_method_call_type('bar') is second.get_method_call_type('bar')
    assert len(infer.diag) == warnings


def test_reset_drops_records(analyze):
    infer = analyze('<?php class Foo { function bar() { return 1; } }')
    first = infer.analyze_class('Foo')
    infer.reset()
    second = infer.analyze_class('Foo')
    assert first is not second
    assert first == second
    assert second.get_method_call_type('bar').to_string() == 'int(1)'


def test_method_names_are_case_insensitive(analyze):
    infer = analyze('<?php class Foo { function getName() { return "n"; } }')
    assert infer.analyze_class('foo').get_method_call_type('GETNAME').to_string() == 'string(n)'


def test_missing_class_gives_unknown(analyze):
    infer = analyze('<?php class Foo {}')
    obj = infer.analyze_class('Nope')
    assert isinstance(obj, ObjectType)
    assert obj.get_method_call_type('anything').to_string() == 'unknown'
    assert infer.diag.of_kind(DiagKind.UNRESOLVABLE_SYMBOL)


def test_missing_method_gives_unknown(analyze):
    infer = analyze('<?php class Foo {}')
    assert infer.analyze_class('Foo').get_method_call_type('nope').to_string() == 'unknown'


# ══════════════════════════════════════════════════════════════════════════
# 继承 / 静态访问 / 属性
# ══════════════════════════════════════════════════════════════════════════

def test_inherited_methods(analyze):
    infer = analyze("""<?php
    class Base { public function hello() { return 'hi'; } }
    class Child extends Base {
        public function bar() { return $this->hello(); }
        public function viaParent() { return parent::hello(); }
    }
    """)
    child = infer.analyze_class('Child')
    assert child.get_method_call_type('bar').to_string() == 'string(hi)'
    assert child.get_method_call_type('viaParent').to_string() == 'string(hi)'
    assert child.get_method_call_type('hello').to_string() == 'string(hi)'


def test_trait_methods(analyze):
    infer = analyze("""<?php
    trait Greets { public function greet() { return 'hey'; } }
    class Foo {
        use Greets;
        public function bar() { return $this->greet(); }
    }
    """)
    assert infer.analyze_class('Foo').get_method_call_type('bar').to_string() == 'string(hey)'


def test_static_access(body_type):
    members = """
        const X = 'x';
        public static function make() { return new static(); }
    """
    assert body_type('return static::make();', members) == 'Foo'
    assert body_type('return self::X;', members) == 'string(x)'
    assert body_type('return Foo::class;', members) == 'string(Foo)'


def test_new_expression(body_type):
    assert body_type('return new Foo();') == 'Foo'
    assert body_type('return new Missing();') == 'Missing'


def test_property_types(analyze):
    infer = analyze("""<?php
    /**
     * @property Bar $other
     */
    class Foo {
        /** @var string */
        public $name;
        public int $count = 0;
        public function name() { return $this->name; }
        public function count() { return $this->count; }
        public function other() { return $this->other; }
        public function dynamic() { return $this->nothing; }
    }
    """)
    foo = infer.analyze_class('Foo')
    assert foo.get_method_call_type('name').to_string() == 'string'
    assert foo.get_method_call_type('count').to_string() == 'int'
    assert foo.get_method_call_type('other').to_string() == 'Bar'
    assert foo.get_method_call_type('dynamic').to_string() == 'unknown'


def test_namespaced_classes(analyze):
    infer = analyze("""<?php
    namespace App;
    class Item { public function id() { return 7; } }
    class Repo {
        public function find() { return new Item(); }
        public function id() { return $this->find()->id(); }
    }
    """)
    repo = infer.analyze_class('App\\Repo')
    assert repo.get_method_call_type('find').to_string() == 'App\\Item'
    assert repo.get_method_call_type('id').to_string() == 'int(7)'


# ══════════════════════════════════════════════════════════════════════════
# 表达式
# ══════════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize('body, expected', [
    ('return 1;', 'int(1)'),
    ('return 1.5;', 'float(1.5)'),
    ("return 'a';", 'string(a)'),
    ('return true;', 'boolean'),
    ('return null;', 'null'),
    ('$n = 1; return "v $n";', 'string'),
    ('return 1 + 2;', 'int(3)'),
    ('return 7 / 2;', 'float(3.5)'),
    ('return 6 / 3;', 'int(2)'),
    ('return 1 / 0;', 'int|float'),
    ('return 1.5 + 1;', 'float(2.5)'),
    ('return 2 ** -1;', 'float(0.5)'),
    ('return -5 % 3;', 'int(-2)'),
    ('return 5 & 3;', 'int(1)'),
    ("return 'a' . 1;", 'string(a1)'),
    ('return $x + 1;', 'int|float'),
    ('return 1 < 2;', 'boolean'),
    ('return 1 <=> 2;', 'int'),
    ('return !$x;', 'boolean'),
    ('return -$x;', 'int|float'),
    ("$a = 1; $a .= 'x'; return $a;", 'string(1x)'),
    ('$i = 1; $i++; return $i;', 'int'),
    ("$x = null; return $x ?? 'd';", 'string(d)'),
    ("return $c ? 1 : 'a';", "int(1)|string(a)"),
    ("$a = 1; return $a ?: 'b';", 'int(1)|string(b)'),
    ('return $x instanceof Foo;', 'boolean'),
    ('return clone $this;', 'Foo'),
])
def test_expressions(body_type, body, expected):
    assert body_type(body) == expected


@pytest.mark.parametrize('body, expected', [
    ('return 9223372036854775807 + 1;', 'float(9.223372036854776e+18)'),
    ('return -9223372036854775807 - 1;', 'int(-9223372036854775808)'),
    ('return 99999999999999999999;', 'float(1e+20)'),
    ('return 2 ** 62;', 'int(4611686018427387904)'),
    ('return 2 ** 63;', 'float(9.223372036854776e+18)'),
    ('return 1 << 63;', 'int(-9223372036854775808)'),
    ('return 10 ** 5000;', 'float'),
    ("return 'x' . (10 ** 5000);", 'string'),
])
def test_integer_overflow_follows_php(body_type, body, expected):
    assert body_type(body) == expected


@pytest.mark.parametrize('body, expected', [
    ('return (int) 1;', 'int'),
    ("return (string) 1;", 'string'),
    ('return (bool) 1;', 'boolean'),
    ('return (float) 1;', 'float'),
    ('return (array) 1;', 'array<unknown, unknown>'),
    ('return (array) [1];', 'array{int(1)}'),
])
def test_casts_widen(body_type, body, expected):
    assert body_type(body) == expected


# ── 数组 ───────────────────────────────────────────────────────────────────

@pytest.mark.parametrize('body, expected', [
    ("return ['a' => 1];", 'array{a: int(1)}'),
    ("return ['a' => 1, 'b' => 'x'];", 'array{a: int(1), b: string(x)}'),
    ('return [1, 2];', 'array{int(1), int(2)}'),
    ('return array(1, 2);', 'array{int(1), int(2)}'),
    ('return [];', 'array{}'),
    ('return [$c => 1];', 'array<unknown, int(1)>'),
    ('$a = [1]; return [...$a, 2];', 'array{int(1), int(2)}'),
    ("$a = []; $a['x'] = 1; $a[] = 'y'; return $a;", 'array{x: int(1), string(y)}'),
    ("$a['x']['y'] = 1; return $a;", 'array{x: array{y: int(1)}}'),
    ("$a = ['k' => 1, 'j' => 'v']; return $a['j'];", 'string(v)'),
    ("$a = [1, 'x']; return $a[1];", 'string(x)'),
    ("[$a, $b] = [1, 'x']; return $b;", 'string(x)'),
    ("$a = 1; return compact('a');", 'array{a: int(1)}'),
])
def test_arrays(body_type, body, expected):
    assert body_type(body) == expected


def test_array_item_doc_hints(analyze):
    infer = analyze("""<?php
    class Foo {
        public function bar() {
            return [
                /** @var int $id the id */
                'id' => $c,
                /** @var $note free text */
                'note' => 'x',
            ];
        }
    }
    """)
    result = infer.analyze_class('Foo').get_method_call_type('bar')
    assert isinstance(result, ArrayType)
    assert result.to_string() == 'array{id: int, note: string(x)}'
    assert result.items[0].description == 'the id'
    assert result.items[1].description == 'free text'


# ── 调用 ───────────────────────────────────────────────────────────────────

def test_builtin_functions(body_type):
    assert body_type('return count([]);') == 'int'
    assert body_type("return strpos('a', 'b');") == 'int|boolean'
    assert body_type('return isset($x);') == 'boolean'


def test_unknown_function(analyze):
    infer = analyze('<?php class Foo { function bar() { return undefined_fn(); } }')
    assert infer.analyze_class('Foo').get_method_call_type('bar').to_string() == 'unknown'
    warnings = infer.diag.of_kind(DiagKind.UNRESOLVABLE_SYMBOL)
    assert any('undefined_fn' in w.message for w in warnings)


def test_user_functions_and_constants(analyze):
    infer = analyze("""<?php
    const LIMIT = 10;
    function helper() { return 42; }
    class Foo {
        public function bar() { return helper(); }
        public function limit() { return LIMIT; }
        public function eol() { return PHP_EOL; }
    }
    """)
    foo = infer.analyze_class('Foo')
    assert foo.get_method_call_type('bar').to_string() == 'int(42)'
    assert foo.get_method_call_type('limit').to_string() == 'int(10)'
    assert foo.get_method_call_type('eol').to_string() == 'string'
    assert infer.get_function_type('helper').to_string() == 'int(42)'


def test_closures(body_type):
    assert body_type('$x = 1; $f = function () use ($x) { return $x; }; return $f();') == 'int(1)'
    assert body_type('return fn (int $a) => $a;') == '(int): int'
    assert body_type('return function () { return 1; };') == '(): int(1)'
    assert body_type('return function () {};') == '(): null'


def test_nullsafe_on_unknown(body_type):
    assert body_type('return $c?->foo();') == 'unknown'


# ══════════════════════════════════════════════════════════════════════════
# 语句 / 控制流
# ══════════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize('body, expected', [
    ("if ($c) { $a = 1; } else { $a = 'x'; } return $a;", "int(1)|string(x)"),
    ('$a = 0; if ($c) { $a = 1; } return $a;', 'int(1)|int(0)'),
    ('if ($c) { $a = 1; } elseif ($d) { $a = 2; } else { $a = 3; } return $a;',
     'int(1)|int(2)|int(3)'),
    ("if ($c) { return 1; } else { return 2; } return 'never';", 'int(1)|int(2)'),
    ('if ($c) { return 1; }', 'int(1)|null'),
    ('$a = 1;', 'null'),
    ('throw new Exception();', 'unknown'),
    ("switch ($c) { case 1: $a = 'one'; break; case 2: $a = 'two'; break; "
     "default: $a = 'other'; } return $a;",
     'string(one)|string(two)|string(other)'),
    ("switch ($c) { case 1: return 'one'; default: return 'other'; }",
     'string(one)|string(other)'),
    ("return match ($c) { 1 => 'a', default => 2 };", 'string(a)|int(2)'),
    ('$s = 0; foreach ([1, 2] as $k => $v) { $s = $v; } return $s;', 'int(0)|int(1)|int(2)'),
    ('foreach ([1, 2] as $k => $v) {} return $k;', 'int'),
    ("foreach (['a' => 1] as $k => $v) {} return $k;", 'string'),
    ('$i = 0; while ($i < 10) { $i = $i + 1; } return $i;', 'int(0)|int(1)'),
    ('$i = 0; do { $i = 2; } while ($c); return $i;', 'int(0)|int(2)'),
    ('for ($i = 0; $i < 3; $i++) { $j = 1; } return $j;', 'int(1)'),
    ('try { $a = 1; } catch (Exception $e) { return $e; } return $a;', 'Exception|int(1)'),
    ('try { $a = 1; } finally { $a = 2; } return $a;', 'int(2)'),
])
def test_control_flow(body_type, body, expected):
    assert body_type(body) == expected


# ══════════════════════════════════════════════════════════════════════════
# 文档注释覆盖
# ══════════════════════════════════════════════════════════════════════════

def test_var_doc_overrides_assignment(body_type):
    assert body_type('/** @var int $x */\n$x = $c;\nreturn $x;') == 'int'


def test_return_doc_overrides_inferred(method_type):
    source = """<?php
    class Foo {
        /** @return string */
        public function bar() { return 1; }
    }
    """
    assert method_type(source, 'Foo', 'bar') == 'string'


def test_param_types(analyze):
    infer = analyze("""<?php
    class Foo {
        /** @param int $a */
        public function doc($a) { return $a; }
        public function native(?string $a) { return $a; }
        public function untyped($a) { return $a; }
        /** @param int[] $items */
        public function items(array $items) { return $items; }
    }
    """)
    foo = infer.analyze_class('Foo')
    assert foo.get_method_call_type('doc').to_string() == 'int'
    assert foo.get_method_call_type('native').to_string() == 'string|null'
    assert foo.get_method_call_type('untyped').to_string() == 'unknown'
    assert foo.get_method_call_type('items').to_string() == 'array<int>'


def test_native_return_hint_fills_unknown(method_type):
    source = """<?php
    class Foo {
        public function bar(): int { return $this->missing; }
        public function baz(): int { return 1; }
    }
    """
    assert method_type(source, 'Foo', 'bar') == 'int'
    assert method_type(source, 'Foo', 'baz') == 'int(1)'
