"""
phpinfer 命令行
================
    phpinfer app/Foo.php app/Bar.php
    phpinfer app/Foo.php --class 'App\\Foo' --method toArray --schema

输出每个方法的推导返回类型（Class::method: type）；
--schema 时输出响应 schema 的 JSON。诊断信息写到 stderr。
"""

from __future__ import annotations
import argparse
import json
import logging
import sys

from .pipeline import InferFrontend
from .generator.transformer import TypeTransformer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='phpinfer',
        description='推导 PHP 方法的返回类型')
    parser.add_argument('files', nargs='+', metavar='FILE', help='要分析的 .php 文件')
    parser.add_argument('--class', dest='class_name', help='只分析这个类')
    parser.add_argument('--method', help='只输出这个方法')
    parser.add_argument('--schema', action='store_true', help='输出 OpenAPI 响应 schema')
    parser.add_argument('--natives', metavar='STUB', action='append', default=[],
                        help='额外加载的 PHP stub 文件（可重复）')
    parser.add_argument('--debug', action='store_true', help='输出调试日志')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    frontend = InferFrontend()
    frontend.load_natives_common()
    for stub in args.natives:
        frontend.load_natives_from_file(stub)

    failed = False
    for path in args.files:
        result = frontend.process_file(path)
        failed = failed or result.ast is None

    infer = frontend.infer()
    transformer = TypeTransformer(infer) if args.schema else None

    if args.class_name:
        decl = frontend.index.resolve(args.class_name)
        classes = [decl] if decl is not None else []
        if decl is None:
            print(f"找不到类 '{args.class_name}'", file=sys.stderr)
            failed = True
    else:
        classes = [d for d in frontend.index.classes() if d.kind == 'class']

    for decl in classes:
        obj = infer.analyze_class(decl.fqn)
        for method in decl.methods:
            if args.method and method.name.lower() != args.method.lower():
                continue
            ret = obj.get_method_call_type(method.name)
            if transformer is not None:
                schema = transformer.to_response(ret).to_dict()
                print(f"{decl.fqn}::{method.name}:")
                print(json.dumps(schema, indent=2, ensure_ascii=False))
            else:
                print(f"{decl.fqn}::{method.name}: {ret.to_string()}")

    if len(frontend.diags):
        print(frontend.diags.report(), file=sys.stderr)
    return 1 if failed else 0


if __name__ == '__main__':
    sys.exit(main())
