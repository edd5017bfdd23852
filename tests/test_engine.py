"""End-to-end tests for the rule engine over realistic zerolog-style modules.

Lines expected to be reported carry a trailing ``# want`` marker.
"""

from __future__ import annotations

import ast
import textwrap

import pytest

from logctx_analyzer.config import RuleConfig
from logctx_analyzer.rules import check_module, check_source

MESSAGE = (
    "zerolog event missing .ctx(ctx) before msg() - "
    "context should be included for proper log correlation"
)

HEADER = """\
import sys
import typing

import context
import zerolog
from zerolog import log
"""


def lint(code: str, config: RuleConfig | None = None) -> tuple[str, list]:
    source = HEADER + textwrap.dedent(code)
    return source, check_source(source, filename="example.py", config=config)


def wanted_lines(source: str) -> list[int]:
    return [i for i, line in enumerate(source.splitlines(), start=1) if "# want" in line]


def assert_matches_markers(code: str, config: RuleConfig | None = None) -> list:
    source, diagnostics = lint(code, config)
    assert [d.line for d in diagnostics] == wanted_lines(source)
    return diagnostics


class TestCorrectUsage:
    def test_chained_injection_in_every_form(self):
        diagnostics = assert_matches_markers("""
            def correct_usage():
                ctx = context.background()

                log.info().ctx(ctx).msg("This is correct")
                log.info().ctx(ctx).str("key", "value").int("count", 42).msg("fields after ctx")
                err = None
                log.error().ctx(ctx).err(err).msg("with error")
                log.info().ctx(ctx).str("action", "test").send()
                log.info().ctx(ctx).msgf("User %s logged in at %d", "alice", 123456)
                log.info().ctx(ctx).msg_func(lambda: "Expensive computation result")
        """)
        assert diagnostics == []

    def test_custom_logger_and_derived_context(self):
        assert_matches_markers("""
            def correct_usage():
                ctx = context.background()
                logger = zerolog.new(sys.stdout)
                logger.info().ctx(ctx).str("key", "value").msg("custom logger")

                child_ctx = context.with_value(ctx, "key", "value")
                log.info().ctx(child_ctx).msg("child context")
        """)

    def test_context_embedded_in_logger(self):
        assert_matches_markers("""
            def correct_usage():
                ctx = context.background()

                logger_with_ctx = log.with_().ctx(ctx).logger()
                logger_with_ctx.info().msg("context is in the logger")
                logger_with_ctx.error().str("error", "test").msg("context already in logger")

                custom_logger_with_ctx = zerolog.new(sys.stdout).with_().ctx(ctx).logger()
                custom_logger_with_ctx.info().msg("custom logger with embedded context")
                custom_logger_with_ctx.debug().int("id", 123).send()
        """)


class TestIncorrectUsage:
    def test_every_terminal_method_is_reported(self):
        diagnostics = assert_matches_markers("""
            def incorrect_usage():
                _ = context.background()

                log.info().msg("This is incorrect")  # want
                log.error().str("key", "value").msg("Missing context")  # want
                log.info().str("action", "test").send()  # want
                log.info().msgf("User %s logged in", "alice")  # want
                log.error().msg_func(lambda: "Missing context")  # want

                logger = zerolog.new(zerolog.new_console_writer())
                logger.info().str("key", "value").msg("Custom logger without context")  # want
        """)
        assert [d.method for d in diagnostics] == ["msg", "msg", "send", "msgf", "msg_func", "msg"]

    def test_message_text(self):
        _, diagnostics = lint("""
            def f():
                log.info().msg("x")
        """)
        assert len(diagnostics) == 1
        assert diagnostics[0].message == MESSAGE
        assert diagnostics[0].rule == "logctx"

    def test_message_names_the_terminal_method(self):
        _, diagnostics = lint("""
            def f():
                log.info().send()
        """)
        assert "before send() -" in diagnostics[0].message

    def test_position_points_at_the_call(self):
        source, diagnostics = lint("""
            def f():
                log.info().msg("x")
        """)
        d = diagnostics[0]
        assert d.line == len(source.splitlines())
        assert d.column == 5
        assert d.file == "example.py"
        assert d.snippet == 'log.info().msg("x")'
        assert d.format() == f"example.py:{d.line}:5: {MESSAGE}"

    def test_all_levels(self):
        assert_matches_markers("""
            def log_levels():
                ctx = context.background()

                log.trace().msg("trace")  # want
                log.debug().msg("debug")  # want
                log.info().msg("info")  # want
                log.warn().msg("warn")  # want
                log.error().msg("error")  # want
                log.fatal().msg("fatal")  # want
                log.panic().msg("panic")  # want
                log.log().msg("log")  # want

                log.trace().ctx(ctx).msg("trace")
                log.debug().ctx(ctx).msg("debug")
                log.info().ctx(ctx).msg("info")
                log.warn().ctx(ctx).msg("warn")
                log.error().ctx(ctx).msg("error")
                log.log().ctx(ctx).msg("log")
        """)


class TestEdgeCases:
    def test_non_logging_and_non_terminal_calls(self):
        assert_matches_markers("""
            class FakeThing:
                def do_something(self):
                    pass


            def some_function() -> FakeThing:
                return FakeThing()


            def edge_cases():
                ctx = context.background()
                some_function().do_something()

                log.info().ctx(ctx).str("key", "value")
                log.info().int("count", 1)

                event = log.info().str("something", "value")
                event.ctx(ctx).msg("Using saved event")
        """)

    def test_unrelated_msg_method_is_ignored(self):
        assert_matches_markers("""
            class Mailer:
                def msg(self, text):
                    pass


            def f():
                Mailer().msg("not a log event")
                unknown_thing().msg("untyped receiver")
        """)

    def test_instance_fields_are_not_tracked(self):
        assert_matches_markers("""
            class App:
                logger: zerolog.Logger

                def __init__(self, logger: zerolog.Logger) -> None:
                    self.logger = logger


            def struct_loggers():
                ctx = context.background()
                app = App(zerolog.new(sys.stdout))
                app.logger.info().msg("Missing context")  # want
                app.logger.info().ctx(ctx).msg("With context")

                app_with_ctx = App(zerolog.new(sys.stdout).with_().ctx(ctx).logger())
                app_with_ctx.logger.info().msg("field carries context but is not tracked")  # want
        """)

    def test_function_returns_are_not_tracked(self):
        assert_matches_markers("""
            def get_logger() -> zerolog.Logger:
                return zerolog.new(sys.stdout)


            def get_logger_with_context(ctx: context.Context) -> zerolog.Logger:
                return zerolog.new(sys.stdout).with_().ctx(ctx).logger()


            def function_loggers():
                ctx = context.background()
                get_logger().info().msg("Missing context")  # want
                get_logger().info().ctx(ctx).msg("With context")
                get_logger_with_context(ctx).info().msg("return carries context")  # want
        """)

    def test_injection_argument_must_be_a_context(self):
        assert_matches_markers("""
            def invalid_context_type():
                log.info().ctx("not-a-context").msg("string")  # want
                log.info().ctx(None).msg("None")  # want
                log.info().ctx().msg("no argument")  # want
        """)

    def test_multiple_injections(self):
        assert_matches_markers("""
            def multiple_ctx_calls():
                ctx = context.background()
                ctx2 = context.background()
                log.info().ctx(ctx).str("key", "val").ctx(ctx2).msg("Multiple contexts")
                log.info().ctx(ctx).str("key", "val").msg("Single context")
        """)

    def test_cast_logger(self):
        assert_matches_markers("""
            def interface_pattern(logger: object):
                ctx = context.background()
                zl = typing.cast(zerolog.Logger, logger)
                zl.info().msg("Logger from cast without context")  # want
                zl.info().ctx(ctx).msg("Logger from cast with context")
        """)

    def test_reassignment(self):
        assert_matches_markers("""
            def reassignment():
                ctx = context.background()
                logger = zerolog.new(sys.stdout)
                logger.info().msg("First logger without context")  # want

                logger = zerolog.new(sys.stdout).with_().ctx(ctx).logger()
                logger.info().msg("After reassignment with context logger")
        """)

    def test_optional_logger_attribute(self):
        assert_matches_markers("""
            class LoggerHolder:
                def __init__(self, logger: zerolog.Logger | None = None) -> None:
                    self.logger: zerolog.Logger | None = logger


            def optional_logger():
                ctx = context.background()
                holder = LoggerHolder(zerolog.new(sys.stdout))
                holder.logger.info().msg("optional logger without context")  # want
                holder.logger.info().ctx(ctx).msg("optional logger with context")
        """)

    def test_optional_context_variable(self):
        assert_matches_markers("""
            def none_context():
                nil_ctx: context.Context | None = None
                log.info().ctx(nil_ctx).msg("optional context still counts")
        """)

    def test_module_level_loggers(self):
        assert_matches_markers("""
            global_logger = zerolog.new(sys.stdout)
            global_logger_with_context = zerolog.new(sys.stdout).with_().ctx(context.background()).logger()


            def global_loggers():
                ctx = context.background()
                global_logger.info().msg("Global logger without context")  # want
                global_logger.info().ctx(ctx).msg("Global logger with context in call")
                global_logger_with_context.info().msg("module variables are not tracked")  # want
        """)

    def test_module_level_calls_are_checked(self):
        assert_matches_markers("""
            log.info().msg("at import time")  # want
            log.info().ctx(context.background()).msg("at import time with context")
        """)

    def test_syntax_error_propagates_from_check_source(self):
        with pytest.raises(SyntaxError):
            check_source("def broken(:\n", filename="broken.py")


class TestVariableTracking:
    def test_variable_chains(self):
        assert_matches_markers("""
            def variable_chains():
                ctx = context.background()

                event1 = log.info()
                event2 = event1.str("key", "value")
                event3 = event2.ctx(ctx)
                event3.msg("context added through variables")

                ev1 = log.error()
                ev2 = ev1.str("error", "test")
                ev2.msg("This should trigger")  # want

                ctx_logger = log.with_().ctx(ctx).logger()
                ctx_logger.info().msg("logger has context")

                logger1, logger2 = zerolog.new(sys.stdout), zerolog.new(sys.stderr)
                logger1.info().msg("Should trigger")  # want
                logger2.error().msg("Should also trigger")  # want
        """)

    def test_one_level_rebinding_propagates(self):
        assert_matches_markers("""
            def f(ctx: context.Context):
                a = log.info().ctx(ctx)
                b = a.str("k", "v")
                b.msg("covered")
                a.int("n", 1).send()
        """)

    def test_logger_returning_links_keep_the_logger_context(self):
        assert_matches_markers("""
            def through_level(ctx: context.Context):
                lg = log.with_().ctx(ctx).logger()
                ev = lg.level(1).info()
                ev.msg("a")
                lg.level(1).info().msg("b")
                other = lg
                other.level(1).info().msg("c")
                lg.sample(None).output(sys.stderr).warn().str("k", "v").msg("d")

                plain = zerolog.new(sys.stdout)
                plain.level(1).info().msg("e")  # want
        """)

    def test_discarded_injection_is_a_known_gap(self):
        # the result of ev.ctx(ctx) is thrown away, so ev is still untracked
        diagnostics = assert_matches_markers("""
            def discarded(ctx: context.Context):
                event = log.info()
                event.ctx(ctx)
                event.msg("x")  # want
        """)
        assert len(diagnostics) == 1

    def test_child_loggers(self):
        assert_matches_markers("""
            def with_fields():
                ctx = context.background()

                child_logger = log.with_().str("component", "test").logger()
                child_logger.info().msg("Child logger without context")  # want

                child_logger_with_ctx = log.with_().ctx(ctx).str("component", "test").logger()
                child_logger_with_ctx.info().msg("Child logger with context")

                grandchild = child_logger_with_ctx.with_().str("sub", "x").logger()
                grandchild.warn().msg("inherits the context")
        """)

    def test_configuration_builder_variable(self):
        assert_matches_markers("""
            def f(ctx: context.Context):
                builder = log.with_().ctx(ctx)
                lg = builder.str("k", "v").logger()
                lg.info().msg("covered through the builder variable")
        """)

    def test_producer_alias(self):
        assert_matches_markers("""
            def f(ctx: context.Context):
                lg = log.with_().ctx(ctx).logger()
                other = lg
                other.info().msg("alias of a carrying logger")
        """)

    def test_reset_on_non_classifiable_source(self):
        assert_matches_markers("""
            def f(ctx: context.Context, make):
                lg = log.with_().ctx(ctx).logger()
                lg = make()
                lg.info().msg("untyped now")
        """)

    def test_reset_typed_reassignment(self):
        assert_matches_markers("""
            def f(ctx: context.Context):
                ev = log.info().ctx(ctx)
                ev = log.info()
                ev.msg("old value no longer counts")  # want
        """)

    def test_tuple_assignment_resets(self):
        assert_matches_markers("""
            def f(ctx: context.Context):
                ev = log.info().ctx(ctx)
                ev, other = log.info(), 1
                ev.msg("tuple assignment resets the name")  # want
        """)

    def test_walrus(self):
        assert_matches_markers("""
            def f(ctx: context.Context):
                if (ev := log.info().ctx(ctx)) is not None:
                    ev.msg("bound by walrus")
        """)

    def test_walrus_in_comprehension_binds_enclosing_scope(self):
        assert_matches_markers("""
            def f(ctx: context.Context, items: list):
                [(ev := log.info().ctx(ctx)) for x in items]
                ev.msg("bound by the comprehension")

                {x: (bare := log.warn()) for x in items}
                bare.msg("no context")  # want

                [x for x in items if (nested := [(inner := log.error()) for y in x])]
                inner.msg("nested comprehension")  # want
        """)

    def test_loop_target_resets(self):
        assert_matches_markers("""
            def f(ctx: context.Context, events: list):
                ev = log.info().ctx(ctx)
                for ev in events:
                    pass
                ev.msg("loop variable is untyped")
        """)

    def test_tracking_ignores_control_flow(self):
        # lexical order only: the branch assignment counts after the branch
        assert_matches_markers("""
            def f(ctx: context.Context, flag: bool):
                ev = log.info()
                if flag:
                    ev = log.info().ctx(ctx)
                ev.msg("lexically preceded by a carrying assignment")
        """)

    def test_assignment_after_use_does_not_count(self):
        assert_matches_markers("""
            def f(ctx: context.Context):
                ev = log.info()
                ev.msg("x")  # want
                ev = log.info().ctx(ctx)
        """)


class TestScopes:
    def test_exception_group_handlers(self):
        assert_matches_markers("""
            def f(ctx: context.Context):
                try:
                    log.info().ctx(ctx).msg("ok")
                except* ValueError as group:
                    log.error().msg("handler body is checked")  # want
                finally:
                    log.info().send()  # want
        """)

    def test_nested_functions(self):
        assert_matches_markers("""
            def nested_calls():
                ctx = context.background()

                def without():
                    log.info().msg("nested function without context")  # want
                without()

                def with_ctx():
                    log.info().ctx(ctx).msg("nested function with context")
                with_ctx()

                try:
                    pass
                finally:
                    log.info().msg("cleanup log without context")  # want
                    log.info().ctx(ctx).msg("cleanup log with context")
        """)

    def test_nested_function_sees_enclosing_bindings(self):
        assert_matches_markers("""
            def outer(ctx: context.Context):
                lg = log.with_().ctx(ctx).logger()

                def inner():
                    lg.info().msg("closure over a carrying logger")

                return inner
        """)

    def test_nested_function_parameter_shadows(self):
        assert_matches_markers("""
            def outer(ctx: context.Context):
                ev = log.info().ctx(ctx)

                def inner(ev: zerolog.Event):
                    ev.msg("parameter shadows the outer name")  # want

                return inner
        """)

    def test_bindings_do_not_leak_between_functions(self):
        assert_matches_markers("""
            def first(ctx: context.Context):
                ev = log.info().ctx(ctx)
                ev.msg("covered")


            def second(ev: zerolog.Event):
                ev.msg("different scope")  # want
        """)

    def test_lambda_and_comprehension(self):
        assert_matches_markers("""
            def f(ctx: context.Context, names: list):
                emit = lambda: log.info().msg("inside lambda")  # want
                [log.info().str("n", n).msg("in comprehension") for n in names]  # want
                [log.info().ctx(ctx).str("n", n).msg("with context") for n in names]
                return emit
        """)

    def test_methods(self):
        assert_matches_markers("""
            class Service:
                def __init__(self, logger: zerolog.Logger) -> None:
                    self.logger: zerolog.Logger = logger

                def handle(self, ctx: context.Context) -> None:
                    lg = self.logger.with_().ctx(ctx).logger()
                    lg.info().msg("covered")
                    log.info().msg("missing")  # want

                async def ahandle(self, ctx: context.Context) -> None:
                    log.info().ctx(ctx).msg("covered")
                    log.info().send()  # want
        """)

    def test_class_body_bindings_are_not_tracked(self):
        assert_matches_markers("""
            class Handler:
                lg = log.with_().ctx(context.background()).logger()
                lg.info().msg("class attribute")  # want
        """)


class TestCustomContext:
    def test_subclass_of_context(self):
        assert_matches_markers("""
            class CustomContext(context.Context):
                def __init__(self, parent: context.Context, user_id: int) -> None:
                    self.parent = parent
                    self.user_id = user_id


            def new_custom_context(parent: context.Context, user_id: int) -> CustomContext:
                return CustomContext(parent, user_id)


            def custom_context_type():
                ctx = new_custom_context(context.background(), 123)
                log.info().str("key", "value").ctx(ctx).msg("with custom context")
                log.error().str("key", "value").msg("without context")  # want


            def optional_custom_context(ctx: CustomContext | None):
                log.info().str("user", "test").ctx(ctx).msg("optional custom context")
        """)

    def test_structural_context(self):
        assert_matches_markers("""
            class DuckContext:
                def deadline(self):
                    pass

                def done(self):
                    pass

                def err(self):
                    pass

                def value(self, key):
                    pass


            class Partial:
                def deadline(self):
                    pass

                def done(self):
                    pass


            def f():
                log.info().ctx(DuckContext()).msg("conforms")
                log.info().ctx(Partial()).msg("partial method set")  # want
        """)

    def test_same_simple_name_is_not_enough(self):
        assert_matches_markers("""
            class Context:
                pass


            def f(ctx: Context):
                log.info().ctx(ctx).msg("example.Context is not context.Context")  # want
        """)


class TestSuppression:
    def test_directive_spellings(self):
        assert_matches_markers("""
            def nolint_directives():
                #nolint:logctx
                log.info().msg("suppressed")

                # nolint:logctx
                log.info().msg("suppressed")

                #nolint: logctx
                log.info().msg("suppressed")

                # nolint: logctx
                log.info().msg("suppressed")

                log.info().msg("suppressed")  #nolint:logctx
                log.info().msg("suppressed")  # nolint:logctx
                log.info().msg("suppressed")  #nolint: logctx
                log.info().msg("suppressed")  # nolint: logctx

                # Just a regular comment
                log.info().msg("reported")  # want

                #nolint:someotherlinter
                log.info().msg("wrong linter")  # want

                log.info().msg("wrong linter inline")  # nolint:someotherlinter  # want

                #nolint:linter1,logctx,linter2
                log.info().msg("listed among others")

                #   nolint: another1, logctx, another2
                log.error().str("test", "value").msg("listed with spaces")

                log.debug().msg("listed inline")  # nolint:foo,logctx,bar

                log.warn().msg("not listed")  # nolint:foo,bar,baz  # want
        """)

    def test_directive_two_lines_above_does_not_apply(self):
        assert_matches_markers("""
            def f():
                # nolint:logctx

                log.info().msg("too far")  # want
        """)

    def test_directive_on_terminal_line_of_split_chain(self):
        assert_matches_markers("""
            def f():
                (
                    log.info()
                    .str("k", "v")
                    .msg("x")  # nolint:logctx
                )
        """)

    def test_custom_keyword(self):
        config = RuleConfig(suppression_keyword="suppress")
        assert_matches_markers("""
            def f():
                log.info().msg("custom keyword")  # suppress: logctx

                log.info().msg("default keyword no longer applies")  # nolint: logctx  # want
        """, config=config)

    def test_custom_rule_id(self):
        config = RuleConfig(rule_id="zerologctx")
        diagnostics = assert_matches_markers("""
            def f():
                log.info().msg("old rule name")  # nolint: zerologctx

                log.info().msg("new default")  # nolint: logctx  # want
        """, config=config)
        assert diagnostics[0].rule == "zerologctx"


class TestCheckModule:
    def test_diagnostics_sorted(self):
        source = HEADER + textwrap.dedent("""
            def f():
                log.info().send(); log.info().msg("x")


            def g():
                log.info().msg("y")
        """)
        tree = ast.parse(source)
        diagnostics = check_module(tree, source, filename="m.py", module_name="m")
        assert [(d.line, d.method) for d in diagnostics] == [
            (diagnostics[0].line, "send"),
            (diagnostics[0].line, "msg"),
            (diagnostics[0].line + 4, "msg"),
        ]
        assert diagnostics[0].column < diagnostics[1].column

    def test_one_diagnostic_per_terminal_call(self):
        source = HEADER + "log.info().msg('a')\n"
        tree = ast.parse(source)
        assert len(check_module(tree, source)) == 1

    def test_deterministic(self):
        code = """
            def f(ctx: context.Context):
                ev = log.info()
                ev.msg("a")
                log.info().ctx(ctx).msg("b")
                log.warn().send()
        """
        first = lint(code)[1]
        second = lint(code)[1]
        assert first == second

    def test_custom_vocabulary(self):
        config = RuleConfig(terminal_methods=frozenset({"send"}))
        _, diagnostics = lint("""
            def f():
                log.info().msg("msg is not terminal here")
                log.info().send()
        """, config=config)
        assert [d.method for d in diagnostics] == ["send"]
