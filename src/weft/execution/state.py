"""Tree-walking interpreter.

A State is one render run positioned in one template frame. It owns the
variable stack, the output writer and the node currently being walked.
Template calls create a new frame that shares the run (data, local
storage, function cache) but has its own variable stack.

Dispatch:
    ``walk(dot, node)`` looks up the walker by node class name and calls
    it. Pipelines, commands and arguments are evaluated by the ``eval_*``
    methods, which return plain Python values.

Errors:
    Every failure raises ExecError through ``error()``, which attaches the
    location of the current node, the template path and a source snippet.
    FatalError and WriteError pass through every boundary untouched.

Variable stack:
    ``$`` is always the first binding. ``{{if}}``, ``{{with}}``,
    ``{{range}}``, ``{{arg}}``, ``{{callback}}`` and ``{{wrap}}`` pop
    variables declared inside them when they finish.
"""

from __future__ import annotations

import io
import logging
import traceback
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import replace
from typing import TYPE_CHECKING, Any, ClassVar, NoReturn

from weft._types import MISSING
from weft.exceptions import (
    ErrorCode,
    ExecError,
    ExprError,
    FatalError,
    FuncError,
    StateLocation,
    TemplatePath,
    WriteError,
    build_source_snippet,
    is_fatal,
)
from weft.execution.local import LocalData
from weft.execution.ranges import RangeMixin
from weft.execution.resolve import MemberKind, resolve_member
from weft.execution.state_funcs import STATE_FUNCS, StateFuncsMixin
from weft.execution.truth import is_function, is_true, to_text, zero_value
from weft.execution.types import BLANK, ResultOk, Writer
from weft.execution.types import Variable as Binding
from weft.execution.writers import WrapWriter
from weft.expr import evaluate
from weft.funcs.context import FuncContext
from weft.funcs.signature import CallSpec, ResultKind, inspect_callable
from weft.funcs.values import DirectFunc, FuncValue, FuncValues
from weft.nodes import (
    Action,
    Arg,
    BinOp,
    Callback,
    Chain,
    Command,
    Const,
    Dot,
    Expr,
    Factory,
    Field,
    Identifier,
    If,
    Node,
    NodeList,
    Pipeline,
    TemplateCall,
    Text,
    Variable,
    With,
    Wrap,
)
from weft.template.options import MissingKey

if TYPE_CHECKING:
    from weft.execution.executor import Executor
    from weft.template.core import Template

logger = logging.getLogger(__name__)

#: Identifier evaluating to the root data of the run.
GLOBALS = "GLOBALS"
#: Identifier evaluating to the value of ``$``.
SELF = "SELF"


class _Run:
    """Bookkeeping shared by every frame of one render."""

    __slots__ = ("data", "local", "context", "resolved", "state_specs", "func_context", "scopes")

    def __init__(self, data: Any, local: LocalData, context: Any, scopes: list[FuncValues]):
        self.data = data
        self.local = local
        self.context = context
        # function overrides of the templates being walked, innermost last
        self.scopes = scopes
        self.resolved: dict[FuncValue, tuple[Callable[..., Any], CallSpec]] = {}
        self.state_specs: dict[str, CallSpec] = {}
        self.func_context: FuncContext | None = None


class WalkHandler:
    """Re-entrant handler handed to the function called by ``{{callback}}``.

    Each call walks the callback body against ``dot``. Inside the body,
    ``$0`` is the number of earlier calls, ``$@`` the argument list and
    ``$!`` its length. Output goes to ``writer`` when given, else to the
    current writer.

    Example:
        >>> def twice(dot, handler, *items):
        ...     for item in items:
        ...         handler(item, item)
        >>> # {{callback twice "a" "b"}}[{{$0}}:{{.}}]{{end}}  ->  [0:a][1:b]
    """

    __slots__ = ("_state", "_body", "_base", "calls")

    def __init__(self, state: State, body: NodeList, base: int):
        self._state = state
        self._body = body
        self._base = base
        self.calls = 0

    def __call__(self, dot: Any = None, *args: Any, writer: Writer | None = None) -> None:
        state = self._state
        mark = state.mark()
        bindings = state._vars
        bindings[self._base - 3].value = self.calls
        bindings[self._base - 2].value = list(args)
        bindings[self._base - 1].value = len(args)
        try:
            if writer is None:
                state.walk(dot, self._body)
            else:
                with state.with_writer(writer):
                    state.walk(dot, self._body)
        finally:
            state.pop(mark)
        self.calls += 1


class State(RangeMixin, StateFuncsMixin):
    """One interpreter frame.

    Host functions whose first parameter is annotated ``State`` receive the
    current frame and may use its public helpers (``writer``, ``local``,
    ``call``, ``exec``...).
    """

    __slots__ = ("_executor", "_tmpl", "_wr", "_vars", "_global", "_node", "_depth", "_caller", "_run")

    _WALKERS: ClassVar[dict[str, str]] = {
        "NodeList": "_walk_list",
        "Text": "_walk_text",
        "Action": "_walk_action",
        "If": "_walk_if",
        "With": "_walk_with",
        "Range": "_walk_range",
        "TemplateCall": "_walk_template",
        "Wrap": "_walk_wrap",
        "Arg": "_walk_arg",
        "Callback": "_walk_callback",
    }

    def __init__(self, executor: Executor, template: Template, writer: Writer, data: Any):
        self._executor = executor
        self._tmpl = template
        self._wr = writer
        self._vars: list[Binding] = [Binding("$", data)]
        self._global = [Binding(v.name, v.value) for v in executor.options.global_vars]
        self._node: Node | None = None
        self._depth = executor.depth
        self._caller: State | None = None
        local = executor.local if executor.local is not None else LocalData()
        scopes = list(executor.super._run.scopes) if executor.super is not None else []
        if template.get_funcs():
            scopes.append(template.get_funcs())
        self._run = _Run(data, local, executor.context, scopes)

    def _frame(self, template: Template, bindings: list[Binding]) -> State:
        frame = State.__new__(State)
        frame._executor = self._executor
        frame._tmpl = template
        frame._wr = self._wr
        frame._vars = bindings
        frame._global = self._global
        frame._node = None
        frame._depth = self._depth + 1
        frame._caller = self
        frame._run = self._run
        return frame

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def executor(self) -> Executor:
        return self._executor

    @property
    def template(self) -> Template:
        """Template of this frame."""
        return self._tmpl

    @property
    def writer(self) -> Writer:
        return self._wr

    @property
    def data(self) -> Any:
        """Root data of the run."""
        return self._run.data

    @property
    def local(self) -> LocalData:
        return self._run.local

    @property
    def context(self) -> Any:
        return self._run.context

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def node(self) -> Node | None:
        """Node being walked."""
        return self._node

    @property
    def func_context(self) -> FuncContext:
        run = self._run
        if run.func_context is None:
            root = self
            while root._caller is not None:
                root = root._caller
            run.func_context = FuncContext(root)
        return run.func_context

    @contextmanager
    def with_writer(self, writer: Writer) -> Iterator[State]:
        """Send output to ``writer`` until the block exits."""
        old = self._wr
        self._wr = writer
        try:
            yield self
        finally:
            self._wr = old

    @contextmanager
    def with_context(self, context: Any) -> Iterator[State]:
        """Replace the host context object until the block exits."""
        run = self._run
        old = run.context
        run.context = context
        try:
            yield self
        finally:
            run.context = old

    def exec(self, name: str, data: Any = None) -> str:
        """Render the named template and return its output."""
        return self.template_exec(name, data)

    def call(self, name: str, *args: Any) -> Any:
        """Call a function visible to this frame by name.

        Raises:
            ExecError: Unknown function, wrong argument count, or the
                function failed.
        """
        fn, spec = self._require_function(name)
        if not spec.accepts(len(args)):
            self._wrong_args(name, spec, len(args))
        return self._call(fn, name, list(args), spec)

    def invoke(self, fn: Callable[..., Any], *args: Any, name: str = "") -> Any:
        """Call ``fn`` with the same checks and result rules as a template call."""
        spec = self._spec(fn)
        if not spec.accepts(len(args)):
            self._wrong_args(name or "<anonymous>", spec, len(args))
        return self._call(fn, name, list(args), spec)

    def lookup_func(self, name: str) -> Callable[..., Any] | None:
        """Resolved callable for ``name``, or None."""
        found = self._get_function(name)
        return found[0] if found is not None else None

    def visible_vars(self) -> tuple[Binding, ...]:
        """Inherited globals followed by this frame's variables."""
        return (*self._global, *self._vars)

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def at(self, node: Node) -> None:
        self._node = node

    def error(self, message: str, *, cause: BaseException | None = None, code: ErrorCode | None = None) -> NoReturn:
        """Raise an ExecError located at the current node."""
        node = self._node
        tree = self._tmpl.tree
        location = context = None
        snippet = None
        if node is not None and tree is not None:
            location, context = tree.error_context(node)
            if tree.source and node.lineno:
                snippet = build_source_snippet(tree.source, node.lineno, column=node.col_offset or None)
        err = ExecError(
            message,
            template_name=self._tmpl.name,
            node=node,
            location=location,
            context=context,
            path=self.full_path(),
            source_snippet=snippet,
            trace="".join(traceback.format_stack()[:-1]),
            code=code,
        )
        if cause is not None:
            raise err from cause
        raise err

    def fatal(self, err: BaseException | str) -> NoReturn:
        """Abort the whole render tree with ``err``."""
        raise FatalError(err, trace="".join(traceback.format_stack()[:-1]))

    def call_site(self) -> StateLocation:
        """Location of this frame's current node."""
        location = context = None
        tree = self._tmpl.tree
        if self._node is not None and tree is not None:
            location, context = tree.error_context(self._node)
        return StateLocation(self._tmpl.name, self._tmpl.path, location, context)

    def _outer_trail(self) -> tuple[StateLocation, ...]:
        if self._caller is not None:
            return self._caller.trail()
        if self._executor.super is not None:
            return self._executor.super.trail()
        return ()

    def trail(self) -> tuple[StateLocation, ...]:
        """Call sites from the outermost render down to this frame."""
        return (*self._outer_trail(), self.call_site())

    def full_path(self) -> TemplatePath:
        """Chain of template calls leading to this frame."""
        return TemplatePath((*self._outer_trail(), StateLocation(self._tmpl.name, self._tmpl.path)))

    def _check_depth(self) -> None:
        limit = self._executor.options.max_depth
        if self._depth >= limit:
            self.error(f"exceeded maximum template depth ({limit})", code=ErrorCode.MAX_DEPTH)

    # ------------------------------------------------------------------
    # Variable stack
    # ------------------------------------------------------------------

    def push(self, name: str, value: Any) -> None:
        self._vars.append(Binding(name, value))

    def mark(self) -> int:
        return len(self._vars)

    def pop(self, mark: int) -> None:
        del self._vars[mark:]

    def set_top_var(self, n: int, value: Any) -> None:
        """Overwrite the n-th variable from the top of the stack."""
        self._vars[-n].value = value

    def _binding(self, name: str) -> Binding:
        for binding in reversed(self._vars):
            if binding.name == name:
                return binding
        self.error(f"undefined variable: {name}", code=ErrorCode.UNDEFINED_VARIABLE)

    def set_var(self, name: str, value: Any) -> None:
        """Assign an existing variable (``$x = value``)."""
        self._binding(name).value = value

    def update_var(self, name: str, op: str, value: Any) -> None:
        """Compound-assign an existing variable (``$x += value``)."""
        binding = self._binding(name)
        try:
            binding.value = evaluate(op, binding.value, value)
        except ExprError as err:
            self.error(err.message, cause=err, code=err.code)

    def var_value(self, name: str) -> Any:
        for binding in reversed(self._vars):
            if binding.name == name:
                return binding.value
        for binding in reversed(self._global):
            if binding.name == name:
                return binding.value
        self.error(f"undefined variable: {name}", code=ErrorCode.UNDEFINED_VARIABLE)

    # ------------------------------------------------------------------
    # Walk
    # ------------------------------------------------------------------

    def walk(self, dot: Any, node: Node) -> None:
        method = self._WALKERS.get(type(node).__name__)
        if method is None:
            self.at(node)
            self.error(f"unknown node: {node}")
        getattr(self, method)(dot, node)

    def _write(self, text: str) -> None:
        try:
            self._wr.write(text)
        except (OSError, ValueError) as err:
            raise WriteError(err) from err

    def _walk_list(self, dot: Any, node: NodeList) -> None:
        for child in node.nodes:
            self.walk(dot, child)

    def _walk_text(self, dot: Any, node: Text) -> None:
        self.at(node)
        self._write(node.text)

    def _walk_action(self, dot: Any, node: Action) -> None:
        self.at(node)
        value = self.eval_pipeline(dot, node.pipe)
        if not node.pipe.decl:
            self._print(node, value)

    def _print(self, node: Node, value: Any) -> None:
        self.at(node)
        if is_function(value):
            value = self._call(value, "", [], inspect_callable(value, state_type=State))
        self._write(to_text(value))

    def _walk_if(self, dot: Any, node: If) -> None:
        self.at(node)
        mark = self.mark()
        value = self.eval_pipeline(dot, node.pipe)
        if is_true(value):
            self.walk(dot, node.body)
        elif node.else_ is not None:
            self.walk(dot, node.else_)
        self.pop(mark)

    def _walk_with(self, dot: Any, node: With) -> None:
        self.at(node)
        mark = self.mark()
        value = self.eval_pipeline(dot, node.pipe)
        if is_true(value):
            self.walk(value, node.body)
        elif node.else_ is not None:
            self.walk(dot, node.else_)
        self.pop(mark)

    def _walk_template(self, dot: Any, node: TemplateCall) -> None:
        self.at(node)
        name = node.name
        tmpl = self._tmpl.lookup(name)
        if tmpl is None or tmpl.tree is None:
            self.error(f'template "{name}" not defined', code=ErrorCode.UNDEFINED_TEMPLATE)
        self._check_depth()

        caller_dot = dot
        args: Sequence[Expr] = ()
        pipe = node.pipe
        if pipe is not None:
            if tmpl.args and len(pipe.cmds) == 1:
                head = pipe.cmds[0]
                args = head.args[1:]
                pipe = replace(pipe, cmds=(replace(head, args=head.args[:1]),))
            dot = self.eval_pipeline(dot, pipe)
        if len(args) != len(tmpl.args):
            self.error(
                f'wrong number of args for template "{name}": want {len(tmpl.args)} got {len(args)}',
                code=ErrorCode.WRONG_ARGS,
            )

        bindings = [Binding(b.name, b.value) for b in self._vars[: tmpl.tree.inherited_vars_len]]
        bindings.append(Binding("$", dot))
        for arg_name, arg in zip(tmpl.args, args):
            value = self._eval_command(caller_dot, Command((arg,), lineno=arg.lineno), MISSING)
            bindings.append(Binding(arg_name, value))

        overrides = tmpl.get_funcs()
        if not overrides:
            self._frame(tmpl, bindings).walk(dot, tmpl.tree.root)
            return
        scopes = self._run.scopes
        scopes.append(overrides)
        try:
            self._frame(tmpl, bindings).walk(dot, tmpl.tree.root)
        finally:
            scopes.pop()

    def _walk_wrap(self, dot: Any, node: Wrap) -> None:
        self.at(node)
        mark = self.mark()
        real = self._wr

        def begin(target: Writer) -> None:
            if node.begin is not None:
                with self.with_writer(target):
                    self.walk(dot, node.begin)

        strip = node.strip or _is_strip(node.pipe)
        wrapper = WrapWriter(real, begin, strip=strip)
        self._wr = wrapper
        try:
            self.walk(dot, node.body)
            if wrapper.not_empty:
                if node.after is not None:
                    self.walk(dot, node.after)
        finally:
            self._wr = real
        if not wrapper.not_empty and node.else_ is not None:
            self.walk(dot, node.else_)
        self.pop(mark)

    def _staged_dot(self, dot: Any, leading: Sequence[Command]) -> Any:
        # leading commands chain like a pipeline; their result becomes dot
        value: Any = MISSING
        for cmd in leading:
            value = self._eval_command(dot, cmd, value)
        return None if value is MISSING else value

    def _walk_arg(self, dot: Any, node: Arg) -> None:
        self.at(node)
        mark = self.mark()
        *leading, last = node.pipe.cmds
        if leading:
            dot = self._staged_dot(dot, leading)

        buffer = io.StringIO()
        with self.with_writer(buffer):
            self.walk(dot, node.body)

        cmd = replace(last, args=(*last.args, Const(buffer.getvalue())))
        value = self._eval_command(dot, cmd, MISSING)
        if value is not None:
            self._write(to_text(value))
        self.pop(mark)

    def _walk_callback(self, dot: Any, node: Callback) -> None:
        self.at(node)
        mark = self.mark()
        *leading, last = node.pipe.cmds
        if leading:
            dot = self._staged_dot(dot, leading)

        self.push("$0", 0)
        self.push("$@", None)
        self.push("$!", None)
        handler = WalkHandler(self, node.body, self.mark())

        fn, *rest = last.args
        cmd = replace(last, args=(fn, Const(dot), Const(handler), *rest))
        value = self._eval_command(dot, cmd, MISSING)
        if value is not None:
            self._write(to_text(value))
        self.pop(mark)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def eval_pipeline(self, dot: Any, pipe: Pipeline | None) -> Any:
        """Evaluate ``pipe``, binding its declared variables.

        Each command's result becomes the final argument of the next one.
        Declared variables are pushed (``:=``), assigned (``=``) or
        compound-assigned (``+=`` ...); callers pop them when their scope
        ends.
        """
        if pipe is None:
            return None
        self.at(pipe)
        value: Any = MISSING
        for cmd in pipe.cmds:
            value = self._eval_command(dot, cmd, value)
        if value is MISSING:
            value = None
        for decl in pipe.decl:
            if decl.op == ":=":
                self.push(decl.name, value)
            elif decl.op == "=":
                self.set_var(decl.name, value)
            else:
                self.update_var(decl.name, decl.op.rstrip("="), value)
        return value

    def _not_a_function(self, args: Sequence[Expr], final: Any) -> None:
        if len(args) > 1 or final is not MISSING:
            self.error(f"can't give argument to non-function {args[0]}")

    def _eval_command(self, dot: Any, cmd: Command, final: Any) -> Any:
        first = cmd.args[0]
        if isinstance(first, Field):
            self.at(first)
            return self._eval_field_chain(dot, dot, first, first.idents, cmd.args, final)
        if isinstance(first, Chain):
            return self._eval_chain(dot, first, cmd.args, final)
        if isinstance(first, Identifier):
            return self._eval_function(dot, first, cmd.args, final)
        if isinstance(first, Pipeline):
            # parenthesized: arguments are all inside, final is ignored
            return self.eval_pipeline(dot, first)
        if isinstance(first, Variable):
            return self._eval_variable(dot, first, cmd.args, final)
        if isinstance(first, BinOp):
            return self._eval_binop(dot, first, final)

        self.at(first)
        self._not_a_function(cmd.args, final)
        if isinstance(first, Dot):
            return dot
        if isinstance(first, Const):
            return first.value
        if isinstance(first, Factory):
            return first.new()
        self.error(f"can't evaluate command {first}")

    def _eval_arg(self, dot: Any, node: Expr) -> Any:
        self.at(node)
        if isinstance(node, Dot):
            return dot
        if isinstance(node, Const):
            return node.value
        if isinstance(node, Factory):
            return node.new()
        if isinstance(node, Field):
            return self._eval_field_chain(dot, dot, node, node.idents, (), MISSING)
        if isinstance(node, Variable):
            return self._eval_variable(dot, node, (), MISSING)
        if isinstance(node, Pipeline):
            return self.eval_pipeline(dot, node)
        if isinstance(node, Identifier):
            return self._eval_function(dot, node, (node,), MISSING)
        if isinstance(node, Chain):
            return self._eval_chain(dot, node, (), MISSING)
        if isinstance(node, BinOp):
            return self._eval_binop(dot, node, MISSING)
        self.error(f"can't handle {node} for arg")

    def _validate(self, value: Any, expected: type | None) -> Any:
        if expected is None or value is None or isinstance(value, expected):
            return value
        if expected is float and isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        self.error(f"wrong type for value; expected {expected.__name__}; got {type(value).__name__}")

    def _eval_binop(self, dot: Any, node: BinOp, final: Any) -> Any:
        self.at(node)
        if final is not MISSING:
            self.error(f"can't give argument to expression {node}")
        left = self._eval_command(dot, node.left, MISSING)
        right = self._eval_command(dot, node.right, MISSING)
        try:
            return evaluate(node.op, left, right)
        except ExprError as err:
            self.at(node)
            self.error(err.message, cause=err, code=err.code)

    def _eval_variable(self, dot: Any, node: Variable, args: Sequence[Expr], final: Any) -> Any:
        self.at(node)
        value = self.var_value(node.idents[0])
        if len(node.idents) == 1:
            self._not_a_function(args, final)
            return value
        return self._eval_field_chain(dot, value, node, node.idents[1:], args, final)

    def _eval_chain(self, dot: Any, node: Chain, args: Sequence[Expr], final: Any) -> Any:
        self.at(node)
        if not node.fields:
            self.error("internal error: no fields in chain")
        if isinstance(node.node, Const) and node.node.value is None:
            self.error(f"indirection through explicit nil in {node}")
        receiver = self._eval_arg(dot, node.node)
        return self._eval_field_chain(dot, receiver, node, node.fields, args, final)

    def _eval_field_chain(
        self,
        dot: Any,
        receiver: Any,
        node: Node,
        idents: Sequence[str],
        args: Sequence[Expr],
        final: Any,
    ) -> Any:
        for ident in idents[:-1]:
            receiver = self._eval_field(dot, ident, node, (), MISSING, receiver)
        # only the last field of the chain gets the arguments
        return self._eval_field(dot, idents[-1], node, args, final, receiver)

    def _eval_field(
        self,
        dot: Any,
        name: str,
        node: Node,
        args: Sequence[Expr],
        final: Any,
        receiver: Any,
    ) -> Any:
        if receiver is None:
            if self._tmpl.missing_key is MissingKey.ERROR:
                self.error(f'nil data; no entry for key "{name}"', code=ErrorCode.MISSING_KEY)
            return None

        try:
            member = resolve_member(receiver, name)
        except (ExecError, FatalError, WriteError):
            raise
        except Exception as err:
            self.error(f"error evaluating field {name}: {err}", cause=err)

        kind = member.kind
        has_args = len(args) > 1 or final is not MISSING
        if kind is MemberKind.ATTR:
            if is_function(member.value):
                return self._eval_call(dot, member.value, self._spec(member.value), name, args, final)
            return member.value
        if kind is MemberKind.METHOD:
            return self._eval_call(dot, member.value, self._spec(member.value), name, args, final)
        if kind in (MemberKind.FIELD, MemberKind.KEY):
            if has_args:
                if callable(member.value):
                    return self._eval_call(dot, member.value, self._spec(member.value), name, args, final)
                self.error(f"{name} has arguments but cannot be invoked as function")
            return member.value
        if kind is MemberKind.NO_ATTR:
            value = self._absent_field(node, receiver, name)
            return None if value is MISSING else value
        if kind is MemberKind.NO_FIELD:
            value = self._absent_field(node, receiver, name)
            if value is not MISSING:
                return value
        elif kind is MemberKind.NO_KEY:
            return self._missing_key(node, receiver, name)
        self.error(f"can't evaluate field {name} in type {type(receiver).__name__}")

    def _absent_field(self, node: Node, receiver: Any, name: str) -> Any:
        """Value of a field that may be absent, or MISSING."""
        if not isinstance(node, Field):
            return MISSING
        options = self._executor.options
        if node.not_required and not options.require_fields:
            return ""
        if options.on_no_field is not None:
            value, ok = options.on_no_field(receiver, name)
            if ok:
                return value
        return MISSING

    def _missing_key(self, node: Node, receiver: Any, name: str) -> Any:
        mode = self._tmpl.missing_key
        if mode is MissingKey.ERROR:
            self.error(f'map has no entry for key "{name}"', code=ErrorCode.MISSING_KEY)
        if mode is MissingKey.ZERO:
            return zero_value(receiver)
        value = self._absent_field(node, receiver, name)
        return None if value is MISSING else value

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def _spec(self, fn: Callable[..., Any]) -> CallSpec:
        return inspect_callable(fn, state_type=State)

    def func_value(self, name: str) -> FuncValue | None:
        """Registered FuncValue for ``name``.

        Overrides of the templates currently being walked come first,
        innermost call first, then the executor chain.
        """
        for scope in reversed(self._run.scopes):
            value = scope.get(name)
            if value is not None:
                return value
        return self._executor.find_func(name)

    def _data_function(self, name: str) -> Callable[..., Any] | None:
        data = self._run.data
        if data is None:
            return None
        try:
            member = resolve_member(data, name)
        except (ExecError, FatalError, WriteError):
            raise
        except Exception as err:
            self.error(f"error looking up {name}: {err}", cause=err)
        if member.found and callable(member.value):
            return member.value
        return None

    def _resolve(self, value: FuncValue) -> tuple[Callable[..., Any], CallSpec]:
        cached = self._run.resolved.get(value)
        if cached is None:
            try:
                fn = value.resolve(self.func_context)
            except (ExecError, FatalError, WriteError):
                raise
            except FuncError as err:
                self.error(err.message, cause=err, code=err.code)
            except Exception as err:
                self.error(f"error resolving function: {err}", cause=err, code=ErrorCode.CALL_FAILED)
            cached = (fn, self._spec(fn))
            self._run.resolved[value] = cached
        return cached

    def _get_function(self, name: str) -> tuple[Callable[..., Any], CallSpec] | None:
        attr = STATE_FUNCS.get(name)
        if attr is not None:
            fn = getattr(self, attr)
            spec = self._run.state_specs.get(name)
            if spec is None:
                spec = self._run.state_specs[name] = self._spec(fn)
            return fn, spec
        value = self.func_value(name)
        if value is not None:
            return self._resolve(value)
        fn = self._data_function(name)
        if fn is None:
            return None
        return fn, self._spec(fn)

    def _require_function(self, name: str) -> tuple[Callable[..., Any], CallSpec]:
        found = self._get_function(name)
        if found is None:
            self.error(f'function "{name}" not defined', code=ErrorCode.UNDEFINED_FUNCTION)
        return found

    def _func_value_of(self, name: str) -> FuncValue:
        attr = STATE_FUNCS.get(name)
        if attr is not None:
            return DirectFunc(getattr(self, attr))
        value = self.func_value(name)
        if value is None:
            fn = self._data_function(name)
            if fn is None:
                self.error(f'"{name}" is not a defined function', code=ErrorCode.UNDEFINED_FUNCTION)
            value = DirectFunc(fn)
        return value

    def _eval_function(self, dot: Any, node: Identifier, args: Sequence[Expr], final: Any) -> Any:
        self.at(node)
        name = node.name
        if name == GLOBALS:
            return self._run.data
        if name == SELF:
            return self._vars[0].value
        fn, spec = self._require_function(name)
        return self._eval_call(dot, fn, spec, name, args, final)

    def _wrong_args(self, name: str, spec: CallSpec, got: int) -> NoReturn:
        self.error(
            f"wrong number of args for {name}: want {spec.describe_arity()} got {got}",
            code=ErrorCode.WRONG_ARGS,
        )

    def _eval_call(
        self,
        dot: Any,
        fn: Callable[..., Any],
        spec: CallSpec,
        name: str,
        args: Sequence[Expr],
        final: Any,
    ) -> Any:
        """Evaluate the arguments of a call and invoke ``fn``.

        ``args[0]`` is the node naming the function; the rest are its
        arguments. ``final`` is the previous pipeline value, passed last.
        The argument count is checked before any argument is evaluated.
        """
        params = args[1:]
        count = len(params) + (final is not MISSING)
        if not spec.accepts(count):
            self._wrong_args(name, spec, count)
        argv = [self._validate(self._eval_arg(dot, arg), spec.param_type(i)) for i, arg in enumerate(params)]
        if final is not MISSING:
            argv.append(self._validate(final, spec.param_type(len(params))))
        return self._call(fn, name, argv, spec)

    def _call(self, fn: Callable[..., Any], name: str, argv: list[Any], spec: CallSpec) -> Any:
        label = name or "<anonymous>"
        if spec.state_arg:
            argv = [self, *argv]
        try:
            result = fn(*argv)
        except (ExecError, FatalError, WriteError):
            raise
        except Exception as err:
            self.error(f"error calling {label}: {err}", cause=err, code=ErrorCode.CALL_FAILED)
        return self._call_result(label, result, spec)

    def _call_result(self, name: str, result: Any, spec: CallSpec) -> Any:
        kind = spec.result
        if kind is ResultKind.NONE:
            return BLANK
        if kind is ResultKind.MULTI:
            return list(result)
        if kind in (ResultKind.VALUE_OK, ResultKind.VALUE_ERROR):
            if not isinstance(result, tuple) or len(result) != 2:
                self.error(f"{name} returned {type(result).__name__}, expected a pair")
            value, second = result
            if kind is ResultKind.VALUE_OK:
                return ResultOk(value, bool(second))
            self._raise_result_error(name, second)
            return value
        self._raise_result_error(name, result)
        return result

    def _raise_result_error(self, name: str, err: Any) -> None:
        if not isinstance(err, BaseException):
            return
        if is_fatal(err):
            raise err
        self.error(f"error calling {name}: {err}", cause=err, code=ErrorCode.CALL_FAILED)

    def __repr__(self) -> str:
        return f"<State template={self._tmpl.name!r} depth={self._depth}>"


def _is_strip(pipe: Pipeline | None) -> bool:
    if pipe is None or len(pipe.cmds) != 1:
        return False
    args = pipe.cmds[0].args
    return len(args) == 1 and isinstance(args[0], Identifier) and args[0].name == "strip"
