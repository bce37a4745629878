"""Statement handlers that build, prepare and run statements against a session."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from juicekit.session import Session, session_from_context, use_session
from juicekit.statement import Action, Statement

__all__ = [
    "InvalidParamTypeError",
    "StatementHandler",
    "CompiledStatementHandler",
    "PreparedStatementHandler",
    "QueryBuildStatementHandler",
    "BatchStatementHandler",
    "param_from_context",
]

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_SIGNED_INT = re.compile(r"[+-]?[0-9]+")
_NOT_SEQUENCES = (str, bytes, bytearray, memoryview)

QueryFunc = Callable[..., Any]
ExecFunc = Callable[..., Any]

_current_param: ContextVar[Any] = ContextVar("juicekit_param", default=None)


class InvalidParamTypeError(TypeError):
    """Raised when a parameter does not have the shape a handler needs."""

    def __init__(self, detail: str = "") -> None:
        message = "invalid param type"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


@runtime_checkable
class StatementHandler(Protocol):
    """Something that runs statements that return rows or a result."""

    def query(self, statement: Statement, param: Any) -> Any:
        """Run a statement that returns rows."""

    def execute(self, statement: Statement, param: Any) -> Any:
        """Run a statement that returns no rows."""


@contextmanager
def _use_param(param: Any) -> Iterator[Any]:
    token = _current_param.set(param)
    try:
        yield param
    finally:
        _current_param.reset(token)


def param_from_context() -> Any:
    """Return the parameter of the statement being run, or None outside one."""
    return _current_param.get()


def _session_query(query: str, *args: Any) -> Any:
    return session_from_context().query(query, *args)


def _session_execute(query: str, *args: Any) -> Any:
    return session_from_context().execute(query, *args)


def _wrap_query(middlewares: Sequence[Any], statement: Statement, handler: QueryFunc) -> QueryFunc:
    for middleware in middlewares:
        handler = middleware.query(statement, handler)
    return handler


def _wrap_execute(middlewares: Sequence[Any], statement: Statement, handler: ExecFunc) -> ExecFunc:
    for middleware in middlewares:
        handler = middleware.execute(statement, handler)
    return handler


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, _NOT_SEQUENCES)


@dataclass
class CompiledStatementHandler:
    """Runs an already built query through the middleware chain.

    While the query runs, ``session`` is the current session and the
    statement's parameter is available from :func:`param_from_context`.
    """

    sql: str
    args: Sequence[Any]
    session: Session
    middlewares: Sequence[Any] = ()
    driver: Any = None
    query_handler: QueryFunc | None = None
    exec_handler: ExecFunc | None = None

    def query(self, statement: Statement, param: Any) -> Any:
        """Run the compiled query and return its rows."""
        handler = self.query_handler or _session_query
        with use_session(self.session), _use_param(param):
            return _wrap_query(self.middlewares, statement, handler)(self.sql, *self.args)

    def execute(self, statement: Statement, param: Any) -> Any:
        """Run the compiled statement and return its result."""
        handler = self.exec_handler or _session_execute
        with use_session(self.session), _use_param(param):
            return _wrap_execute(self.middlewares, statement, handler)(self.sql, *self.args)


@dataclass
class PreparedStatementHandler:
    """Keeps one prepared statement and reuses it while the query text is unchanged."""

    driver: Any
    session: Session
    middlewares: Sequence[Any] = ()
    _prepared: Any = field(default=None, init=False, repr=False)
    _prepared_sql: str | None = field(default=None, init=False, repr=False)

    def _get_or_prepare(self, sql: str) -> Any:
        if self._prepared is not None and self._prepared_sql == sql:
            return self._prepared
        if self._prepared is not None:
            stale, self._prepared, self._prepared_sql = self._prepared, None, None
            try:
                stale.close()
            except Exception:
                pass
        self._prepared = self.session.prepare(sql)
        self._prepared_sql = sql
        return self._prepared

    def query(self, statement: Statement, param: Any) -> Any:
        """Build the statement and query through the prepared statement."""
        sql, args = statement.build(self.driver.translator(), param)

        def run(query: str, *query_args: Any) -> Any:
            return self._get_or_prepare(query).query(*query_args)

        compiled = CompiledStatementHandler(
            sql=sql,
            args=args,
            session=self.session,
            middlewares=self.middlewares,
            driver=self.driver,
            query_handler=run,
        )
        return compiled.query(statement, param)

    def execute(self, statement: Statement, param: Any) -> Any:
        """Build the statement and execute it through the prepared statement."""
        sql, args = statement.build(self.driver.translator(), param)

        def run(query: str, *query_args: Any) -> Any:
            return self._get_or_prepare(query).execute(*query_args)

        compiled = CompiledStatementHandler(
            sql=sql,
            args=args,
            session=self.session,
            middlewares=self.middlewares,
            driver=self.driver,
            exec_handler=run,
        )
        return compiled.execute(statement, param)

    def close(self) -> None:
        """Close the prepared statement, if any."""
        if self._prepared is not None:
            prepared, self._prepared, self._prepared_sql = self._prepared, None, None
            prepared.close()

    def __enter__(self) -> PreparedStatementHandler:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


@dataclass
class QueryBuildStatementHandler:
    """Builds each statement with the driver's translator and runs it directly."""

    driver: Any
    session: Session
    middlewares: Sequence[Any] = ()

    def _compile(self, statement: Statement, param: Any) -> CompiledStatementHandler:
        sql, args = statement.build(self.driver.translator(), param)
        return CompiledStatementHandler(
            sql=sql,
            args=args,
            session=self.session,
            middlewares=self.middlewares,
            driver=self.driver,
        )

    def query(self, statement: Statement, param: Any) -> Any:
        """Build and run a statement that returns rows."""
        return self._compile(statement, param).query(statement, param)

    def execute(self, statement: Statement, param: Any) -> Any:
        """Build and run a statement that returns no rows."""
        return self._compile(statement, param).execute(statement, param)


@dataclass
class _BatchRunner:
    driver: Any
    session: Session
    middlewares: Sequence[Any]
    batch_size: int

    def _plain(self) -> QueryBuildStatementHandler:
        return QueryBuildStatementHandler(self.driver, self.session, self.middlewares)

    def _run_batches(self, statement: Statement, batches: Iterator[Any]) -> Any:
        result = None
        with PreparedStatementHandler(self.driver, self.session, self.middlewares) as prepared:
            for batch in batches:
                result = prepared.execute(statement, batch)
        return result

    def execute_sequence(self, statement: Statement, param: Sequence[Any]) -> Any:
        length = len(param)
        if length == 0:
            raise InvalidParamTypeError("empty slice")
        if length <= self.batch_size:
            return self._plain().execute(statement, param)
        size = self.batch_size
        batches = (param[start:start + size] for start in range(0, length, size))
        return self._run_batches(statement, batches)

    def execute_mapping(self, statement: Statement, param: Mapping[Any, Any]) -> Any:
        keys = list(param.keys())
        if len(keys) != 1:
            raise InvalidParamTypeError(f"expected one key, got {len(keys)}")
        key = keys[0]
        if not isinstance(key, str):
            raise InvalidParamTypeError(f"expected string key, got {type(key).__name__}")
        rows = param[key]
        if not _is_sequence(rows):
            raise InvalidParamTypeError(
                f"map value must be slice or array, got {type(rows).__name__}"
            )
        length = len(rows)
        if length == 0:
            raise InvalidParamTypeError("empty slice")
        if length <= self.batch_size:
            return self._plain().execute(statement, param)
        size = self.batch_size
        batches = ({key: rows[start:start + size]} for start in range(0, length, size))
        return self._run_batches(statement, batches)


def _parse_batch_size(text: str) -> int:
    if not _SIGNED_INT.fullmatch(text):
        raise ValueError(f"failed to parse batch size: {text}")
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"failed to parse batch size: {text}")
    return value


@dataclass
class BatchStatementHandler:
    """Runs inserts in batches when the statement declares a ``batchSize``.

    Only insert statements with a ``batchSize`` attribute are split. The
    parameter must then be a sequence of records, or a mapping with a
    single string key whose value is such a sequence.
    """

    driver: Any
    session: Session
    middlewares: Sequence[Any] = ()

    def _plain(self) -> QueryBuildStatementHandler:
        return QueryBuildStatementHandler(self.driver, self.session, self.middlewares)

    def query(self, statement: Statement, param: Any) -> Any:
        """Build and run a statement that returns rows."""
        return self._plain().query(statement, param)

    def execute(self, statement: Statement, param: Any) -> Any:
        """Run the statement, splitting insert parameters into batches."""
        if statement.action != Action.INSERT:
            return self._plain().execute(statement, param)
        batch_size_text = statement.attribute("batchSize")
        if not batch_size_text:
            return self._plain().execute(statement, param)
        batch_size = _parse_batch_size(batch_size_text)
        if batch_size <= 0:
            raise ValueError("batch size must be greater than 0")
        runner = _BatchRunner(self.driver, self.session, self.middlewares, batch_size)
        if _is_sequence(param):
            return runner.execute_sequence(statement, param)
        if isinstance(param, Mapping):
            return runner.execute_mapping(statement, param)
        raise InvalidParamTypeError("slice or array required")