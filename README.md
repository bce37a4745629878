# juicekit

Building blocks for running mapped SQL statements:

- `juicekit.settings`: setting values that convert themselves to other types;
- `juicekit.session`: sessions carried through the current context;
- `juicekit.statement`: the statement interface, raw-SQL statements and the
  FNV-1a hash that names them;
- `juicekit.handler`: handlers that run statements through middlewares,
  optionally through a reused prepared statement or in insert batches;
- `juicekit.scope`: transactions scoped to the current manager.

The package has no dependencies outside the standard library.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Settings

`StringValue` is a `str` that converts itself on demand. Conversions never
raise: text that does not parse gives the zero value, and integers outside
the 64-bit range are clamped to the nearest bound.

```python
from juicekit.settings import KeyValueSettingProvider, SettingItem, StringValue

settings = KeyValueSettingProvider({"debug": "true", "pool": "8"})
settings.get("debug").to_bool()    # True
settings.get("pool").to_int()      # 8
settings.get("missing").to_int()   # 0  (missing names give StringValue(""))

StringValue("1.5").to_float()      # 1.5
StringValue("-3").to_uint()        # 0
```

`to_bool` accepts `1`, `t`, `T`, `true`, `True` and `TRUE` as true.
`StringValue.unmarshal(obj)` passes the value's UTF-8 bytes to
`obj.unmarshal_text(...)` (see the `TextUnmarshaler` protocol).
`KeyValueSettingProvider` is a read-only mapping; `SettingProvider` is the
protocol for anything with a `get(name)` method. `SettingItem` is a
dataclass holding one `name` and its `value`.

## Sessions

A `Session` is anything with `query(query, *args)`, `execute(query, *args)`
and `prepare(query)` methods. `Transaction` is anything with `commit()` and
`rollback()`; `TransactionSession` is both.

```python
from juicekit.session import NoSessionError, session_from_context, use_session

with use_session(my_session):
    assert session_from_context() is my_session

session_from_context()   # raises NoSessionError outside the block
```

`TransactionAlreadyBegunError` and `TransactionNotBegunError` are provided
for transaction implementations to raise.

## Statements

`Statement` is a protocol with `id`, `name`, `action` and `configuration`
properties and `attribute(key)`, `result_map()` and
`build(translator, param)` methods; `build` returns `(sql, args)`. `Action`
is an enum of `SELECT`, `INSERT`, `UPDATE` and `DELETE`.

`RawSQLStatement(query, configuration, action)` is a frozen dataclass for a
literal query. Its `name` is the hexadecimal 64-bit FNV-1a hash of the query
text and its `id` is that name prefixed with `"id:"`. `attribute()` always
returns an empty string and `result_map()` raises `ResultMapNotSetError`.

```python
from juicekit.statement import Action, RawSQLStatement, fnv1a_64

stmt = RawSQLStatement("SELECT 1", None, Action.SELECT)
stmt.name == format(fnv1a_64("SELECT 1"), "x")   # True
```

`EmptyQueryError` is provided for `build` implementations to raise when a
statement yields no SQL. `RowScanner` is the protocol for objects that fill
themselves from a row with `scan_rows(rows)`.

## Handlers

Every handler has `query(statement, param)` and `execute(statement, param)`.
The objects they work with are duck-typed:

- the driver has `translator()`, whose result is passed to `statement.build`;
- each middleware has `query(statement, next_handler)` and
  `execute(statement, next_handler)`, each returning a new callable
  `(sql, *args)`; middlewares are applied in order, so the last one is
  outermost;
- a prepared statement returned by `session.prepare(sql)` has
  `query(*args)`, `execute(*args)` and `close()`.

While a handler runs, its session is current (`session_from_context()`) and
`param_from_context()` returns the parameter in use; outside a handler it
returns `None`.

- `CompiledStatementHandler(sql, args, session, ...)` runs an already built
  query through the middlewares on the session.
- `QueryBuildStatementHandler(driver, session, middlewares)` builds the
  statement and runs it.
- `PreparedStatementHandler(driver, session, middlewares)` keeps one prepared
  statement, reuses it while the SQL text is unchanged, and closes it when
  the text changes, on `close()`, or on leaving a `with` block.
- `BatchStatementHandler(driver, session, middlewares)` splits parameters of
  `INSERT` statements whose `batchSize` attribute is set. The parameter must
  be a sequence of records or a mapping with one string key whose value is
  such a sequence. If everything fits in one batch it runs once; otherwise
  each chunk runs through a shared prepared statement and the last result is
  returned. An empty sequence, a mapping without exactly one string key, or
  any other parameter raises `InvalidParamTypeError`; a `batchSize` that is
  not an integer, or not greater than zero, raises `ValueError`. Other
  statements run as with `QueryBuildStatementHandler`.

## Transactions

A manager is made current with `use_manager`. For `transaction` it must have
`context_tx(options)`, returning a transaction object with `begin()`,
`commit()` and `rollback()`.

```python
from juicekit.scope import (
    IsolationLevel, nested_transaction, transaction, use_manager,
    with_isolation_level, with_read_only,
)

with use_manager(engine):
    result = transaction(do_work, with_isolation_level(IsolationLevel.SERIALIZABLE))
```

`transaction(handler, *opts)` builds a `TxOptions` from the options (or
passes `None` when there are none), begins the transaction, makes it the
current manager, and calls `handler()` with no arguments. It commits and
returns the handler's result on success, and rolls back and re-raises on
failure. A handler that raises `CommitOnSpecific` still has its work
committed, and that error is raised afterwards. After a commit the
transaction is rolled back once more, with `TransactionNotBegunError`
ignored. A current manager without `context_tx` raises
`InvalidManagerError`.

`nested_transaction(handler, *opts)` calls the handler directly when the
current manager is already a transaction (`is_tx_manager`), and otherwise
behaves like `transaction`.

## What the package does not do

It has no engine, database driver or connection pool, no mapper
configuration files, no SQL templates or parameter translators, and no
mapping of result rows onto objects. Statements other than
`RawSQLStatement` must be supplied by the caller, and `RawSQLStatement`
itself has no `build` method, so it cannot be run by the handlers as is.