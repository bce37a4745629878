import pytest

from juicekit.scope import (
    CommitOnSpecific,
    InvalidManagerError,
    IsolationLevel,
    TxOptions,
    is_tx_manager,
    manager_from_context,
    nested_transaction,
    transaction,
    use_manager,
    with_isolation_level,
    with_read_only,
)
from juicekit.session import TransactionNotBegunError


class FakeTx:
    def __init__(self, options, log, fail_begin=None, fail_commit=None, fail_rollback=None):
        self.options = options
        self.log = log
        self.fail_begin = fail_begin
        self.fail_commit = fail_commit
        self.fail_rollback = fail_rollback
        self.active = False

    def begin(self):
        if self.fail_begin is not None:
            raise self.fail_begin
        self.active = True
        self.log.append("begin")

    def commit(self):
        if not self.active:
            raise TransactionNotBegunError()
        if self.fail_commit is not None:
            raise self.fail_commit
        self.active = False
        self.log.append("commit")

    def rollback(self):
        if not self.active:
            raise TransactionNotBegunError()
        if self.fail_rollback is not None:
            raise self.fail_rollback
        self.active = False
        self.log.append("rollback")


class FakeEngine:
    def __init__(self, **tx_kwargs):
        self.tx_kwargs = tx_kwargs
        self.log = []
        self.txs = []

    def context_tx(self, options):
        tx = FakeTx(options, self.log, **self.tx_kwargs)
        self.txs.append(tx)
        return tx


def test_no_manager_raises_invalid_manager():
    with pytest.raises(InvalidManagerError):
        transaction(lambda: None)


def test_manager_without_factory_is_invalid():
    with use_manager(object()):
        with pytest.raises(InvalidManagerError):
            transaction(lambda: None)


def test_successful_handler_commits_and_returns_result():
    engine = FakeEngine()
    with use_manager(engine):
        result = transaction(lambda: 42)
    assert result == 42
    assert engine.log == ["begin", "commit"]


def test_handler_error_rolls_back_and_propagates():
    engine = FakeEngine()

    def handler():
        raise ValueError("boom")

    with use_manager(engine):
        with pytest.raises(ValueError, match="boom"):
            transaction(handler)
    assert engine.log == ["begin", "rollback"]


def test_commit_on_specific_commits_then_raises():
    engine = FakeEngine()

    def handler():
        raise CommitOnSpecific()

    with use_manager(engine):
        with pytest.raises(CommitOnSpecific):
            transaction(handler)
    assert engine.log == ["begin", "commit"]


def test_handler_sees_transaction_as_manager():
    engine = FakeEngine()
    seen = []
    with use_manager(engine):
        transaction(lambda: seen.append(manager_from_context()))
        assert manager_from_context() is engine
    assert seen == [engine.txs[0]]
    assert is_tx_manager(seen[0])


def test_options_none_without_option_functions():
    engine = FakeEngine()
    with use_manager(engine):
        transaction(lambda: None)
    assert engine.txs[0].options is None


def test_options_applied_in_order():
    engine = FakeEngine()
    with use_manager(engine):
        transaction(
            lambda: None,
            with_isolation_level(IsolationLevel.SERIALIZABLE),
            with_read_only(True),
        )
    assert engine.txs[0].options == TxOptions(IsolationLevel.SERIALIZABLE, True)


def test_begin_failure_propagates_without_rollback():
    engine = FakeEngine(fail_begin=ConnectionError("down"))
    called = []
    with use_manager(engine):
        with pytest.raises(ConnectionError):
            transaction(lambda: called.append(1))
    assert called == []
    assert engine.log == []


def test_commit_failure_raises_and_rolls_back():
    engine = FakeEngine(fail_commit=RuntimeError("commit failed"))
    with use_manager(engine):
        with pytest.raises(RuntimeError, match="commit failed"):
            transaction(lambda: None)
    assert engine.log == ["begin", "rollback"]


def test_rollback_failure_is_chained_to_handler_error():
    engine = FakeEngine(fail_rollback=RuntimeError("rollback failed"))

    def handler():
        raise ValueError("boom")

    with use_manager(engine):
        with pytest.raises(RuntimeError) as info:
            transaction(handler)
    assert isinstance(info.value.__cause__, ValueError)


def test_nested_transaction_reuses_running_transaction():
    engine = FakeEngine()
    inner = []

    def outer():
        current = manager_from_context()
        nested_transaction(lambda: inner.append(manager_from_context() is current))

    with use_manager(engine):
        nested_transaction(outer)
    assert inner == [True]
    assert len(engine.txs) == 1
    assert engine.log == ["begin", "commit"]


def test_nested_transaction_starts_new_one_without_running_transaction():
    engine = FakeEngine()
    with use_manager(engine):
        result = nested_transaction(lambda: "done")
    assert result == "done"
    assert engine.log == ["begin", "commit"]


def test_is_tx_manager_rejects_engine():
    assert is_tx_manager(FakeEngine()) is False
    assert is_tx_manager(None) is False


def test_use_manager_restores_previous():
    first, second = FakeEngine(), FakeEngine()
    with use_manager(first):
        with use_manager(second):
            assert manager_from_context() is second
        assert manager_from_context() is first
    assert manager_from_context() is None


def test_tx_options_defaults():
    options = TxOptions()
    assert options.isolation is IsolationLevel.DEFAULT
    assert options.read_only is False