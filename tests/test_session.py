import pytest

from juicekit.session import (
    NoSessionError,
    Session,
    Transaction,
    TransactionAlreadyBegunError,
    TransactionNotBegunError,
    TransactionSession,
    session_from_context,
    use_session,
)


class FakeSession:
    def __init__(self, label):
        self.label = label

    def query(self, query, *args):
        return [(query, args)]

    def execute(self, query, *args):
        return len(args)

    def prepare(self, query):
        return query


class FakeTxSession(FakeSession):
    def __init__(self, label):
        super().__init__(label)
        self.committed = False
        self.rolled_back = False

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True


def test_no_session_outside_block():
    with pytest.raises(NoSessionError, match="no session found in context"):
        session_from_context()


def test_use_session_sets_and_restores():
    sess = FakeSession("one")
    with use_session(sess) as active:
        assert active is sess
        assert session_from_context() is sess
    with pytest.raises(NoSessionError):
        session_from_context()


def test_nested_sessions_restore_outer():
    outer = FakeSession("outer")
    inner = FakeSession("inner")
    with use_session(outer):
        with use_session(inner):
            assert session_from_context().label == "inner"
        assert session_from_context().label == "outer"


def test_session_restored_after_exception():
    outer = FakeSession("outer")
    with use_session(outer):
        with pytest.raises(RuntimeError):
            with use_session(FakeSession("inner")):
                raise RuntimeError("boom")
        assert session_from_context() is outer


def test_non_session_value_is_rejected():
    with use_session(object()):
        with pytest.raises(NoSessionError):
            session_from_context()


def test_session_from_context_returns_usable_session():
    with use_session(FakeSession("x")):
        sess = session_from_context()
        assert sess.query("select 1", 1, 2) == [("select 1", (1, 2))]
        assert sess.execute("delete", "a") == 1
        assert sess.prepare("select 2") == "select 2"


def test_transaction_session_protocol():
    tx = FakeTxSession("tx")
    with use_session(tx):
        current = session_from_context()
        assert current is tx
        assert isinstance(current, TransactionSession)
        assert isinstance(current, Transaction)
    plain = FakeSession("plain")
    with use_session(plain):
        current = session_from_context()
        assert current is plain
        assert isinstance(current, Session)
        assert not isinstance(current, TransactionSession)


def test_transaction_session_in_context():
    tx = FakeTxSession("tx")
    with use_session(tx):
        current = session_from_context()
        current.commit()
    assert tx.committed is True
    assert tx.rolled_back is False


def test_transaction_error_messages():
    assert str(TransactionAlreadyBegunError()) == "transaction already begun"
    assert str(TransactionNotBegunError()) == "transaction not begun"