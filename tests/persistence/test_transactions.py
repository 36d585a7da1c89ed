import pytest

from emberorm.adapters import BackendExecutionError, ConnectionConfig, SQLiteAdapter
from emberorm.core import Model, StringField
from emberorm.persistence import Session, TransactionError


class Ledger(Model):
    memo = StringField(max_length=50, nullable=False)


def open_session(tmp_path) -> Session:
    session = Session(SQLiteAdapter(), connection_config=ConnectionConfig(url=f"sqlite:///{tmp_path / 'tx.db'}"))
    session.ensure_created(Ledger)
    return session


def memos(session):
    return sorted(row["memo"] for row in session.execute('SELECT memo FROM "ledger"').fetchall())


def test_committed_transaction_persists_saves(tmp_path):
    session = open_session(tmp_path)
    tx = session.begin_transaction()
    session.add(Ledger(memo="first"))
    session.save_changes()
    session.add(Ledger(memo="second"))
    session.save_changes()
    tx.commit()

    assert not tx.is_active
    assert session.adapter.in_transaction is False
    assert memos(session) == ["first", "second"]
    session.close()


def test_rolled_back_transaction_discards_saves(tmp_path):
    session = open_session(tmp_path)
    tx = session.begin_transaction()
    session.add(Ledger(memo="draft"))
    session.save_changes()
    tx.rollback()

    assert memos(session) == []
    session.close()


def test_disposing_unresolved_handle_rolls_back(tmp_path):
    session = open_session(tmp_path)
    with session.begin_transaction() as tx:
        session.add(Ledger(memo="abandoned"))
        session.save_changes()
    assert tx.status == "rolled back"
    assert memos(session) == []
    session.close()


def test_handle_resolves_only_once(tmp_path):
    session = open_session(tmp_path)
    tx = session.begin_transaction()
    tx.commit()
    with pytest.raises(TransactionError, match="already been committed"):
        tx.rollback()
    tx.dispose()
    session.close()


def test_nested_handle_rolls_back_to_savepoint(tmp_path):
    session = open_session(tmp_path)
    outer = session.begin_transaction()
    session.add(Ledger(memo="kept"))
    session.save_changes()

    inner = session.begin_transaction()
    assert inner.is_nested
    session.add(Ledger(memo="discarded"))
    session.save_changes()
    inner.rollback()

    outer.commit()
    assert memos(session) == ["kept"]
    session.close()


def test_outer_handle_cannot_resolve_while_inner_is_open(tmp_path):
    session = open_session(tmp_path)
    outer = session.begin_transaction()
    inner = session.begin_transaction()
    with pytest.raises(TransactionError, match="innermost"):
        outer.commit()
    inner.commit()
    outer.commit()
    session.close()


def test_transaction_block_rolls_back_on_error(tmp_path):
    session = open_session(tmp_path)
    with pytest.raises(BackendExecutionError):
        with session.transaction():
            session.execute_sql('INSERT INTO "ledger" ("memo") VALUES (?)', ["one"])
            session.execute_sql('INSERT INTO "ledger" ("memo") VALUES (NULL)')
    assert memos(session) == []

    with session.transaction():
        session.execute_sql('INSERT INTO "ledger" ("memo") VALUES (?)', ["two"])
    assert memos(session) == ["two"]
    session.close()


def test_close_rolls_back_open_transaction(tmp_path):
    session = open_session(tmp_path)
    tx = session.begin_transaction()
    session.add(Ledger(memo="unfinished"))
    session.save_changes()
    session.close()

    assert tx.status == "rolled back"
    reopened = open_session(tmp_path)
    assert memos(reopened) == []
    reopened.close()


def test_failed_save_inside_handle_leaves_earlier_work_for_rollback(tmp_path):
    session = open_session(tmp_path)
    session.execute_sql(
        'CREATE TRIGGER "reject_void" BEFORE INSERT ON "ledger" WHEN NEW.memo = \'void\' '
        "BEGIN SELECT RAISE(ABORT, 'void memo'); END"
    )
    tx = session.begin_transaction()
    session.add(Ledger(memo="opening"))
    session.save_changes()

    session.add(Ledger(memo="second"))
    session.add(Ledger(memo="void"))
    with pytest.raises(BackendExecutionError, match="void memo"):
        session.save_changes()

    assert tx.is_active
    assert memos(session) == ["opening"]
    tx.rollback()
    assert memos(session) == []
    session.close()

    session = open_session(tmp_path)
    with session.begin_transaction() as tx:
        session.add(Ledger(memo="alpha"))
        session.add(Ledger(memo="beta"))
        session.save_changes()
        session.add(Ledger(memo="gamma"))
        session.save_changes()
        tx.commit()
    assert memos(session) == ["alpha", "beta", "gamma"]
    session.close()
