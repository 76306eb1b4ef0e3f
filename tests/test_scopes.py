"""
Tests for query scopes and the live-only default scope.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import Boolean, Column, DateTime, Integer, String, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from paranoid import (
    INCLUDE_DELETED,
    ParanoidMixin,
    ParanoidOptions,
    ScopedQueryFilter,
    is_paranoid,
    register_paranoid_listeners,
    remove_paranoid_listeners,
)

Base = declarative_base()

T = datetime(2024, 6, 1, 12, 0, 0)


class Memo(Base, ParanoidMixin):
    __tablename__ = "memos"

    id = Column(Integer, primary_key=True)
    subject = Column(String(100))
    deleted_at = Column(DateTime, nullable=True)


class Flag(Base, ParanoidMixin):
    __tablename__ = "flags"
    __paranoid__ = ParanoidOptions(column="removed", column_type="boolean")

    id = Column(Integer, primary_key=True)
    removed = Column(Boolean, nullable=True)


class Card(Base, ParanoidMixin):
    __tablename__ = "cards"
    __paranoid__ = ParanoidOptions(
        column="status", column_type="string", deleted_value="discarded"
    )

    id = Column(Integer, primary_key=True)
    status = Column(String(20), nullable=True)


class PlainRow(Base):
    __tablename__ = "plain_rows"

    id = Column(Integer, primary_key=True)


@pytest.fixture
def db_session(sqlite_engine):
    Base.metadata.create_all(sqlite_engine)
    session = Session(sqlite_engine)

    yield session

    session.close()


@pytest.fixture
def memos(db_session):
    """Memos deleted at various offsets from T, plus one live memo."""
    offsets = {
        "ten before": timedelta(minutes=-10),
        "at": timedelta(0),
        "one after": timedelta(minutes=1),
        "ten after": timedelta(minutes=10),
    }
    db_session.add_all(
        [Memo(subject=name, deleted_at=T + offset) for name, offset in offsets.items()]
    )
    db_session.add(Memo(subject="live"))
    db_session.commit()


def _subjects(session, statement):
    return sorted(memo.subject for memo in session.scalars(statement))


class TestPredicates:
    """Test the SQL generated for each marker kind."""

    def test_time_predicates(self):
        assert str(Memo.live_predicate()) == "memos.deleted_at IS NULL"
        assert str(Memo.deleted_predicate()) == "memos.deleted_at IS NOT NULL"

    def test_boolean_predicates(self):
        assert str(Flag.live_predicate()) == "flags.removed IS NULL"
        assert str(Flag.deleted_predicate()) == "flags.removed IS NOT NULL"

    def test_string_predicates(self):
        live = str(Card.live_predicate())

        assert "cards.status IS NULL OR cards.status !=" in live
        assert str(Card.deleted_predicate()).startswith("cards.status =")

    def test_filter_object(self):
        query_filter = Memo.paranoid_filter()

        assert isinstance(query_filter, ScopedQueryFilter)
        assert query_filter.model is Memo
        assert query_filter.policy.column == "deleted_at"

    def test_is_paranoid(self):
        assert is_paranoid(Memo) is True
        assert is_paranoid(Memo()) is True
        assert is_paranoid(PlainRow) is False

    def test_scopes_carry_bypass_option(self):
        for scope in (Memo.all_scope(), Memo.live_scope(), Memo.deleted_scope()):
            assert scope.get_execution_options()[INCLUDE_DELETED] is True


class TestScopes:
    """Test live, deleted and time-window scopes."""

    def test_live_and_deleted(self, db_session, memos):
        assert _subjects(db_session, Memo.live_scope()) == ["live"]
        assert len(_subjects(db_session, Memo.deleted_scope())) == 4
        assert len(_subjects(db_session, Memo.all_scope())) == 5

    def test_inside_time_window(self, db_session, memos):
        scope = Memo.deleted_inside_time_window(T, timedelta(minutes=2))

        assert _subjects(db_session, scope) == ["at", "one after"]

    def test_after_and_before(self, db_session, memos):
        assert _subjects(db_session, Memo.deleted_after_time(T)) == [
            "one after",
            "ten after",
        ]
        assert _subjects(db_session, Memo.deleted_before_time(T)) == ["ten before"]

    def test_is_deleted_expression(self, db_session, memos):
        deleted = select(Memo).where(Memo.is_deleted)
        live = select(Memo).where(~Memo.is_destroyed)

        assert len(_subjects(db_session, deleted)) == 4
        assert _subjects(db_session, live) == ["live"]

    def test_string_sentinel(self, db_session):
        db_session.add_all(
            [Card(status="archived"), Card(status="discarded"), Card(status=None)]
        )
        db_session.commit()

        live = db_session.scalars(Card.live_scope()).all()
        deleted = db_session.scalars(Card.deleted_scope()).all()

        assert sorted(str(card.status) for card in live) == ["None", "archived"]
        assert [card.status for card in deleted] == ["discarded"]


class TestDefaultScope:
    """Test the do_orm_execute listener."""

    def test_session_listener(self, db_session, memos):
        register_paranoid_listeners(db_session)

        assert _subjects(db_session, select(Memo)) == ["live"]
        everything = select(Memo).execution_options(include_deleted=True)
        assert len(_subjects(db_session, everything)) == 5

    def test_get_respects_scope(self, db_session, memos):
        deleted_id = db_session.scalar(select(Memo.id).where(Memo.subject == "at"))
        db_session.expunge_all()
        register_paranoid_listeners(db_session)

        assert db_session.get(Memo, deleted_id) is None
        found = db_session.get(
            Memo, deleted_id, execution_options={INCLUDE_DELETED: True}
        )
        assert found.subject == "at"

    def test_string_kind_default_scope(self, db_session):
        db_session.add_all([Card(status="archived"), Card(status="discarded")])
        db_session.commit()
        register_paranoid_listeners(db_session)

        cards = db_session.scalars(select(Card)).all()

        assert [card.status for card in cards] == ["archived"]

    def test_non_paranoid_models_unaffected(self, db_session):
        db_session.add(PlainRow())
        db_session.commit()
        register_paranoid_listeners(db_session)

        assert len(db_session.scalars(select(PlainRow)).all()) == 1

    def test_sessionmaker_listener(self, sqlite_engine, memos):
        factory = sessionmaker(sqlite_engine)
        register_paranoid_listeners(factory)
        register_paranoid_listeners(factory)

        with factory() as session:
            assert _subjects(session, select(Memo)) == ["live"]

        remove_paranoid_listeners(factory)

        with factory() as session:
            assert len(_subjects(session, select(Memo))) == 5
