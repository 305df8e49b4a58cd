"""Tests for INSERT, UPDATE and DELETE."""

from __future__ import annotations

import pytest

from sqlspine.conditions import equal, greater_or_equal
from sqlspine.errors import ColumnNotInTableError, EmptyClauseError
from sqlspine.statements.dml import Delete, Insert, Update


def emails(db, shop):
    with db.tx() as tx:
        return tx.new_select(shop.user_id, shop.user_email).order_asc(shop.user_id).execute().get_all(
            lambda r: (r.get(shop.user_id), r.get(shop.user_email))
        )


# =========================================================================
# Rendering
# =========================================================================


class TestInsertRender:
    def test_columns_in_set_order(self, h2_tx, shop):
        sql = Insert(h2_tx, shop.users).set(shop.user_email, "a@b.com").set(shop.user_id, "u1").render()
        assert sql.sql == "INSERT INTO users (email, id) \nVALUES (?, ?);"
        assert [p.value for p in sql.parameters] == ["a@b.com", "u1"]
        assert sql.sql_log == "INSERT INTO users (email, id) \nVALUES ('a@b.com', 'u1');"

    def test_postgres_marker(self, render_tx, shop):
        sql = Insert(render_tx("postgresql"), shop.users).set(shop.user_id, "u1").render()
        assert sql.sql == "INSERT INTO users (id) \nVALUES (%s);"

    def test_nothing_set(self, h2_tx, shop):
        with pytest.raises(EmptyClauseError):
            Insert(h2_tx, shop.users).render()

    def test_column_of_other_table(self, h2_tx, shop):
        with pytest.raises(ColumnNotInTableError):
            Insert(h2_tx, shop.users).set(shop.order_total, 1.0)


class TestUpdateRender:
    def test_set_and_where(self, h2_tx, shop):
        sql = (
            Update(h2_tx, shop.users)
            .set(shop.user_email, "new@b.com")
            .where(equal(shop.user_id, "u1"))
            .render()
        )
        assert sql.sql == "UPDATE users \nSET email = ? \nWHERE id = ?;"
        assert [p.value for p in sql.parameters] == ["new@b.com", "u1"]

    def test_several_columns(self, h2_tx, shop):
        sql = Update(h2_tx, shop.orders).set(shop.order_total, 1.0).set(shop.order_user_id, "u2").render()
        assert sql.sql == "UPDATE orders \nSET total = ?, \n    userId = ?;"

    def test_alias_qualifies_where_only(self, h2_tx, shop):
        sql = (
            Update(h2_tx, shop.users, "u")
            .set(shop.user_email, None)
            .where(equal(shop.user_id, "u1"))
            .render()
        )
        assert sql.sql == "UPDATE users AS u \nSET email = ? \nWHERE u.id = ?;"

    def test_nothing_set(self, h2_tx, shop):
        with pytest.raises(EmptyClauseError):
            Update(h2_tx, shop.users).where(equal(shop.user_id, "u1")).render()

    def test_column_of_other_table(self, h2_tx, shop):
        with pytest.raises(ColumnNotInTableError):
            Update(h2_tx, shop.orders).set(shop.user_email, "x")


class TestDeleteRender:
    def test_without_where(self, h2_tx, shop):
        assert Delete(h2_tx, shop.orders).render().sql == "DELETE FROM orders;"

    def test_str_renders(self, h2_tx, shop):
        statement = Delete(h2_tx, shop.orders).where(greater_or_equal(shop.order_total, 10))
        assert str(statement) == "DELETE FROM orders \nWHERE total >= ?;"


# =========================================================================
# Execution
# =========================================================================


class TestExecute:
    def test_insert_returns_count(self, shop_db, shop):
        with shop_db.tx() as tx:
            assert tx.new_insert(shop.users).set(shop.user_id, "u3").set(shop.user_email, None).execute() == 1
        assert emails(shop_db, shop)[-1] == ("u3", None)

    def test_update_returns_count(self, shop_db, shop):
        with shop_db.tx() as tx:
            updated = tx.new_update(shop.users).set(shop.user_email, "z@z.com").where(equal(shop.user_id, "u2")).execute()
        assert updated == 1
        assert emails(shop_db, shop) == [("u1", "a@b.com"), ("u2", "z@z.com")]

    def test_update_without_match(self, shop_db, shop):
        with shop_db.tx() as tx:
            assert tx.new_update(shop.users).set(shop.user_email, "z").where(equal(shop.user_id, "nope")).execute() == 0

    def test_delete_returns_count(self, shop_db, shop):
        with shop_db.tx() as tx:
            assert tx.new_delete(shop.orders).where(equal(shop.order_user_id, "u1")).execute() == 2

    def test_delete_all(self, shop_db, shop):
        with shop_db.tx() as tx:
            tx.new_delete(shop.orders).execute()
            assert tx.new_delete(shop.users).execute() == 2
        assert emails(shop_db, shop) == []
