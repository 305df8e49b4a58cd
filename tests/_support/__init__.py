"""
Test support utilities for sqlspine tests.

Table descriptors are mutable (dialects initialise column types and the
schema manager moves foreign keys around), so every test builds its own
schema with one of the factories below instead of sharing module constants.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlspine import (
    BooleanType,
    ClobType,
    Column,
    DoubleType,
    FloatType,
    IntegerType,
    JsonType,
    LongType,
    Table,
    TimestampType,
    VarcharType,
    id_type,
)


@dataclass
class ShopSchema:
    """``users`` and ``orders``; ``orders.userId`` references ``users.id``."""

    users: Table
    user_id: Column
    user_email: Column
    orders: Table
    order_id: Column
    order_user_id: Column
    order_total: Column

    @property
    def tables(self) -> list[Table]:
        return [self.users, self.orders]


def shop_schema() -> ShopSchema:
    user_id = Column("id", id_type()).primary_key()
    user_email = Column("email", VarcharType(1024))
    users = Table("users", user_id, user_email)

    order_id = Column("id", id_type()).primary_key()
    order_user_id = Column("userId", id_type()).foreign_key(user_id)
    order_total = Column("total", DoubleType())
    orders = Table("orders", order_id, order_user_id, order_total)

    return ShopSchema(users, user_id, user_email, orders, order_id, order_user_id, order_total)


@dataclass
class TeamSchema:
    """``teams`` and ``members`` reference each other."""

    teams: Table
    team_id: Column
    team_captain_id: Column
    members: Table
    member_id: Column
    member_team_id: Column

    @property
    def tables(self) -> list[Table]:
        return [self.teams, self.members]


def team_schema() -> TeamSchema:
    team_id = Column("id", id_type()).primary_key()
    member_id = Column("id", id_type()).primary_key()
    team_captain_id = Column("captainId", id_type()).foreign_key(member_id)
    member_team_id = Column("teamId", id_type()).foreign_key(team_id)
    teams = Table("teams", team_id, team_captain_id)
    members = Table("members", member_id, member_team_id)
    return TeamSchema(teams, team_id, team_captain_id, members, member_id, member_team_id)


@dataclass
class AllTypesSchema:
    table: Table
    id: Column
    integer: Column
    long: Column
    float: Column
    double: Column
    varchar: Column
    clob: Column
    json: Column
    timestamp: Column
    boolean: Column

    @property
    def value_columns(self) -> list[Column]:
        return [c for c in self.table if c is not self.id]


def all_types_schema() -> AllTypesSchema:
    columns = dict(
        id=Column("id", id_type()).primary_key(),
        integer=Column("integerValue", IntegerType()),
        long=Column("longValue", LongType()),
        float=Column("floatValue", FloatType()),
        double=Column("doubleValue", DoubleType()),
        varchar=Column("varcharValue", VarcharType(255)),
        clob=Column("clobValue", ClobType()),
        json=Column("jsonValue", JsonType()),
        timestamp=Column("timestampValue", TimestampType()),
        boolean=Column("booleanValue", BooleanType()),
    )
    table = Table("allTypes", *columns.values())
    return AllTypesSchema(table=table, **columns)
