import logging
from decimal import Decimal

from emberorm.core import DecimalField, ForeignKey, IntegerField, Model, StringField
from emberorm.dialects import SQLiteDialect
from emberorm.schema import SchemaBuilder

dialect = SQLiteDialect()
builder = SchemaBuilder(dialect)


class Kitchen(Model):
    name = StringField(nullable=False)
    ovens = IntegerField(default=0)


class Station(Model):
    label = StringField(max_length=20, nullable=False, default="it's hot", unique=True)
    budget = DecimalField(max_digits=5, decimal_places=2, nullable=False, default=Decimal("0"))
    kitchen = ForeignKey(Kitchen, related_name="stations", db_column="kitchen_id")


def test_create_table_sql():
    sql = builder.create_table_sql(Kitchen)
    expected = (
        'CREATE TABLE IF NOT EXISTS "kitchen" ("id" INTEGER NOT NULL PRIMARY KEY, '
        '"name" VARCHAR(255) NOT NULL, "ovens" INTEGER DEFAULT 0)'
    )
    assert sql == expected


def test_create_table_sql_renders_foreign_keys_and_defaults():
    sql = builder.create_table_sql(Station)
    assert '"label" VARCHAR(20) NOT NULL UNIQUE DEFAULT \'it\'\'s hot\'' in sql
    assert '"budget" DECIMAL(5,2) NOT NULL DEFAULT 0' in sql
    assert sql.endswith(
        'FOREIGN KEY ("kitchen_id") REFERENCES "kitchen" ("id") ON DELETE CASCADE)'
    )


def test_create_all_sql_orders_referenced_tables_first():
    statements = builder.create_all_sql([Station, Kitchen])
    assert [s.split('"')[1] for s in statements] == ["kitchen", "station"]


def test_drop_all_sql_orders_dependent_tables_first():
    statements = builder.drop_all_sql([Kitchen, Station])
    assert statements == ['DROP TABLE IF EXISTS "station"', 'DROP TABLE IF EXISTS "kitchen"']


def test_drop_table_logs_warning(caplog):
    caplog.set_level(logging.WARNING, logger="emberorm.schema.builder")
    local_builder = SchemaBuilder(SQLiteDialect())
    local_builder.drop_table_sql(Kitchen)
    assert any("DROP TABLE generated" in record.message for record in caplog.records)
