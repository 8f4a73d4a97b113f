"""
Minimal aggregation query builder.

Expresses ``GROUP BY`` / ``SUM`` / ``COUNT`` reports as data and compiles them
with `psycopg.sql` composition, so identifiers are always quoted and filter
values are always bound parameters. Only the handful of constructs the reports
need are supported.

Example:
    report = Aggregate(
        source=Table("orders", "o"),
        dimensions=(DateBucket(Col("o", "created_at"), "date"),),
        measures=(CountAll("order_count"), Sum(Col("o", "total_amount"), "total_revenue")),
        where=(AtLeast(Col("o", "created_at"), since),),
        order_by=(("date", "DESC"),),
    )
    rows = report.fetch(session)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

from psycopg import sql

from querylab.infrastructure.session import Row, Session


@dataclass(frozen=True)
class Table:
    name: str
    alias: str

    def to_sql(self) -> sql.Composable:
        return sql.SQL("{} {}").format(sql.Identifier(self.name), sql.Identifier(self.alias))


@dataclass(frozen=True)
class Col:
    table: str
    name: str

    def to_sql(self) -> sql.Composable:
        return sql.Identifier(self.table, self.name)


@dataclass(frozen=True)
class Join:
    table: Table
    left: Col
    right: Col
    kind: str = "LEFT"

    def to_sql(self) -> sql.Composable:
        kind = "LEFT JOIN" if self.kind.upper() == "LEFT" else "JOIN"
        return sql.SQL("{} {} ON {} = {}").format(
            sql.SQL(kind), self.table.to_sql(), self.left.to_sql(), self.right.to_sql()
        )


@dataclass(frozen=True)
class Dimension:
    column: Col
    alias: str

    def expression(self) -> sql.Composable:
        return self.column.to_sql()


@dataclass(frozen=True)
class DateBucket(Dimension):
    """Groups a timestamp column by calendar day."""

    def expression(self) -> sql.Composable:
        return sql.SQL("DATE({})").format(self.column.to_sql())


@dataclass(frozen=True)
class Sum:
    column: Col
    alias: str

    def expression(self) -> sql.Composable:
        return sql.SQL("COALESCE(SUM({}), 0)").format(self.column.to_sql())


@dataclass(frozen=True)
class SumProduct:
    left: Col
    right: Col
    alias: str

    def expression(self) -> sql.Composable:
        return sql.SQL("COALESCE(SUM({} * {}), 0)").format(self.left.to_sql(), self.right.to_sql())


@dataclass(frozen=True)
class CountDistinct:
    column: Col
    alias: str

    def expression(self) -> sql.Composable:
        return sql.SQL("COUNT(DISTINCT {})").format(self.column.to_sql())


@dataclass(frozen=True)
class CountAll:
    alias: str

    def expression(self) -> sql.Composable:
        return sql.SQL("COUNT(*)")


@dataclass(frozen=True)
class Avg:
    column: Col
    alias: str

    def expression(self) -> sql.Composable:
        return sql.SQL("COALESCE(AVG({}), 0)").format(self.column.to_sql())


@dataclass(frozen=True)
class AtLeast:
    column: Col
    value: Any

    def to_sql(self) -> sql.Composable:
        return sql.SQL("{} >= %s").format(self.column.to_sql())


Measure = Union[Sum, SumProduct, CountDistinct, CountAll, Avg]


@dataclass(frozen=True)
class Aggregate:
    source: Table
    dimensions: Tuple[Dimension, ...]
    measures: Tuple[Measure, ...]
    joins: Tuple[Join, ...] = ()
    where: Tuple[AtLeast, ...] = ()
    order_by: Tuple[Tuple[str, str], ...] = ()
    label: Optional[str] = None

    @property
    def output_columns(self) -> List[str]:
        return [d.alias for d in self.dimensions] + [m.alias for m in self.measures]

    def compile(self) -> Tuple[sql.Composed, List[Any]]:
        if not self.dimensions:
            raise ValueError("an aggregate needs at least one grouping dimension")
        unknown = [alias for alias, _ in self.order_by if alias not in self.output_columns]
        if unknown:
            raise ValueError(f"cannot order by non-output columns: {unknown}")

        select_list = sql.SQL(", ").join(
            [sql.SQL("{} AS {}").format(d.expression(), sql.Identifier(d.alias)) for d in self.dimensions]
            + [sql.SQL("{} AS {}").format(m.expression(), sql.Identifier(m.alias)) for m in self.measures]
        )
        parts: List[sql.Composable] = [
            sql.SQL("SELECT {} FROM {}").format(select_list, self.source.to_sql())
        ]
        parts.extend(join.to_sql() for join in self.joins)
        params: List[Any] = []
        if self.where:
            parts.append(
                sql.SQL("WHERE {}").format(sql.SQL(" AND ").join(cond.to_sql() for cond in self.where))
            )
            params.extend(cond.value for cond in self.where)
        parts.append(
            sql.SQL("GROUP BY {}").format(sql.SQL(", ").join(d.expression() for d in self.dimensions))
        )
        if self.order_by:
            parts.append(
                sql.SQL("ORDER BY {}").format(
                    sql.SQL(", ").join(
                        sql.SQL("{} {}").format(
                            sql.Identifier(alias), sql.SQL("DESC" if direction.upper() == "DESC" else "ASC")
                        )
                        for alias, direction in self.order_by
                    )
                )
            )
        return sql.SQL(" ").join(parts), params

    def fetch(self, session: Session) -> List[Row]:
        query, params = self.compile()
        return session.fetch_all(query, params, label=self.label or f"{self.source.name}.aggregate")


def dimensions(*pairs: Tuple[Col, str]) -> Tuple[Dimension, ...]:
    return tuple(Dimension(column, alias) for column, alias in pairs)


__all__ = [
    "Aggregate",
    "AtLeast",
    "Avg",
    "Col",
    "CountAll",
    "CountDistinct",
    "DateBucket",
    "Dimension",
    "Join",
    "Measure",
    "Sum",
    "SumProduct",
    "Table",
    "dimensions",
]
