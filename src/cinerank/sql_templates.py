"""SQL statements rendered from the Jinja templates in ``templates/sql``."""

from __future__ import annotations

from functools import lru_cache

from jinja2 import Environment, PackageLoader, StrictUndefined


@lru_cache(maxsize=1)
def _environment() -> Environment:
    # StrictUndefined: a missing table or column name must fail, not render blank
    return Environment(
        loader=PackageLoader("cinerank", "templates/sql"),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        undefined=StrictUndefined,
    )


def render_sql_template(template_name: str, /, **context: object) -> str:
    """Render ``templates/sql/<template_name>`` with ``context``."""
    return _environment().get_template(template_name).render(**context)


def create_table_statement(template_name: str, table_name: str) -> str:
    """DDL for ``table_name``; templates use ``CREATE TABLE IF NOT EXISTS``."""
    return render_sql_template(template_name, table_name=table_name)


@lru_cache(maxsize=8)
def upsert_statement(table_name: str, columns: tuple[str, ...]) -> str:
    """Parameterized ``INSERT OR REPLACE`` for ``columns`` of ``table_name``.

    Rendered once per table; every save reuses the cached text.
    """
    return render_sql_template("upsert.sql.jinja", table_name=table_name, columns=columns)
