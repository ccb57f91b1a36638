"""
Identifier and string literal quoting per dialect.
"""

from .models import Dialect


def quote_identifier(name: str, dialect: Dialect) -> str:
    """Quote a table or column name for the given dialect."""
    if dialect == Dialect.MYSQL:
        return '`' + name.replace('`', '``') + '`'
    return '"' + name.replace('"', '""') + '"'


def quote_identifiers(names: list[str], dialect: Dialect) -> str:
    return ', '.join(quote_identifier(name, dialect) for name in names)


def quote_string(value: str, dialect: Dialect) -> str:
    """
    Render a string literal.

    Single quotes are doubled everywhere; MySQL additionally treats the
    backslash as an escape character, so it is doubled too.
    """
    escaped = value.replace("'", "''")
    if dialect == Dialect.MYSQL:
        escaped = escaped.replace('\\', '\\\\')
    return f"'{escaped}'"


def convert_identifier_quotes(sql: str, dialect: Dialect) -> str:
    """
    Rewrite backtick or double-quoted identifiers into the dialect's quoting.

    Text inside single-quoted string literals is left untouched.
    """
    open_quote = '`' if dialect == Dialect.MYSQL else '"'
    out = []
    i = 0
    length = len(sql)

    while i < length:
        char = sql[i]
        if char == "'":
            end = i + 1
            while end < length:
                if sql[end] == "'" and end + 1 < length and sql[end + 1] == "'":
                    end += 2
                    continue
                if sql[end] == "'":
                    break
                end += 1
            out.append(sql[i:end + 1])
            i = end + 1
        elif char in ('`', '"'):
            end = sql.find(char, i + 1)
            if end == -1:
                out.append(sql[i:])
                break
            name = sql[i + 1:end]
            out.append(quote_identifier(name, dialect) if open_quote != char else sql[i:end + 1])
            i = end + 1
        else:
            out.append(char)
            i += 1

    return ''.join(out)
