"""
Server instructions for the Snowflake MCP Server.

These instructions are sent to the client during initialization
to provide context about how to use the server's capabilities.
"""

INSTRUCTIONS_BASE = """Execute read-only SQL queries against a Snowflake warehouse using Snowflake SQL syntax.

## Available Tools

- `execute_query`: Execute a SQL query and return the rows as a JSON array of objects

## Result Format

```
Results: [{"COLUMN_A":1,"COLUMN_B":"text"}]
Execution time: 0.42s
```

- Unquoted identifiers are upper-cased by Snowflake, so result keys are usually upper case
- Every row is returned; add `LIMIT` to keep large results manageable

## Snowflake SQL Quick Reference

**Name Qualification**
- Format: `database.schema.table`, `schema.table` or `table`
- Unqualified names resolve against the session database and schema

**Identifiers and Literals:**
- Use double quotes (`"`) for case-sensitive identifiers or identifiers with special characters
- Use single quotes (`'`) for string literals

### Schema Exploration

```sql
-- List tables in the current schema
SHOW TABLES;

-- Get column info
SELECT column_name, data_type FROM information_schema.columns
WHERE table_schema = CURRENT_SCHEMA() AND table_name = 'YOUR_TABLE';

-- Quick preview
SELECT * FROM your_table LIMIT 10;
```

### Query Best Practices

- Filter early to reduce data volume
- Use CTEs to break complex queries into manageable parts
- Use `QUALIFY` for filtering window function results
"""


def get_instructions(
    database: str | None = None,
    schema: str | None = None,
    warehouse: str | None = None,
) -> str:
    """
    Get server instructions with connection context.

    Args:
        database: Session database
        schema: Session schema
        warehouse: Virtual warehouse running the queries

    Returns:
        Instructions string with context header
    """
    context_lines = []

    if database and schema:
        context_lines.append(f"- **Database**: `{database}.{schema}`")
    elif database:
        context_lines.append(f"- **Database**: `{database}`")
    if warehouse:
        context_lines.append(f"- **Warehouse**: `{warehouse}`")

    context_lines.append(
        "- **Access mode**: Read-only - statements starting with INSERT, UPDATE, DELETE, "
        "CREATE, DROP or ALTER are rejected"
    )

    context = "## Server Configuration\n\n" + "\n".join(context_lines) + "\n\n"
    return context + INSTRUCTIONS_BASE
