import asyncio
import asyncpg
import sys
from dotenv import load_dotenv
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex, CreateTable

load_dotenv()

from booking_api.config import settings
from booking_api.models.newsletter import Base

def schema_statements():
    """PostgreSQL DDL for every declared table and index, safe to re-run"""
    dialect = postgresql.dialect()
    statements = ['CREATE EXTENSION IF NOT EXISTS "uuid-ossp"']

    for table in Base.metadata.sorted_tables:
        statements.append(str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)).strip())
        for index in sorted(table.indexes, key=lambda i: i.name):
            statements.append(str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect)).strip())

    return statements

async def create_schema():
    conn = await asyncpg.connect(settings.database_url)
    try:
        async with conn.transaction():
            for statement in schema_statements():
                await conn.execute(statement)
        print(f"✅ Newsletter schema created (subscriber email scope: {settings.subscriber_email_scope})")
    finally:
        await conn.close()

if __name__ == "__main__":
    if "--print" in sys.argv:
        print(";\n\n".join(schema_statements()) + ";")
    else:
        asyncio.run(create_schema())
