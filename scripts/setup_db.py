"""
Database Setup Script
Creates the database tables and seeds the default keyword dictionary
"""

import asyncio
import sys
import traceback

from sqlalchemy import text

from commentflow.app.config import get_config, setup_logging, validate_config
from commentflow.app.database import db_manager
from commentflow.infrastructure.cache import get_typed_cache
from commentflow.services.keyword_service import KeywordService


async def setup() -> int:
    """Create tables and seed keywords; returns the number of keywords added"""
    try:
        async with db_manager.session() as session:
            await session.execute(text("SELECT 1"))
        print("✅ Database connection successful")

        print("\n📊 Creating database tables...")
        await db_manager.create_tables()

        async with db_manager.session() as session:
            # No publisher: a fresh database has nothing to reclassify
            keywords = KeywordService(session, get_typed_cache())
            return await keywords.seed_defaults()
    finally:
        await db_manager.dispose()


def main():
    """Initialize database and validate configuration"""
    print("=" * 60)
    print("🔧 Comment Analysis Pipeline - Database Setup")
    print("=" * 60)

    setup_logging()

    print("\n🔍 Validating Configuration...")
    validation = validate_config()

    if not validation["valid"]:
        print("\n❌ Configuration validation failed:")
        for error in validation["errors"]:
            print(f"  - {error}")
        sys.exit(1)

    if validation["warnings"]:
        print("\n⚠️  Configuration warnings:")
        for warning in validation["warnings"]:
            print(f"  - {warning}")

    config = get_config()
    print(f"\n📦 Using database: {config.database.url}")

    try:
        added = asyncio.run(setup())

        print(f"\n🔑 Seeded {added} default keywords")
        print("\n" + "=" * 60)
        print("✅ Database setup complete!")
        print("=" * 60)

    except Exception as e:
        print(f"\n❌ Database setup failed: {e}")
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
