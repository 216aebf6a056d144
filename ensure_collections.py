#!/usr/bin/env python3
"""
Database Collection Setup Script

This script ensures all required collections and indexes exist in the
database and reports what it finds.

Usage:
    python ensure_collections.py
"""

from app.db.database import COLLECTION_INDEXES, DatabaseManager
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

def main():
    """Ensure all database collections exist."""
    print("🔧 Database Collection Setup")
    print("=" * 40)

    try:
        # Initializing the manager creates missing collections and indexes
        db = DatabaseManager().get_database()

        existing_names = [col['name'] for col in db.collections() if not col['name'].startswith('_')]

        print(f"\n🎯 Required collections status:")
        for name in COLLECTION_INDEXES:
            if name in existing_names:
                count = db.collection(name).count()
                print(f"   ✅ {name} - {count} documents")
            else:
                print(f"   ❌ {name} - MISSING")

        print(f"\n🗂️  Indexes:")
        for name in COLLECTION_INDEXES:
            if name not in existing_names:
                continue
            for index in db.collection(name).indexes():
                if index['type'] == 'primary':
                    continue
                flags = [flag for flag in ('unique', 'sparse') if index.get(flag)]
                suffix = f" ({', '.join(flags)})" if flags else ""
                print(f"   📦 {name}: {', '.join(index['fields'])}{suffix}")

        print("\n" + "=" * 40)
        print("✅ Database setup complete!")

    except Exception as e:
        logger.error(f"Database setup failed: {e}")
        print(f"❌ Error: {e}")
        return 1

    return 0

if __name__ == "__main__":
    raise SystemExit(main())
