"""
Migration script to create the tables used by the order lifecycle.

This migration adds:
- User table carrying the role each identity acts with
- Restaurant and MenuItem tables read by the catalog lookup
- Order and OrderItem tables (an order owns its lines)
- Review table read by the rating recompute
- Database indexes for the order store queries (customer, restaurant,
  agent, status, created_at)
"""

import sqlite3
import os
import sys


TABLES = {
    'User': '''
        CREATE TABLE IF NOT EXISTS "User" (
            usr_id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            email TEXT NOT NULL UNIQUE,
            password_HS TEXT NOT NULL,
            phone TEXT,
            address TEXT,
            role TEXT NOT NULL DEFAULT 'CUSTOMER',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''',
    'Restaurant': '''
        CREATE TABLE IF NOT EXISTS "Restaurant" (
            rtr_id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            description TEXT,
            address TEXT,
            phone TEXT,
            cuisine TEXT,
            delivery_fee INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY (owner_id) REFERENCES "User"(usr_id)
        )
    ''',
    'MenuItem': '''
        CREATE TABLE IF NOT EXISTS "MenuItem" (
            itm_id INTEGER PRIMARY KEY AUTOINCREMENT,
            rtr_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            description TEXT,
            price INTEGER NOT NULL,
            instock INTEGER NOT NULL DEFAULT 1,
            FOREIGN KEY (rtr_id) REFERENCES "Restaurant"(rtr_id)
        )
    ''',
    'Order': '''
        CREATE TABLE IF NOT EXISTS "Order" (
            ord_id INTEGER PRIMARY KEY AUTOINCREMENT,
            usr_id INTEGER NOT NULL,
            rtr_id INTEGER NOT NULL,
            status TEXT NOT NULL DEFAULT 'PENDING',
            delivery_address TEXT NOT NULL,
            subtotal INTEGER NOT NULL,
            delivery_fee INTEGER NOT NULL,
            payment_method TEXT NOT NULL DEFAULT 'CASH',
            payment_done INTEGER NOT NULL DEFAULT 0,
            special_instructions TEXT,
            dlv_agent_id INTEGER,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY (usr_id) REFERENCES "User"(usr_id),
            FOREIGN KEY (rtr_id) REFERENCES "Restaurant"(rtr_id),
            FOREIGN KEY (dlv_agent_id) REFERENCES "User"(usr_id)
        )
    ''',
    'OrderItem': '''
        CREATE TABLE IF NOT EXISTS "OrderItem" (
            line_id INTEGER PRIMARY KEY AUTOINCREMENT,
            ord_id INTEGER NOT NULL,
            position INTEGER NOT NULL,
            itm_id INTEGER NOT NULL,
            quantity INTEGER NOT NULL CHECK (quantity > 0),
            unit_price INTEGER NOT NULL,
            FOREIGN KEY (ord_id) REFERENCES "Order"(ord_id),
            FOREIGN KEY (itm_id) REFERENCES "MenuItem"(itm_id)
        )
    ''',
    'Review': '''
        CREATE TABLE IF NOT EXISTS "Review" (
            rev_id INTEGER PRIMARY KEY AUTOINCREMENT,
            rtr_id INTEGER NOT NULL,
            usr_id INTEGER NOT NULL,
            rating INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 5),
            comment TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (rtr_id) REFERENCES "Restaurant"(rtr_id),
            FOREIGN KEY (usr_id) REFERENCES "User"(usr_id)
        )
    ''',
}

INDEXES = {
    'idx_order_usr_id': 'CREATE INDEX IF NOT EXISTS idx_order_usr_id ON "Order"(usr_id)',
    'idx_order_rtr_id': 'CREATE INDEX IF NOT EXISTS idx_order_rtr_id ON "Order"(rtr_id)',
    'idx_order_dlv_agent_id': 'CREATE INDEX IF NOT EXISTS idx_order_dlv_agent_id ON "Order"(dlv_agent_id)',
    'idx_order_status': 'CREATE INDEX IF NOT EXISTS idx_order_status ON "Order"(status)',
    'idx_order_created_at': 'CREATE INDEX IF NOT EXISTS idx_order_created_at ON "Order"(created_at DESC)',
    'idx_orderitem_ord_id': 'CREATE INDEX IF NOT EXISTS idx_orderitem_ord_id ON "OrderItem"(ord_id)',
    'idx_review_rtr_id': 'CREATE INDEX IF NOT EXISTS idx_review_rtr_id ON "Review"(rtr_id)',
}


def get_db_path():
    """Get the path to the database file."""
    db_file = os.environ.get('ORDERFLOW_DB') or os.path.join(os.path.dirname(__file__), '..', 'orderflow.db')
    return os.path.abspath(db_file)


def create_tables(conn, verbose=False):
    """Create every table that does not exist yet."""
    cursor = conn.cursor()
    for name, ddl in TABLES.items():
        cursor.execute(ddl)
        if verbose:
            print(f"✓ Table ready: {name}")


def create_indexes(conn, verbose=False):
    """Create database indexes for the order store queries."""
    cursor = conn.cursor()
    for name, ddl in INDEXES.items():
        cursor.execute(ddl)
        if verbose:
            print(f"✓ Index created: {name}")


def verify_table_structure(conn):
    """Verify that every table exists and Order has its lifecycle columns."""
    cursor = conn.cursor()

    cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
    existing = {row[0] for row in cursor.fetchall()}
    missing = [name for name in TABLES if name not in existing]
    if missing:
        raise Exception(f"Missing tables: {', '.join(missing)}")

    cursor.execute('PRAGMA table_info("Order")')
    columns = {col[1] for col in cursor.fetchall()}
    expected_columns = {
        'ord_id', 'usr_id', 'rtr_id', 'status', 'delivery_address', 'subtotal',
        'delivery_fee', 'payment_method', 'payment_done', 'special_instructions',
        'dlv_agent_id', 'created_at', 'updated_at',
    }
    if expected_columns - columns:
        raise Exception(f"Missing columns: {', '.join(sorted(expected_columns - columns))}")

    cursor.execute('PRAGMA foreign_key_list("OrderItem")')
    if len(cursor.fetchall()) < 2:
        raise Exception("Expected 2 foreign keys on OrderItem, found fewer")

    print("✓ Table structure verified")


def apply_schema(conn):
    """Create tables and indexes and commit. Safe to run repeatedly."""
    conn.execute("PRAGMA foreign_keys = ON")
    create_tables(conn)
    create_indexes(conn)
    conn.commit()


def migrate():
    """Run the complete migration."""
    db_file = get_db_path()

    print(f"Starting migration for database: {db_file}")
    print("=" * 60)

    conn = None
    try:
        conn = sqlite3.connect(db_file)
        print("✓ Connected to database")

        conn.execute("PRAGMA foreign_keys = ON")

        create_tables(conn, verbose=True)
        create_indexes(conn, verbose=True)

        conn.commit()
        print("\n✓ All changes committed")

        verify_table_structure(conn)

        print("\n" + "=" * 60)
        print("Migration completed successfully! ✓")

    except sqlite3.Error as e:
        print(f"\n✗ Database error: {e}")
        if conn:
            conn.rollback()
            print("✓ Changes rolled back")
        sys.exit(1)

    except Exception as e:
        print(f"\n✗ Error: {e}")
        if conn:
            conn.rollback()
            print("✓ Changes rolled back")
        sys.exit(1)

    finally:
        if conn:
            conn.close()
            print("✓ Database connection closed")


if __name__ == '__main__':
    migrate()
