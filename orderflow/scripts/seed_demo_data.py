"""
Script to seed a database with demo users, a restaurant and its menu.

Creates:
- 1 user per role (admin, customer, restaurant owner, delivery agent)
- 1 restaurant owned by the owner, delivery fee $25.00
- 4 menu items
"""

import sqlite3
import os
import sys
from werkzeug.security import generate_password_hash

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from migrations.create_order_tables import apply_schema, get_db_path  # noqa: E402


USERS = [
    # (name, email, password, role, phone, address)
    ("Admin", "admin@food.com", "admin123", "ADMIN", "9999999999", None),
    ("John Doe", "customer@food.com", "customer123", "CUSTOMER", "8888888888", "123 Main St, City"),
    ("Restaurant Owner", "owner@food.com", "owner123", "RESTAURANT_OWNER", "7777777777", None),
    ("Delivery Agent", "agent@food.com", "agent123", "DELIVERY_AGENT", "6666666666", None),
]

MENU = [
    # (name, description, price in cents)
    ("Butter Chicken", "Creamy tomato curry with tender chicken", 28000),
    ("Garlic Naan", "Tandoor-baked flatbread with garlic butter", 6000),
    ("Paneer Tikka", "Grilled cottage cheese with spices", 22000),
    ("Mango Lassi", "Chilled yogurt drink with mango", 8000),
]


def create_users(conn):
    """Create one user per role and return {role: usr_id}."""
    cursor = conn.cursor()
    ids = {}
    for name, email, password, role, phone, address in USERS:
        cursor.execute('SELECT usr_id FROM "User" WHERE email = ?', (email,))
        existing = cursor.fetchone()
        if existing:
            print(f"⚠ {role} already exists with ID: {existing[0]}")
            ids[role] = existing[0]
            continue
        cursor.execute('''
            INSERT INTO "User" (name, email, password_HS, role, phone, address)
            VALUES (?, ?, ?, ?, ?, ?)
        ''', (name, email, generate_password_hash(password), role, phone, address))
        ids[role] = cursor.lastrowid
        print(f"✓ Created {role} #{ids[role]}: {email} / {password}")
    return ids


def create_restaurant(conn, owner_id):
    """Create the demo restaurant and its menu; return the rtr_id."""
    cursor = conn.cursor()
    cursor.execute('SELECT rtr_id FROM "Restaurant" WHERE name = ?', ("Spice Garden",))
    existing = cursor.fetchone()
    if existing:
        print(f"⚠ Restaurant already exists with ID: {existing[0]}")
        return existing[0]

    cursor.execute('''
        INSERT INTO "Restaurant" (owner_id, name, description, address, phone, cuisine, delivery_fee)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    ''', (owner_id, "Spice Garden",
          "Authentic Indian cuisine with rich flavors and traditional recipes",
          "42 Curry Lane, Mumbai", "022-12345678", "Indian", 2500))
    rtr_id = cursor.lastrowid
    print(f"✓ Created restaurant #{rtr_id}: Spice Garden (delivery fee $25.00)")

    for name, description, price in MENU:
        cursor.execute('''
            INSERT INTO "MenuItem" (rtr_id, name, description, price, instock)
            VALUES (?, ?, ?, ?, 1)
        ''', (rtr_id, name, description, price))
        print(f"  - {name}: ${price / 100:.2f}")
    return rtr_id


def main():
    """Run the script to create demo data."""
    db_file = get_db_path()

    print("Seeding demo data")
    print("=" * 60)
    print(f"Database: {db_file}\n")

    conn = None
    try:
        conn = sqlite3.connect(db_file)
        apply_schema(conn)
        print("✓ Schema ready\n")

        ids = create_users(conn)
        print()
        create_restaurant(conn, ids["RESTAURANT_OWNER"])

        conn.commit()
        print("\n✓ All changes committed")
        print("\n" + "=" * 60)
        print("Demo data created successfully! ✓")

    except sqlite3.Error as e:
        print(f"\n✗ Database error: {e}")
        if conn:
            conn.rollback()
            print("✓ Changes rolled back")
        sys.exit(1)

    finally:
        if conn:
            conn.close()
            print("✓ Database connection closed")


if __name__ == '__main__':
    main()
