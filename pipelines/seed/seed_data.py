"""
Seed data generator -- creates and fills the commerce tables the report
engine reads from.

Generates, per tenant (``user_id``):
  - ~300 customers
  - ~60 products (12 categories x 5 products)
  - ~3 000 orders
  - one daily_metrics row per day that has orders

Tables are (re)created through SQLAlchemy Core in the public schema.
Run:  python -m pipelines.seed.seed_data
"""
from __future__ import annotations

import random
from collections import defaultdict
from datetime import datetime, timedelta

from faker import Faker
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
)
from sqlalchemy.engine import Engine

from report_engine.db.connection import get_engine

fake = Faker()
Faker.seed(42)
random.seed(42)

# ── Tunables ─────────────────────────────────────────────
TENANTS = ["tenant-a", "tenant-b"]
NUM_CUSTOMERS = 300
NUM_ORDERS = 3_000

CHANNELS = ["online", "store", "marketplace", "phone"]
STATUSES = ["delivered", "shipped", "pending", "cancelled", "returned"]
STATUS_WEIGHTS = [0.60, 0.15, 0.10, 0.10, 0.05]
PAYMENT_METHODS = ["card", "upi", "paypal", "cash_on_delivery", "bank_transfer"]
REGIONS = ["North", "South", "East", "West", "Central"]
SEGMENTS = ["new", "regular", "vip", "wholesale"]

CATEGORIES = [
    "Electronics", "Clothing", "Home & Kitchen", "Books", "Sports", "Beauty",
    "Toys", "Grocery", "Health", "Garden", "Office", "Pet Supplies",
]
PRODUCTS_PER_CATEGORY = 5

TAX_RATE = 0.08

DATE_START = datetime(2024, 1, 1)
DATE_END = datetime(2025, 12, 31)
DATE_RANGE_DAYS = (DATE_END - DATE_START).days


def _rand_ts() -> datetime:
    return DATE_START + timedelta(
        days=random.randint(0, DATE_RANGE_DAYS),
        hours=random.randint(0, 23),
        minutes=random.randint(0, 59),
        seconds=random.randint(0, 59),
    )


# ── Schema ───────────────────────────────────────────────

metadata = MetaData()

customers = Table(
    "customers", metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("customer_name", String(200)),
    Column("email", String(200)),
    Column("phone", String(50)),
    Column("segment", String(50)),
    Column("region", String(50)),
    Column("total_spent", Numeric(12, 2), default=0),
    Column("created_at", DateTime(timezone=True)),
)

products = Table(
    "products", metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("product_name", String(200)),
    Column("category", String(100)),
    Column("sku", String(50)),
    Column("price", Numeric(12, 2)),
    Column("cost", Numeric(12, 2)),
    Column("stock", Integer),
    Column("units_sold", Integer, default=0),
    Column("created_at", DateTime(timezone=True)),
)

orders = Table(
    "orders", metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("customer_id", Integer),
    Column("customer_name", String(200)),
    Column("product_name", String(200)),
    Column("category", String(100)),
    Column("region", String(50)),
    Column("channel", String(50)),
    Column("status", String(50)),
    Column("payment_method", String(50)),
    Column("units_sold", Integer),
    Column("subtotal", Numeric(12, 2)),
    Column("tax", Numeric(12, 2)),
    Column("shipping", Numeric(12, 2)),
    Column("total", Numeric(12, 2)),
    Column("cost", Numeric(12, 2)),
    Column("created_at", DateTime(timezone=True), index=True),
    Column("delivered_at", DateTime(timezone=True)),
)

daily_metrics = Table(
    "daily_metrics", metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("date", Date, index=True),
    Column("total_orders", Integer),
    Column("total_revenue", Numeric(14, 2)),
    Column("total_profit", Numeric(14, 2)),
    Column("average_order_value", Numeric(12, 2)),
    Column("unique_customers", Integer),
    Column("returned_orders", Integer),
    Column("cancelled_orders", Integer),
    Column("completed_orders", Integer),
)


# ── Generators ───────────────────────────────────────────

def gen_customers(tenant: str, start_id: int = 1) -> list[dict]:
    rows = []
    for offset in range(NUM_CUSTOMERS):
        rows.append({
            "id": start_id + offset,
            "user_id": tenant,
            "customer_name": fake.name(),
            "email": fake.email(),
            "phone": fake.phone_number(),
            "segment": random.choice(SEGMENTS),
            "region": random.choice(REGIONS),
            "total_spent": 0,
            "created_at": _rand_ts(),
        })
    return rows


def gen_products(tenant: str, start_id: int = 1) -> list[dict]:
    rows = []
    pid = start_id
    for category in CATEGORIES:
        for _ in range(PRODUCTS_PER_CATEGORY):
            price = round(random.uniform(5.0, 500.0), 2)
            rows.append({
                "id": pid,
                "user_id": tenant,
                "product_name": f"{fake.color_name()} {fake.word().title()}",
                "category": category,
                "sku": fake.unique.bothify("SKU-####-????").upper(),
                "price": price,
                "cost": round(price * random.uniform(0.4, 0.75), 2),
                "stock": random.randint(0, 500),
                "units_sold": 0,
                "created_at": _rand_ts(),
            })
            pid += 1
    return rows


def gen_orders(tenant: str, customer_rows: list[dict], product_rows: list[dict], start_id: int = 1) -> list[dict]:
    """Orders with one product line each; updates customer/product running totals in place."""
    rows = []
    for offset in range(NUM_ORDERS):
        customer = random.choice(customer_rows)
        product = random.choice(product_rows)
        units = random.randint(1, 5)
        subtotal = round(float(product["price"]) * units, 2)
        tax = round(subtotal * TAX_RATE, 2)
        shipping = random.choice([0.0, 4.99, 9.99])
        status = random.choices(STATUSES, weights=STATUS_WEIGHTS, k=1)[0]
        created_at = _rand_ts()
        rows.append({
            "id": start_id + offset,
            "user_id": tenant,
            "customer_id": customer["id"],
            "customer_name": customer["customer_name"],
            "product_name": product["product_name"],
            "category": product["category"],
            "region": customer["region"],
            "channel": random.choice(CHANNELS),
            "status": status,
            "payment_method": random.choice(PAYMENT_METHODS),
            "units_sold": units,
            "subtotal": subtotal,
            "tax": tax,
            "shipping": shipping,
            "total": round(subtotal + tax + shipping, 2),
            "cost": round(float(product["cost"]) * units, 2),
            "created_at": created_at,
            "delivered_at": created_at + timedelta(days=random.randint(1, 7)) if status == "delivered" else None,
        })
        customer["total_spent"] = round(float(customer["total_spent"]) + rows[-1]["total"], 2)
        product["units_sold"] += units
    return rows


def gen_daily_metrics(tenant: str, order_rows: list[dict], start_id: int = 1) -> list[dict]:
    """Roll order rows up into one row per calendar day."""
    by_day: dict = defaultdict(list)
    for o in order_rows:
        by_day[o["created_at"].date()].append(o)

    rows = []
    for offset, day in enumerate(sorted(by_day)):
        day_orders = by_day[day]
        revenue = sum(o["total"] for o in day_orders)
        profit = sum(o["total"] - o["cost"] for o in day_orders)
        statuses = [o["status"] for o in day_orders]
        rows.append({
            "id": start_id + offset,
            "user_id": tenant,
            "date": day,
            "total_orders": len(day_orders),
            "total_revenue": round(revenue, 2),
            "total_profit": round(profit, 2),
            "average_order_value": round(revenue / len(day_orders), 2),
            "unique_customers": len({o["customer_id"] for o in day_orders}),
            "returned_orders": statuses.count("returned"),
            "cancelled_orders": statuses.count("cancelled"),
            "completed_orders": statuses.count("delivered"),
        })
    return rows


# ── Bulk insert helper ───────────────────────────────────

def _bulk_insert(engine: Engine, table: Table, rows: list[dict], batch_size: int = 2000):
    """Insert rows into *table* in executemany batches."""
    if not rows:
        return
    with engine.begin() as conn:
        for i in range(0, len(rows), batch_size):
            conn.execute(table.insert(), rows[i : i + batch_size])
    print(f"  ✓ {table.name}: {len(rows):,} rows")


def reset_schema(engine: Engine) -> None:
    """Drop and recreate the report tables."""
    metadata.drop_all(engine)
    metadata.create_all(engine)


# ── Main ─────────────────────────────────────────────────

def main():
    print("═══ Seed Data Generator ═══")
    engine = get_engine()

    print("Recreating report tables …")
    reset_schema(engine)

    all_customers, all_products, all_orders, all_daily = [], [], [], []
    print("Generating data …")
    for tenant in TENANTS:
        cust = gen_customers(tenant, start_id=len(all_customers) + 1)
        prods = gen_products(tenant, start_id=len(all_products) + 1)
        ords = gen_orders(tenant, cust, prods, start_id=len(all_orders) + 1)
        daily = gen_daily_metrics(tenant, ords, start_id=len(all_daily) + 1)
        all_customers += cust
        all_products += prods
        all_orders += ords
        all_daily += daily

    print("Inserting …")
    _bulk_insert(engine, customers, all_customers)
    _bulk_insert(engine, products, all_products)
    _bulk_insert(engine, orders, all_orders)
    _bulk_insert(engine, daily_metrics, all_daily)

    print(f"\nDone — seeded {len(TENANTS)} tenants: {len(all_customers):,} customers, "
          f"{len(all_products):,} products, {len(all_orders):,} orders, "
          f"{len(all_daily):,} daily metric rows.")


if __name__ == "__main__":
    main()
