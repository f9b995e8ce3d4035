# scripts/setup/init_db.py
"""
Initialize database — creates the invoice and toll tables.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py [--demo]
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from datetime import date, timedelta
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from app.database import create_tables, engine, SessionLocal
from app.config import settings
from app.models.invoice import Invoice, InvoiceLine, INVOICE_STATUS_CONCEPT, LINE_KIND_TOLL
from app.services.toll_line_matcher import build_toll_description
from app.utils.reference_parser import format_invoice_reference
from app.utils.week import week_of, week_bounds


def seed_demo_invoice(plate: str = "12-ABC-3"):
    """One concept invoice for the current week with a blank toll placeholder per weekday."""
    year, week = week_of(date.today())
    monday, _ = week_bounds(year, week)
    db = SessionLocal()
    try:
        invoice = Invoice(reference=format_invoice_reference(week, year, plate),
                          status=INVOICE_STATUS_CONCEPT, invoice_date=date.today())
        db.add(invoice)
        db.flush()
        for offset in range(5):
            d = monday + timedelta(days=offset)
            db.add(InvoiceLine(invoice_id=invoice.id, description=build_toll_description(d, None),
                               quantity=0, unit_price=0, total=0,
                               vat_rate=settings.TOLL_DEFAULT_VAT_RATE, line_kind=LINE_KIND_TOLL, toll_date=d))
        db.commit()
        print(f"🧾 Demo concept invoice {invoice.id}: {invoice.reference}")
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Create toll reconciliation tables")
    parser.add_argument("--demo", action="store_true", help="Also seed a demo concept invoice")
    args = parser.parse_args()

    print("🗄️  Toll DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except SQLAlchemyError as e:
        print(f"❌ Cannot connect to database: {e}")
        print("\nMake sure PostgreSQL is running:")
        print("  sudo systemctl start postgresql")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()
    tables = sorted(inspect(engine).get_table_names())
    print(f"✅ Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    if args.demo:
        seed_demo_invoice()

    print("\n🎉 Database ready! You can now start the backend:")
    print("   uvicorn app.main:app --host 0.0.0.0 --port 8080 --reload")


if __name__ == "__main__":
    main()
