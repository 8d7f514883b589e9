"""
Migration: Add uniqueness constraints for deals, snapshots and commissions.

Databases created before these constraints existed can hold duplicate rows,
which breaks the insert-on-conflict upserts used during ingestion:
1. deals                - one row per (policy_number, carrier_id)
2. commission_snapshots - one row per (deal_id, agent_id, commission_type, level)
3. commissions          - one row per (deal_id, agent_id, commission_type, level)
4. agent_carrier_numbers - one agent per (carrier_id, agent_number)

Duplicates are reported, not deleted; resolve them and run again.
"""
from sqlalchemy import create_engine, text
import os

# Use same DB URL pattern as main app
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('USER', 'postgres')}@localhost:5432/commission_engine"
)

CONSTRAINTS = [
    ("deals", "uq_deal_policy_carrier", ["policy_number", "carrier_id"]),
    ("commission_snapshots", "uq_commission_snapshot_entry", ["deal_id", "agent_id", "commission_type", "level"]),
    ("commissions", "uq_commission_entry", ["deal_id", "agent_id", "commission_type", "level"]),
    ("agent_carrier_numbers", "uq_agent_carrier_number", ["carrier_id", "agent_number"]),
]


def constraint_exists(conn, table_name: str, constraint_name: str) -> bool:
    """Check if a named constraint exists on a table."""
    result = conn.execute(text("""
        SELECT EXISTS (
            SELECT FROM information_schema.table_constraints
            WHERE table_name = :table_name AND constraint_name = :constraint_name
        )
    """), {"table_name": table_name, "constraint_name": constraint_name})
    return result.fetchone()[0]


def count_duplicates(conn, table_name: str, columns) -> int:
    """Number of key groups that appear more than once."""
    cols = ", ".join(columns)
    result = conn.execute(text(f"""
        SELECT COUNT(*) FROM (
            SELECT {cols} FROM {table_name}
            GROUP BY {cols}
            HAVING COUNT(*) > 1
        ) dupes
    """))
    return result.fetchone()[0]


def run_migration():
    """Add the unique constraints that are missing."""
    engine = create_engine(DATABASE_URL)

    with engine.connect() as conn:
        for table_name, constraint_name, columns in CONSTRAINTS:
            if constraint_exists(conn, table_name, constraint_name):
                print(f"{constraint_name} already exists on {table_name}")
                continue

            duplicates = count_duplicates(conn, table_name, columns)
            if duplicates:
                print(f"Skipped {constraint_name}: {duplicates} duplicate keys in {table_name}")
                continue

            conn.execute(text(f"""
                ALTER TABLE {table_name}
                ADD CONSTRAINT {constraint_name} UNIQUE ({", ".join(columns)})
            """))
            print(f"Added {constraint_name} to {table_name}")

        conn.commit()
        print("\nCommission uniqueness migration completed.")


if __name__ == "__main__":
    run_migration()
