"""
Finance Buddy database setup - schema for every table the app touches and an
optional demo user with a year of data.
"""

import json
import os
import sqlite3
from datetime import date, datetime
from typing import Optional

from finance_buddy.config import get_settings

RANDOM_ID = "(lower(hex(randomblob(16))))"


SCHEMA = [
    # --- PROFILES (identity) ---
    f"""
    CREATE TABLE IF NOT EXISTS profiles (
        id TEXT PRIMARY KEY DEFAULT {RANDOM_ID},
        email TEXT UNIQUE,
        name TEXT,
        age INTEGER,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # --- FINANCIAL PROFILES (one per profile) ---
    """
    CREATE TABLE IF NOT EXISTS financial_profiles (
        id TEXT PRIMARY KEY,
        monthly_income REAL,
        risk_profile TEXT CHECK(risk_profile IN ('conservative', 'moderate', 'aggressive')),
        has_emergency_fund INTEGER,
        emergency_fund_months INTEGER,
        has_debts INTEGER,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (id) REFERENCES profiles(id) ON DELETE CASCADE
    );
    """,
    # --- MONTHLY TRACKERS (12 buckets as JSON per user and year) ---
    f"""
    CREATE TABLE IF NOT EXISTS monthly_expenses (
        id TEXT PRIMARY KEY DEFAULT {RANDOM_ID},
        user_id TEXT NOT NULL,
        year INTEGER NOT NULL,
        data TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (user_id, year)
    );
    """,
    f"""
    CREATE TABLE IF NOT EXISTS monthly_savings (
        id TEXT PRIMARY KEY DEFAULT {RANDOM_ID},
        user_id TEXT NOT NULL,
        year INTEGER NOT NULL,
        data TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (user_id, year)
    );
    """,
    # --- DETAILED EXPENSES ---
    f"""
    CREATE TABLE IF NOT EXISTS detailed_expenses (
        id TEXT PRIMARY KEY DEFAULT {RANDOM_ID},
        user_id TEXT NOT NULL,
        date TEXT NOT NULL,
        amount REAL NOT NULL CHECK(amount >= 0),
        category TEXT,
        description TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # --- INVESTMENTS ---
    f"""
    CREATE TABLE IF NOT EXISTS investments (
        id TEXT PRIMARY KEY DEFAULT {RANDOM_ID},
        user_id TEXT NOT NULL,
        name TEXT NOT NULL,
        type TEXT,
        value REAL DEFAULT 0,
        annual_return REAL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # --- FINANCIAL GOALS ---
    f"""
    CREATE TABLE IF NOT EXISTS financial_goals (
        id TEXT PRIMARY KEY DEFAULT {RANDOM_ID},
        user_id TEXT NOT NULL,
        name TEXT NOT NULL,
        target_amount REAL,
        current_amount REAL DEFAULT 0,
        target_date TEXT,
        priority TEXT DEFAULT 'medium',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # --- DEBTS ---
    f"""
    CREATE TABLE IF NOT EXISTS debt_details (
        id TEXT PRIMARY KEY DEFAULT {RANDOM_ID},
        user_id TEXT NOT NULL,
        type TEXT,
        name TEXT,
        amount REAL CHECK(amount >= 0),
        interest_rate REAL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # --- MARKET DATA (shared, not per user) ---
    f"""
    CREATE TABLE IF NOT EXISTS market_data (
        id TEXT PRIMARY KEY DEFAULT {RANDOM_ID},
        symbol TEXT NOT NULL,
        name TEXT,
        price REAL,
        change_amount REAL,
        change_percent REAL,
        type TEXT,
        last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    # --- CONVERSATION DOCUMENTS ---
    f"""
    CREATE TABLE IF NOT EXISTS document_embeddings (
        id TEXT PRIMARY KEY DEFAULT {RANDOM_ID},
        user_id TEXT,
        content TEXT NOT NULL,
        embedding TEXT,     -- JSON list of floats
        metadata TEXT,      -- JSON
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_expenses_user_date ON detailed_expenses(user_id, date);",
    "CREATE INDEX IF NOT EXISTS idx_documents_user ON document_embeddings(user_id);",
]


def init_db(db_path: Optional[str] = None) -> str:
    """Create every table if missing. Returns the database path."""
    db_path = db_path or get_settings().db_path
    db_dir = os.path.dirname(db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    with sqlite3.connect(db_path) as conn:
        for statement in SCHEMA:
            conn.execute(statement)
        conn.commit()
    return db_path


DEMO_USER_ID = "demo-user"


def seed_demo_user(db_path: Optional[str] = None, year: Optional[int] = None) -> str:
    """Insert (or refresh) a demo user with a year of data. Returns the user id."""
    db_path = db_path or get_settings().db_path
    year = year or date.today().year
    expenses = [2800, 3100, 2950, 3300, 2700, 3050, 0, 0, 0, 0, 0, 0]
    savings = [900, 700, 850, 600, 1000, 750, 0, 0, 0, 0, 0, 0]

    with sqlite3.connect(db_path) as conn:
        conn.execute(
            """
            INSERT INTO profiles (id, email, name, age) VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET email = excluded.email,
                name = excluded.name, age = excluded.age
            """,
            (DEMO_USER_ID, "demo@financebuddy.local", "Ana Demo", 29),
        )
        conn.execute(
            """
            INSERT INTO financial_profiles
                (id, monthly_income, risk_profile, has_emergency_fund,
                 emergency_fund_months, has_debts)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET monthly_income = excluded.monthly_income,
                risk_profile = excluded.risk_profile,
                has_emergency_fund = excluded.has_emergency_fund,
                emergency_fund_months = excluded.emergency_fund_months,
                has_debts = excluded.has_debts
            """,
            (DEMO_USER_ID, 6500.0, "moderate", 1, 3, 1),
        )

        for table, amounts in (("monthly_expenses", expenses), ("monthly_savings", savings)):
            data = [{"month": i + 1, "amount": a} for i, a in enumerate(amounts)]
            conn.execute(
                f"""
                INSERT INTO {table} (user_id, year, data) VALUES (?, ?, ?)
                ON CONFLICT(user_id, year) DO UPDATE SET
                    data = excluded.data, updated_at = CURRENT_TIMESTAMP
                """,
                (DEMO_USER_ID, year, json.dumps(data)),
            )

        # Detail rows are replaced wholesale so re-seeding stays idempotent
        for table in ("detailed_expenses", "investments", "financial_goals", "debt_details"):
            conn.execute(f"DELETE FROM {table} WHERE user_id = ?", (DEMO_USER_ID,))

        conn.executemany(
            "INSERT INTO detailed_expenses (user_id, date, amount, category, description) VALUES (?, ?, ?, ?, ?)",
            [
                (DEMO_USER_ID, f"{year}-06-02", 1800.0, "Moradia", "Aluguel"),
                (DEMO_USER_ID, f"{year}-06-05", 650.0, "Alimentação", "Supermercado"),
                (DEMO_USER_ID, f"{year}-06-12", 220.0, "Transporte", "Combustível"),
                (DEMO_USER_ID, f"{year}-06-20", 380.0, "Lazer", "Viagem de fim de semana"),
            ],
        )
        conn.executemany(
            "INSERT INTO investments (user_id, name, type, value, annual_return) VALUES (?, ?, ?, ?, ?)",
            [
                (DEMO_USER_ID, "Tesouro IPCA+ 2035", "Renda Fixa", 12000.0, 6.1),
                (DEMO_USER_ID, "BOVA11", "ETF", 5400.0, 9.8),
                (DEMO_USER_ID, "HGLG11", "FII", 3100.0, 8.2),
            ],
        )
        conn.executemany(
            """
            INSERT INTO financial_goals
                (user_id, name, target_amount, current_amount, target_date, priority)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (DEMO_USER_ID, "Reserva de Emergência", 39000.0, 19500.0, f"{year + 1}-12-31", "high"),
                (DEMO_USER_ID, "Viagem", 8000.0, 8000.0, f"{year}-12-01", "low"),
            ],
        )
        conn.execute(
            "INSERT INTO debt_details (user_id, type, name, amount, interest_rate) VALUES (?, ?, ?, ?, ?)",
            (DEMO_USER_ID, "Cartão de Crédito", "Cartão Nubank", 2400.0, 12.5),
        )

        conn.execute("DELETE FROM market_data")
        now = datetime.now().isoformat(timespec="seconds")
        conn.executemany(
            """
            INSERT INTO market_data
                (symbol, name, price, change_amount, change_percent, type, last_updated)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                ("BOVA11", "iShares Ibovespa", 121.4, 0.9, 0.75, "etf", now),
                ("PETR4", "Petrobras PN", 37.2, -0.4, -1.06, "stock", now),
                ("USDBRL", "Dólar comercial", 5.12, 0.02, 0.39, "currency", now),
            ],
        )
        conn.commit()

    return DEMO_USER_ID


def main(db_path: Optional[str] = None, seed: bool = False):
    """Initialize complete database schema."""
    path = init_db(db_path)
    print(f"🔧 Finance Buddy database ready at: {path}")
    if seed:
        user_id = seed_demo_user(path)
        print(f"✅ Demo user seeded: {user_id}")
    return path
