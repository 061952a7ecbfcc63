"""Initial schema: users, balances, referrals, progress, mining, staking, wallet.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            email VARCHAR(320) UNIQUE NOT NULL,
            username VARCHAR(64) UNIQUE NOT NULL,
            password_hash VARCHAR(256) NOT NULL,
            referral_code VARCHAR(16) UNIQUE NOT NULL,
            referred_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
            is_admin BOOLEAN NOT NULL DEFAULT false,
            xp INTEGER NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            streak INTEGER NOT NULL DEFAULT 0,
            last_check_in TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_users_referred_by ON users(referred_by)")

    # --- Balances ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS balances (
            user_id INTEGER PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            main_balance NUMERIC(38, 18) NOT NULL DEFAULT 0,
            staking_balance NUMERIC(38, 18) NOT NULL DEFAULT 0,
            mining_balance NUMERIC(38, 18) NOT NULL DEFAULT 0,
            referral_balance NUMERIC(38, 18) NOT NULL DEFAULT 0,
            total_earned NUMERIC(38, 18) NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ,
            CONSTRAINT balances_main_non_negative CHECK (main_balance >= 0),
            CONSTRAINT balances_staking_non_negative CHECK (staking_balance >= 0),
            CONSTRAINT balances_mining_non_negative CHECK (mining_balance >= 0),
            CONSTRAINT balances_referral_non_negative CHECK (referral_balance >= 0)
        )
    """)

    # --- XP Ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_ledger (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            source VARCHAR(32) NOT NULL,
            source_id VARCHAR(128),
            description VARCHAR(256),
            created_at TIMESTAMPTZ DEFAULT NOW(),
            idempotency_key VARCHAR(256) UNIQUE
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_xp_ledger_user_id ON xp_ledger(user_id)")

    # --- Referrals ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS referrals (
            id SERIAL PRIMARY KEY,
            referrer_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            referred_user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            level INTEGER NOT NULL,
            total_commission NUMERIC(38, 18) NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT referrals_referrer_referred_key UNIQUE (referrer_id, referred_user_id),
            CONSTRAINT referrals_level_range CHECK (level BETWEEN 1 AND 3)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_referrals_referrer_id ON referrals(referrer_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_referrals_referred_user_id ON referrals(referred_user_id)")

    # --- Tasks & Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS tasks (
            id SERIAL PRIMARY KEY,
            title VARCHAR(128) UNIQUE NOT NULL,
            description TEXT NOT NULL,
            category VARCHAR(32) NOT NULL,
            xp_reward INTEGER NOT NULL,
            xnrt_reward NUMERIC(38, 18) NOT NULL DEFAULT 0,
            max_progress INTEGER NOT NULL DEFAULT 1,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT tasks_max_progress_positive CHECK (max_progress >= 1)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_tasks_category ON tasks(category)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_tasks (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
            progress INTEGER NOT NULL DEFAULT 0,
            max_progress INTEGER NOT NULL DEFAULT 1,
            completed BOOLEAN NOT NULL DEFAULT false,
            completed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT user_tasks_user_task_key UNIQUE (user_id, task_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_tasks_user_id ON user_tasks(user_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id SERIAL PRIMARY KEY,
            title VARCHAR(128) UNIQUE NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(64) NOT NULL DEFAULT 'Award',
            category VARCHAR(32) NOT NULL,
            requirement INTEGER NOT NULL,
            xp_reward INTEGER NOT NULL,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT achievements_requirement_positive CHECK (requirement >= 1)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_achievements_category ON achievements(category)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_id INTEGER NOT NULL REFERENCES achievements(id) ON DELETE CASCADE,
            unlocked BOOLEAN NOT NULL DEFAULT false,
            unlocked_at TIMESTAMPTZ,
            claimed BOOLEAN NOT NULL DEFAULT false,
            claimed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT user_achievements_user_achievement_key UNIQUE (user_id, achievement_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_achievements_user_id ON user_achievements(user_id)")

    # --- Mining ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS mining_sessions (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            base_reward NUMERIC(38, 18) NOT NULL,
            boost_percentage INTEGER NOT NULL DEFAULT 0,
            ad_boost_count INTEGER NOT NULL DEFAULT 0,
            final_reward NUMERIC(38, 18),
            start_time TIMESTAMPTZ NOT NULL,
            end_time TIMESTAMPTZ NOT NULL,
            next_available TIMESTAMPTZ NOT NULL,
            completed_at TIMESTAMPTZ,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_mining_sessions_user_status
        ON mining_sessions(user_id, status)
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_mining_sessions_one_active
        ON mining_sessions(user_id) WHERE status = 'active'
    """)

    # --- Staking ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS stakes (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            tier VARCHAR(32) NOT NULL,
            amount NUMERIC(38, 18) NOT NULL,
            daily_rate NUMERIC(8, 6) NOT NULL,
            duration INTEGER NOT NULL,
            start_date TIMESTAMPTZ NOT NULL,
            end_date TIMESTAMPTZ NOT NULL,
            paid_days INTEGER NOT NULL DEFAULT 0,
            total_profit NUMERIC(38, 18) NOT NULL DEFAULT 0,
            last_profit_date TIMESTAMPTZ,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            withdrawn_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_stakes_user_status ON stakes(user_id, status)")

    # --- Wallet ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS transactions (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type VARCHAR(16) NOT NULL,
            amount NUMERIC(38, 18) NOT NULL,
            usdt_amount NUMERIC(38, 18),
            fee NUMERIC(38, 18),
            net_amount NUMERIC(38, 18),
            source VARCHAR(16),
            wallet_address TEXT,
            transaction_hash VARCHAR(66) UNIQUE,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            admin_notes TEXT,
            approved_by INTEGER,
            approved_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_transactions_type ON transactions(type)")
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_transactions_user_created
        ON transactions(user_id, created_at DESC)
    """)

    # --- Activity & Notifications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS activities (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type VARCHAR(32) NOT NULL,
            description TEXT NOT NULL,
            metadata JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_activities_user_created
        ON activities(user_id, created_at DESC)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type VARCHAR(32) NOT NULL,
            title VARCHAR(256) NOT NULL,
            message TEXT NOT NULL,
            action_url VARCHAR(256),
            read BOOLEAN NOT NULL DEFAULT false,
            metadata JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_notifications_user_id ON notifications(user_id)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notifications CASCADE")
    op.execute("DROP TABLE IF EXISTS activities CASCADE")
    op.execute("DROP TABLE IF EXISTS transactions CASCADE")
    op.execute("DROP TABLE IF EXISTS stakes CASCADE")
    op.execute("DROP TABLE IF EXISTS mining_sessions CASCADE")
    op.execute("DROP TABLE IF EXISTS user_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS user_tasks CASCADE")
    op.execute("DROP TABLE IF EXISTS tasks CASCADE")
    op.execute("DROP TABLE IF EXISTS referrals CASCADE")
    op.execute("DROP TABLE IF EXISTS xp_ledger CASCADE")
    op.execute("DROP TABLE IF EXISTS balances CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
