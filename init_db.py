"""Print the Supabase schema for TryXpert and optionally check the tables exist."""
import argparse
import logging

from tryxpert.config import configure_logging

logger = logging.getLogger(__name__)

TABLES = ("tryouts", "questions", "submissions")

SCHEMA_SQL = """
-- Tryouts (availability window + duration in minutes, -1 = unlimited)
CREATE TABLE IF NOT EXISTS tryouts (
    id BIGSERIAL PRIMARY KEY,
    title TEXT NOT NULL,
    subject TEXT NOT NULL,
    start_date TIMESTAMPTZ NOT NULL,
    end_date TIMESTAMPTZ NOT NULL,
    duration INT NOT NULL DEFAULT -1 CHECK (duration = -1 OR duration BETWEEN 1 AND 1440),
    difficulty VARCHAR(10) NOT NULL CHECK (difficulty IN ('Easy', 'Medium', 'Hard')),
    participants INT NOT NULL DEFAULT 0 CHECK (participants >= 0),
    description TEXT,
    syllabus JSONB DEFAULT '[]',
    features JSONB DEFAULT '[]',
    image_url TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW(),
    CHECK (start_date < end_date)
);

-- Questions, ordered 1..N within a tryout
CREATE TABLE IF NOT EXISTS questions (
    id BIGSERIAL PRIMARY KEY,
    tryout_id BIGINT NOT NULL REFERENCES tryouts(id) ON DELETE CASCADE,
    question_text TEXT NOT NULL,
    question_type VARCHAR(20) NOT NULL CHECK (question_type IN ('multiple_choice', 'true_false', 'essay')),
    options JSONB,
    correct_answer TEXT NOT NULL,
    explanation TEXT,
    points INT NOT NULL DEFAULT 1 CHECK (points >= 1),
    order_number INT NOT NULL DEFAULT 0,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Final submissions
CREATE TABLE IF NOT EXISTS submissions (
    id BIGSERIAL PRIMARY KEY,
    tryout_id BIGINT NOT NULL REFERENCES tryouts(id) ON DELETE CASCADE,
    user_id TEXT NOT NULL,
    start_time TIMESTAMPTZ NOT NULL,
    end_time TIMESTAMPTZ NOT NULL,
    time_taken_seconds INT NOT NULL,
    answers JSONB NOT NULL,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_tryouts_start_date ON tryouts(start_date);
CREATE INDEX IF NOT EXISTS idx_questions_tryout_id ON questions(tryout_id, order_number);
CREATE INDEX IF NOT EXISTS idx_submissions_tryout_id ON submissions(tryout_id);
"""


def check_tables() -> bool:
    from db import get_supabase_uncached

    client = get_supabase_uncached()
    ok = True
    for table in TABLES:
        try:
            response = client.table(table).select("id").limit(1).execute()
            logger.info("✓ %s table exists (rows: %d)", table, len(response.data or []))
        except Exception as e:
            logger.error("✗ %s: %s", table, e)
            ok = False
    return ok


if __name__ == "__main__":
    configure_logging()
    parser = argparse.ArgumentParser(description="Print the TryXpert schema for the Supabase SQL Editor.")
    parser.add_argument("--check", action="store_true", help="Also check the tables exist (needs SUPABASE_URL/KEY)")
    args = parser.parse_args()
    print("Run this SQL in Supabase SQL Editor (app.supabase.com > SQL Editor > New Query):")
    print(SCHEMA_SQL)
    if args.check and not check_tables():
        raise SystemExit(1)
