import sqlite3
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from marketplace.config import settings


class Base(DeclarativeBase):
    pass


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(db_path: Path | None = None):
    path = db_path or settings.db_path
    engine = create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


engine = get_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Foreign keys between marketplace tables are deliberately left out: parents are
# soft-deleted and their history must outlive them.
SCHEMA_SQL = """\
-- ============================================================
-- ACCOUNTS
-- ============================================================
CREATE TABLE IF NOT EXISTS users (
    id            TEXT PRIMARY KEY,
    email         TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    role          TEXT NOT NULL CHECK(role IN ('creator','business','admin')),
    created_at    TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS auth_sessions (
    token_hash TEXT PRIMARY KEY,
    user_id    TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    expires_at TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_auth_sessions_user ON auth_sessions(user_id);

CREATE TABLE IF NOT EXISTS creators (
    id             TEXT PRIMARY KEY,
    user_id        TEXT UNIQUE,
    name           TEXT NOT NULL,
    email          TEXT,
    bio            TEXT,
    location       TEXT,
    categories     TEXT,
    status         TEXT NOT NULL DEFAULT 'pending'
                   CHECK(status IN ('pending','approved','deactivated')),
    average_rating REAL,
    total_reviews  INTEGER NOT NULL DEFAULT 0,
    created_at     TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS businesses (
    id                     TEXT PRIMARY KEY,
    user_id                TEXT UNIQUE,
    company_name           TEXT NOT NULL,
    email                  TEXT,
    industry               TEXT,
    website                TEXT,
    subscription_status    TEXT NOT NULL DEFAULT 'none'
                           CHECK(subscription_status IN ('none','active','expired','deactivated')),
    subscription_type      TEXT CHECK(subscription_type IN ('monthly','yearly')),
    expires_at             TEXT,
    stripe_customer_id     TEXT,
    stripe_subscription_id TEXT,
    created_at             TEXT NOT NULL
);

-- A subscription pays for exactly one business.
CREATE UNIQUE INDEX IF NOT EXISTS uq_businesses_stripe_sub
    ON businesses(stripe_subscription_id)
    WHERE stripe_subscription_id IS NOT NULL;

CREATE TABLE IF NOT EXISTS auth_throttle (
    key             TEXT PRIMARY KEY,
    failed_attempts INTEGER NOT NULL,
    last_failed_at  REAL NOT NULL
);

-- ============================================================
-- JOBS
-- ============================================================
CREATE TABLE IF NOT EXISTS jobs (
    id                   TEXT PRIMARY KEY,
    business_id          TEXT NOT NULL,
    title                TEXT NOT NULL,
    description          TEXT NOT NULL,
    category             TEXT NOT NULL,
    platforms            TEXT,
    budget_type          TEXT NOT NULL DEFAULT 'fixed' CHECK(budget_type IN ('fixed','hourly')),
    budget_min           REAL,
    budget_max           REAL,
    duration             TEXT,
    experience_level     TEXT,
    application_deadline TEXT,
    status               TEXT NOT NULL DEFAULT 'pending'
                         CHECK(status IN ('pending','open','closed','completed','rejected','deleted')),
    created_at           TEXT NOT NULL,
    updated_at           TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_jobs_business ON jobs(business_id);
CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status);
CREATE INDEX IF NOT EXISTS idx_jobs_category ON jobs(category);

-- ============================================================
-- APPLICATIONS
-- ============================================================
CREATE TABLE IF NOT EXISTS job_applications (
    id                 TEXT PRIMARY KEY,
    job_id             TEXT NOT NULL,
    creator_id         TEXT NOT NULL,
    cover_letter       TEXT NOT NULL,
    proposed_price     REAL NOT NULL,
    estimated_duration TEXT,
    status             TEXT NOT NULL DEFAULT 'pending'
                       CHECK(status IN ('pending','accepted','engaged','completed',
                                        'rejected','withdrawn','cancelled')),
    created_at         TEXT NOT NULL,
    updated_at         TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_applications_job ON job_applications(job_id);
CREATE INDEX IF NOT EXISTS idx_applications_creator ON job_applications(creator_id);
CREATE UNIQUE INDEX IF NOT EXISTS uq_applications_live_pair
    ON job_applications(job_id, creator_id)
    WHERE status NOT IN ('withdrawn','cancelled','rejected');

-- ============================================================
-- INVITATIONS
-- ============================================================
CREATE TABLE IF NOT EXISTS job_invitations (
    id           TEXT PRIMARY KEY,
    job_id       TEXT NOT NULL,
    business_id  TEXT NOT NULL,
    creator_id   TEXT NOT NULL,
    message      TEXT,
    status       TEXT NOT NULL DEFAULT 'pending'
                 CHECK(status IN ('pending','accepted','rejected','cancelled')),
    created_at   TEXT NOT NULL,
    responded_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_invitations_job ON job_invitations(job_id);
CREATE INDEX IF NOT EXISTS idx_invitations_creator ON job_invitations(creator_id);
CREATE INDEX IF NOT EXISTS idx_invitations_business ON job_invitations(business_id);
CREATE UNIQUE INDEX IF NOT EXISTS uq_invitations_pair ON job_invitations(job_id, creator_id);

-- A pending invitation and an application for the same pair never coexist.
-- An accepted invitation is followed by its own engaged application.
CREATE TRIGGER IF NOT EXISTS trg_applications_no_pending_invitation
BEFORE INSERT ON job_applications
WHEN EXISTS (
    SELECT 1 FROM job_invitations
    WHERE job_id = NEW.job_id AND creator_id = NEW.creator_id AND status = 'pending'
)
BEGIN
    SELECT RAISE(ABORT, 'pending invitation exists for this job and creator');
END;

CREATE TRIGGER IF NOT EXISTS trg_invitations_no_application
BEFORE INSERT ON job_invitations
WHEN EXISTS (
    SELECT 1 FROM job_applications
    WHERE job_id = NEW.job_id AND creator_id = NEW.creator_id AND status <> 'withdrawn'
)
BEGIN
    SELECT RAISE(ABORT, 'application exists for this job and creator');
END;

-- ============================================================
-- MESSAGES
-- ============================================================
CREATE TABLE IF NOT EXISTS job_messages (
    id             TEXT PRIMARY KEY,
    application_id TEXT NOT NULL,
    sender_type    TEXT NOT NULL CHECK(sender_type IN ('business','creator')),
    sender_id      TEXT NOT NULL,
    message        TEXT NOT NULL,
    read_at        TEXT,
    created_at     TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_application ON job_messages(application_id, created_at);
CREATE INDEX IF NOT EXISTS idx_messages_unread ON job_messages(application_id, sender_type)
    WHERE read_at IS NULL;

-- ============================================================
-- WEBHOOK LEDGER
-- ============================================================
CREATE TABLE IF NOT EXISTS webhook_events (
    event_id     TEXT PRIMARY KEY,
    event_type   TEXT NOT NULL,
    processed_at TEXT NOT NULL
);

-- ============================================================
-- REVIEWS
-- ============================================================
CREATE TABLE IF NOT EXISTS reviews (
    id               TEXT PRIMARY KEY,
    business_id      TEXT NOT NULL,
    creator_id       TEXT NOT NULL,
    rating           INTEGER NOT NULL CHECK(rating BETWEEN 1 AND 5),
    comment          TEXT,
    status           TEXT NOT NULL DEFAULT 'pending'
                     CHECK(status IN ('pending','approved','rejected')),
    rejection_reason TEXT,
    reply            TEXT,
    reply_date       TEXT,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS uq_reviews_pair ON reviews(business_id, creator_id);
CREATE INDEX IF NOT EXISTS idx_reviews_creator ON reviews(creator_id, status);

-- ============================================================
-- NOTIFICATION MARKERS
-- ============================================================
CREATE TABLE IF NOT EXISTS view_markers (
    user_id        TEXT NOT NULL,
    section        TEXT NOT NULL CHECK(section IN ('invitations','applications')),
    last_viewed_at TEXT NOT NULL,
    PRIMARY KEY (user_id, section)
);

-- ============================================================
-- BOOKMARKS
-- ============================================================
CREATE TABLE IF NOT EXISTS saved_jobs (
    id         TEXT PRIMARY KEY,
    creator_id TEXT NOT NULL,
    job_id     TEXT NOT NULL,
    created_at TEXT NOT NULL,
    UNIQUE(creator_id, job_id)
);

CREATE TABLE IF NOT EXISTS saved_creators (
    id          TEXT PRIMARY KEY,
    business_id TEXT NOT NULL,
    creator_id  TEXT NOT NULL,
    saved_at    TEXT NOT NULL,
    UNIQUE(business_id, creator_id)
);
"""


def init_db(db_path: Path | None = None):
    path = db_path or settings.db_path
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(SCHEMA_SQL)
    finally:
        conn.close()
