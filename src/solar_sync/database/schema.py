
# SQL Schema Definitions for Solar Sync

SCHEMA_VERSION = 1  # Increment when schema changes

# Table: schema_version
# Tracks database schema version for migrations
CREATE_SCHEMA_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT DEFAULT CURRENT_TIMESTAMP,
    description TEXT
);
"""

# Table: vendors
# Vendor accounts, maintained by the CRUD layer; sync only stamps last_synced_at
CREATE_VENDORS_TABLE = """
CREATE TABLE IF NOT EXISTS vendors (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    vendor_type TEXT NOT NULL,
    org_id INTEGER NOT NULL,
    credentials TEXT NOT NULL DEFAULT '{}',  -- JSON stored as text
    is_active INTEGER NOT NULL DEFAULT 1,
    api_base_url TEXT,
    plant_sync_mode TEXT,
    per_plant_sync_interval_minutes INTEGER DEFAULT 15,
    plant_sync_time_ist TEXT DEFAULT '02:00',
    telemetry_sync_mode TEXT,
    telemetry_sync_interval INTEGER,
    last_synced_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

# Table: plants
# plant_key is "{vendor_id}#{vendor_plant_id}", the plant identity
CREATE_PLANTS_TABLE = """
CREATE TABLE IF NOT EXISTS plants (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    plant_key TEXT NOT NULL UNIQUE,
    org_id INTEGER NOT NULL,
    vendor_id INTEGER NOT NULL,
    vendor_plant_id TEXT NOT NULL,
    name TEXT NOT NULL,
    capacity_kw REAL NOT NULL DEFAULT 0,
    location_lat REAL,
    location_lng REAL,
    location_address TEXT,
    current_power_kw REAL,
    daily_energy_kwh REAL,
    monthly_energy_mwh REAL,
    yearly_energy_mwh REAL,
    total_energy_mwh REAL,
    is_online INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    last_update_time TEXT,
    last_refreshed_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (vendor_id, vendor_plant_id)
);
"""

# Table: alerts
# sort_key is "{alert_time_iso}#{id}" for newest-first reads per plant;
# dedup_pk/dedup_sk form the (vendor, plant, vendor alert) lookup path
CREATE_ALERTS_TABLE = """
CREATE TABLE IF NOT EXISTS alerts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    plant_id INTEGER NOT NULL,
    vendor_id INTEGER NOT NULL,
    vendor_plant_id TEXT NOT NULL,
    vendor_alert_id TEXT,
    title TEXT NOT NULL,
    description TEXT,
    severity TEXT NOT NULL,
    status TEXT NOT NULL,
    alert_time TEXT NOT NULL,
    alert_date TEXT NOT NULL,
    end_time TEXT,
    grid_down_seconds INTEGER,
    grid_down_benefit_kwh REAL,
    ttl INTEGER NOT NULL,
    sort_key TEXT,
    dedup_pk TEXT NOT NULL,
    dedup_sk TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

# Table: vendor_tokens
# Latest cached access token per vendor; superseded on refresh, never deleted
CREATE_VENDOR_TOKENS_TABLE = """
CREATE TABLE IF NOT EXISTS vendor_tokens (
    vendor_id INTEGER PRIMARY KEY,
    access_token TEXT NOT NULL,
    token_expires_at TEXT NOT NULL,
    token_metadata TEXT,  -- JSON stored as text
    updated_at TEXT NOT NULL
);
"""

CREATE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_vendors_org ON vendors(org_id);",
    "CREATE INDEX IF NOT EXISTS idx_plants_org ON plants(org_id);",
    "CREATE INDEX IF NOT EXISTS idx_plants_vendor ON plants(vendor_id);",
    "CREATE INDEX IF NOT EXISTS idx_alerts_plant_sort ON alerts(plant_id, sort_key DESC);",
    "CREATE INDEX IF NOT EXISTS idx_alerts_date ON alerts(alert_date);",
    "CREATE INDEX IF NOT EXISTS idx_alerts_dedup ON alerts(dedup_pk, dedup_sk);",
]

ALL_TABLES = [
    CREATE_SCHEMA_VERSION_TABLE,  # Must be first for migrations to work
    CREATE_VENDORS_TABLE,
    CREATE_PLANTS_TABLE,
    CREATE_ALERTS_TABLE,
    CREATE_VENDOR_TOKENS_TABLE,
]

# Migration definitions
# Each migration is a tuple: (version, description, list of SQL statements)
# Migrations are applied in order for versions > current db version
MIGRATIONS = [
    # Version 1: Initial schema (no migration needed, tables created via ALL_TABLES)
    (1, "Initial schema", []),
]
