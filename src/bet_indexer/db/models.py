"""SQLite database schema."""

SCHEMA = """
-- Single-row checkpoint: highest block whose events were fully processed
CREATE TABLE IF NOT EXISTS app_state (
    id INTEGER PRIMARY KEY,
    last_processed_block INTEGER NOT NULL
);

-- Decoded BetPlace events; numeric payload values are exact decimal text
CREATE TABLE IF NOT EXISTS bet_placed (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    bet BOOLEAN NOT NULL,
    amount TEXT NOT NULL,
    has_claimed BOOLEAN NOT NULL,
    claimable_amount TEXT NOT NULL,
    no_probability TEXT NOT NULL,
    yes_probability TEXT NOT NULL,
    user_address TEXT,
    block_number INTEGER NOT NULL,
    transaction_hash TEXT NOT NULL,
    from_address TEXT NOT NULL,
    contract_address TEXT,
    profile_version TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (block_number, transaction_hash)
);

CREATE INDEX IF NOT EXISTS idx_bet_placed_tx ON bet_placed(transaction_hash);
CREATE INDEX IF NOT EXISTS idx_bet_placed_contract ON bet_placed(contract_address);
"""

CHECKPOINT_ID = 1
