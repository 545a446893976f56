"""Store table names for the reward engine and the position ledger."""

# Volume ledger
TRADER_VOLUME_TABLE = "rewards:trader_volume"   # (season, trader) -> int
MARKET_VOLUME_TABLE = "rewards:market_volume"   # season -> int

# Reward accrual engine
SNAPSHOT_TABLE = "rewards:snapshot"             # (trader, season) -> int
ACCRUAL_TABLE = "rewards:accrual"               # trader -> AccrualState
ENGINE_CONFIG_TABLE = "rewards:config"          # "ledger_address" -> str

# Position & balance ledger
COLLATERAL_TABLE = "ledger:collateral"          # trader -> int
POSITION_TABLE = "ledger:position"              # trader -> Position
