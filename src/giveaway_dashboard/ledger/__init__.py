"""External ledger webhook for confirmed wins."""
