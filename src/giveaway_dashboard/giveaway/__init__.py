"""Giveaway core: entrants, chat buffer, session ledger and the state machine."""
