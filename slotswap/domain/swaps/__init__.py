"""Swap domain - Swap ledger and the swap negotiation state machine"""
