"""Slot domain - The slot store and owner-facing slot operations"""
