"""SlotSwap - trade calendar slots with other users"""
