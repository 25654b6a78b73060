"""
Integration Tests Package for ParkSystem

These tests drive ParkingService end to end against the in-memory, SQLite
and mocked Redis stores:
1. Entry / exit workflow and fee breakdowns
2. Space pool transitions and role gating
3. Monthly subscriptions
4. Snapshot persistence round trips
5. Reports, exports and the operator console
"""
