"""
Unit Tests Package for ParkSystem

Tests for the pure engine modules (plates, pricing, spaces, subscriptions,
identifiers) and the DTO / messaging building blocks, each in isolation.
"""
