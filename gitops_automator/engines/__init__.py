"""Reconciliation engines: locator → resolver → change collector → reconciler."""
