"""Delivery bookkeeping shared by every output: counters and metric emission."""
