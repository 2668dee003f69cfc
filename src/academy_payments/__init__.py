"""Academy Payments: payment lifecycle and gateway webhook reconciliation.

Creates payment intents with an external gateway, keeps the authoritative
payment state locally, and reconciles it against at-least-once, possibly
reordered webhook deliveries.
"""
