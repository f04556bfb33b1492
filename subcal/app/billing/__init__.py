"""
billing — Billing-due detection and reminder dispatch.

Sub-modules:
    channels/             — Per-channel delivery transports (email, Telegram)
    due_date_matcher      — Which subscriptions bill on today + N days
    rendering             — Email and chat message templates
    dispatcher            — Multi-channel fan-out with per-channel outcomes
    notification_service  — Entry points used by the HTTP layer
    models                — Data structures shared across the package
"""
