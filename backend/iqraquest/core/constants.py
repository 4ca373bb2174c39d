# backend/iqraquest/core/constants.py
"""Application-wide constants."""

BRAND_NAME = "IqraQuest"

# Well-known financial settings keys
AUTO_PAYOUT_THRESHOLD_KEY = "auto_payout_threshold"

# Payout request id prefixes
AUTO_PAYOUT_REQUEST_PREFIX = "APR"
MANUAL_PAYOUT_REQUEST_PREFIX = "POUT"

AUTO_PAYOUT_NOTE = "Automatic payout request (threshold reached)"

NOTIFICATION_TYPE_PAYOUT = "payout"
NOTIFICATION_SENDER_SYSTEM = "system"

# Generic reason returned to webhook callers for every verification failure
WEBHOOK_UNAUTHORIZED_REASON = "Invalid webhook signature"
