"""
API routes grouped by endpoint family.

- auth: signup, login, me
- payments: inbound payment provider callback
- withdrawals: player withdrawal requests
- game: play, history, settings
- admin: account management, withdrawal approvals, settings, SMS, stats
"""
