"""
Business logic for the Lucky Triple backend.

- auth_service: signup, login, admin provisioning
- game_service: wager settlement and history
- withdrawal_service: withdrawal request/approve/reject workflow
- payment_service: inbound deposit callbacks
- admin_service: credits, game settings, SMS broadcasts, dashboard stats
- notification_service: SMS outbox queue and dispatcher
- payloqa_client: Payloqa SMS API client
"""
