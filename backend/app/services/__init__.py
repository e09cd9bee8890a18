"""
Business logic used by the routers.

- access: who may take which package
- package_service: package and question management, catalogue views
- tryout_engine: session lifecycle, scoring, review and history
- voucher_service: voucher validation, pricing and redemption
- payment_service: purchases, gateway status and completion side effects
- midtrans: payment gateway HTTP client
- mentor_service: mentor applications, earnings and withdrawals
- chat_service: chat rooms and messages
- ranking: per-package leaderboard
"""
