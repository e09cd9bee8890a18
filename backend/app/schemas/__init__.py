"""
Pydantic request/response schemas.

- auth: registration, login token, profile and password changes
- package: package and question payloads
- tryout: answer submission
- payment: purchase requests and gateway notifications
- voucher: voucher validation and admin CRUD
- mentor: mentor applications and withdrawals
- chat: rooms and messages
- admin: settings updates and status actions
"""
