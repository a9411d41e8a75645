"""
Credential and session lifecycle core.

Modules:
- codec:           signed JWT issue/decode
- token_store:     persisted single-use token records
- credentials:     argon2 password hashing
- accounts:        account lookups and mutations
- notifications:   activation / reset email dispatch
- session_manager: register, activate, login, refresh, logout, reset
- gate:            bearer-token authentication and the connection variant
- registry:        live connections per subject
"""
