# Trust and device-coordination logic, independent of the HTTP layer:
# - Bearer tokens, password hashing and request authentication
# - Per-client rate limiting
# - The per-box command mailbox polled by devices
