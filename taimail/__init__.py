"""
TAI mail agent core.

Keeps an authenticated session against the TAI mail service and watches
the instance mailbox for new messages:
- Logs in and refreshes the bearer token before it expires
- Retries a request once when the server rejects the token
- Polls the inbox and hands each new message to a handler exactly once
"""
