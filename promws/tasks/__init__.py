"""
Subscription engine:
- points.py: backend row + sample -> point record
- subscription_scheduler.py: catch-up, alignment and polling per subscription
- session.py: per-connection subscription ownership and teardown
"""
