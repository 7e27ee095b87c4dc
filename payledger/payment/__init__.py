"""Payment webhook processing.

- Inbound payload schema and status rule (``domain``)
- Invoice/payment repository (``infrastructure``)
- Transactional payment service and sequential event queue (``application``)
- Prometheus metrics (``metrics``)
"""
