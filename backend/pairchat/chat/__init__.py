"""Real-time one-to-one chat over WebSockets.

Components:
    - registry: SessionRegistry (connection <-> user maps)
    - presence: PresencePublisher (online/offline transitions)
    - routing: MessageRouter (persist + fan out)
    - receipts: ReadReceiptPropagator (bulk mark-read + notify)
    - gateway: ChatGateway (connection lifecycle, event dispatch)
    - router: FastAPI WebSocket and history endpoints
"""
