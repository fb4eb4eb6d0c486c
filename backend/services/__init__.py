"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP/WebSocket layer.

Modules:
    - ride_management: Ride lifecycle operations and public tracking
    - matching: Nearest-driver search and the offer/accept handshake
    - pricing: Zone lookup and the tariff cascade
    - routing: Geocoding and route estimation with provider fallback
    - notifications: WhatsApp messages and chat history
    - exceptions: Error taxonomy shared by all services
"""
