"""
Room Gateway Components.

- core/       - Foundational components (constants, errors, log sanitising)
- connection/ - Transport, heartbeat and rate limiting
- protocol/   - Message catalog, validation and routing
- session/    - Players, rooms, membership index and registry
- endpoints/  - WebSocket endpoint

Import from the specific submodules.
"""
