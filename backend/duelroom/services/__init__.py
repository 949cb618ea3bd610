"""Room domain services: lobby lifecycle, duel drawing and the card catalog.

Nothing here knows about HTTP or Socket.IO; the blueprints and socket
handlers call into these modules.
"""
