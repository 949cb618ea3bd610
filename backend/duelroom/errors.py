"""Error kinds raised by the session core.

Every error carries a short stable ``code`` that the socket layer may send to
a client; the message is for logs only.
"""


class DuelRoomError(Exception):
    code = 'error'


class InvalidCode(DuelRoomError):
    code = 'invalid_code'


class InvalidPassword(DuelRoomError):
    code = 'invalid_password'


class SessionNotFound(DuelRoomError):
    code = 'session_not_found'

    def __init__(self, session_id):
        super().__init__(f"session {session_id!r} does not exist")
        self.session_id = session_id


class InvalidToken(DuelRoomError):
    code = 'invalid_token'


class InvalidSignature(InvalidToken):
    code = 'invalid_signature'


class MalformedToken(InvalidToken):
    code = 'malformed_token'


class ExternalFetchFailure(DuelRoomError):
    code = 'card_fetch_failed'


class NoActiveDuel(DuelRoomError):
    code = 'no_active_duel'


class NotEnoughPlayers(DuelRoomError):
    code = 'not_enough_players'


class DuelInProgress(DuelRoomError):
    code = 'duel_in_progress'


class InvalidCardSlot(DuelRoomError):
    code = 'invalid_card_slot'


class NotAuthorized(DuelRoomError):
    code = 'not_authorized'


class UnknownMember(DuelRoomError):
    code = 'unknown_member'


class ListenerLimitExceeded(DuelRoomError):
    code = 'listener_limit'


class CodeSpaceExhausted(DuelRoomError):
    code = 'code_space_exhausted'
