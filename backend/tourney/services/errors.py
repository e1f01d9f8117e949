"""
Error taxonomy shared by the bracket and match services.

Generation errors abort the whole bracket; lifecycle errors abort the single
operation and leave the match untouched. Routes translate these into HTTP
responses; services never swallow them.
"""


class TournamentCoreError(Exception):
    """Base exception for bracket and match lifecycle errors"""
    pass


# Generation-time


class InsufficientParticipants(TournamentCoreError):
    """Fewer than two entrants"""
    pass


class UnsupportedParticipantCount(TournamentCoreError):
    """Entrant count the chosen format cannot handle"""
    pass


class InvalidSeeding(TournamentCoreError):
    """Manual seeds are not exactly 1..N"""
    pass


# Lifecycle-time


class NotFound(TournamentCoreError):
    pass


class InvalidState(TournamentCoreError):
    """Operation not allowed from the current status"""
    pass


class NotParticipant(TournamentCoreError):
    pass


class SelfConfirmation(TournamentCoreError):
    """A player tried to confirm their own report"""
    pass


class InvalidScore(TournamentCoreError):
    pass
