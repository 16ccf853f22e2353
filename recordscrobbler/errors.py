"""
Exception hierarchy shared by the collaborators and the orchestrator.

Parse problems never raise (they fall back to defaults) and not-found lookups
return empty states, so everything here is either a transport/backend failure
or a misuse of the submission flow.
"""


class ScrobblerError(Exception): ...

# Backend / transport
class BackendError(ScrobblerError): ...
class NotFoundError(BackendError): ...
class SessionNotFoundError(NotFoundError): ...
class BatchValidationError(ScrobblerError): ...

# Submission flow
class ScrobbleInProgressError(ScrobblerError): ...

# Last.fm, so callers can branch
class LastFMAuthError(ScrobblerError): ...
class LastFMRateLimitError(ScrobblerError): ...
class LastFMNetworkError(ScrobblerError): ...
class LastFMUnknownError(ScrobblerError): ...
