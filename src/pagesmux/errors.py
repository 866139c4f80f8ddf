class RouterError(Exception):
    """Base class for errors raised while dispatching a request."""


class DoubleInvocationError(RouterError):
    """A handler called its ``next()`` continuation more than once."""

    def __init__(self, msg: str = "next() called multiple times") -> None:
        super().__init__(msg)


class BodyConsumedError(RouterError):
    """A streamed request body was read after it had already been consumed."""

    def __init__(self, msg: str = "request body stream already consumed") -> None:
        super().__init__(msg)
