from sentry_sdk import capture_exception, capture_message, configure_scope


def log_error(e, base_error=None, message=None):
    """Captures an exception with the sentry sdk.

    Arguments:
        e (Exception)
        base_error (Exception) -- Exception that triggered e
        message (str) -- Optional message for additional info
    """
    from hackhub.settings import PRODUCTION

    if not PRODUCTION:
        print(base_error, message)

    with configure_scope() as scope:
        if base_error is not None:
            scope.set_extra("base_error", str(base_error))
        if message is not None:
            scope.set_extra("message", message)
        capture_exception(e)


def log_info(message, error=None, extra=None):
    """Captures a message with the sentry sdk.

    Arguments:
        message (str)
        error (obj) -- Optional error to send with the message
        extra (dict) -- Optional key/values attached to the event
    """
    from hackhub.settings import PRODUCTION

    if not PRODUCTION:
        print(message, error)

    with configure_scope() as scope:
        if error is not None:
            scope.set_extra("error", error)
        for key, value in (extra or {}).items():
            scope.set_extra(key, value)
        capture_message(message)
