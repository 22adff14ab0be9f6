import contextlib
import errno
import fcntl
import logging
import termios

import typeguard

log = logging.getLogger("uart_bridge.locking")


@contextlib.contextmanager
@typeguard.typechecked
def using_fd_lock(port: str, fd: int):
    """Claims exclusive use of an open tty for the life of the context.

    Raises OSError(EBUSY) if another process holds the flock; failures
    of TIOCEXCL itself are only logged (not all ttys support it).
    """

    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        log.debug("Acquired flock(LOCK_EX) on %s", port)
    except BlockingIOError as exc:
        message = "Serial port busy (flock claimed)"
        raise OSError(errno.EBUSY, message, port) from exc
    except OSError:
        log.warning("Can't lock (flock) %s", port, exc_info=True)

    try:
        fcntl.ioctl(fd, termios.TIOCEXCL)
        log.debug("Acquired TIOCEXCL on %s", port)
    except OSError:
        log.warning("Can't lock (TIOCEXCL) %s", port, exc_info=True)

    try:
        yield
    finally:
        try:
            fcntl.ioctl(fd, termios.TIOCNXCL)
            log.debug("Released TIOCEXCL on %s", port)
        except OSError:
            log.warning("Can't release TIOCEXCL on %s", port, exc_info=True)

        try:
            fcntl.flock(fd, fcntl.LOCK_UN | fcntl.LOCK_NB)
            log.debug("Released flock on %s", port)
        except OSError:
            log.warning("Can't release flock on %s", port, exc_info=True)
