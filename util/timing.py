# util/timing.py
import time
from contextlib import contextmanager
from typing import Any, Iterator
import logging


@contextmanager
def timed(logger: logging.Logger, name: str, /, **kv: Any) -> Iterator[None]:
    """
    Usage:
      with timed(logger, "snapshot.upload", name=snapshot_name):
          ...
    Emits one line on exit:
      INFO    "<name>.done ms=<int> key=val ..."   on success
      WARNING "<name>.failed ms=<int> err=<Type> key=val ..."   when the block raises
    The exception itself is re-raised untouched.
    """
    t0 = time.perf_counter()
    suffix = "".join(f" {k}={v}" for k, v in kv.items())
    try:
        yield
    except BaseException as e:
        dt_ms = int((time.perf_counter() - t0) * 1000)
        logger.warning("%s.failed ms=%d err=%s%s", name, dt_ms, type(e).__name__, suffix)
        raise
    dt_ms = int((time.perf_counter() - t0) * 1000)
    logger.info("%s.done ms=%d%s", name, dt_ms, suffix)
