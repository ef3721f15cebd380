# service/supervisor_service.py
import asyncio
import os
import signal
from typing import Dict, Mapping, Optional, Sequence
from core.timer import PeriodicTask
from service.snapshot_lifecycle_service import SnapshotLifecycleManager
from util.functions import exit_code_from_returncode
import logging

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class BackendSupervisor:
    """
    Runs the wrapped backend server as a child process around the snapshot lifecycle.

    Sequence:
      prepare + restore -> start periodic snapshots -> launch child ->
      wait for child exit or SIGTERM/SIGINT ->
      stop timer -> forward signal, wait for child -> final snapshot -> child's exit code
    """

    def __init__(
        self,
        command: Sequence[str],
        manager: SnapshotLifecycleManager,
        *,
        env: Optional[Mapping[str, str]] = None,
        install_signal_handlers: bool = True,
    ) -> None:
        if not command:
            raise ValueError("backend command is required")
        self._command = list(command)
        self._manager = manager
        self._env = env
        self._install_signal_handlers = install_signal_handlers
        self._shutdown = asyncio.Event()
        self._signal: Optional[signal.Signals] = None
        self._timer = PeriodicTask(
            manager.context.interval_seconds,
            lambda: manager.snapshot("periodic"),
            name="snapshot",
        )
        self.process: Optional[asyncio.subprocess.Process] = None

    def request_shutdown(self, sig: signal.Signals = signal.SIGTERM) -> None:
        if self._shutdown.is_set():
            return
        logger.info("Received %s; stopping backend server", sig.name)
        self._signal = sig
        self._shutdown.set()

    def _child_env(self) -> Dict[str, str]:
        env = dict(self._env if self._env is not None else os.environ)
        env["SERENA_HOME"] = str(self._manager.context.state_dir)
        return env

    def _prepare_state(self) -> None:
        state_dir = self._manager.context.state_dir
        state_dir.mkdir(parents=True, exist_ok=True)
        self._manager.prepare()
        self._manager.restore()
        # restore may have swapped the directory out; make sure it exists either way
        state_dir.mkdir(parents=True, exist_ok=True)

    async def run(self) -> int:
        """
        Returns the child's exit status (128 + N when it died from signal N).
        Raises SnapshotFatalError before launching anything when strict restore fails.
        """
        await asyncio.to_thread(self._prepare_state)

        loop = asyncio.get_running_loop()
        installed = []
        if self._install_signal_handlers:
            for sig in SHUTDOWN_SIGNALS:
                loop.add_signal_handler(sig, self.request_shutdown, sig)
                installed.append(sig)

        try:
            if self._manager.active:
                self._timer.start()
            logger.info(
                "Starting backend server with local SERENA_HOME=%s",
                self._manager.context.state_dir,
            )
            self.process = await asyncio.create_subprocess_exec(
                *self._command, env=self._child_env()
            )
            returncode = await self._wait_for_exit_or_shutdown(self.process)
        finally:
            # No new snapshot may start once shutdown begins.
            await self._timer.stop()
            for sig in installed:
                loop.remove_signal_handler(sig)

        logger.info("Backend server exited with code %d", returncode)
        await asyncio.to_thread(self._manager.snapshot, "shutdown")
        status = self._manager.describe()
        logger.info(
            "snapshot.final state=%s last=%s error=%s",
            status["state"],
            status["lastSnapshot"],
            status["lastError"],
        )
        return exit_code_from_returncode(returncode)

    async def _wait_for_exit_or_shutdown(self, proc: asyncio.subprocess.Process) -> int:
        exited = asyncio.create_task(proc.wait())
        shutdown = asyncio.create_task(self._shutdown.wait())
        try:
            await asyncio.wait({exited, shutdown}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            shutdown.cancel()

        if not exited.done():
            await self._timer.stop()
            sig = self._signal or signal.SIGTERM
            try:
                proc.send_signal(sig)
            except ProcessLookupError:
                pass
            await exited
        return exited.result()
