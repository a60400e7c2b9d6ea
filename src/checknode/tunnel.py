"""
Ephemeral port-forward tunnels into cluster services.

Nodes run behind Kubernetes services that are not reachable from outside
the cluster. A check reaches a node through `kubectl port-forward`, which
binds a local port and relays every connection to the remote service.

Lifecycle
---------
1. **Open**: Check that the local port is free, spawn the forwarder and wait
   until the port accepts connections. The wait is a bounded readiness
   probe, not a fixed sleep. A port already taken by another process fails
   the check up front, before anything is spawned.
2. **Use**: RPC calls go to `127.0.0.1:<local_port>`. The forwarder's output
   is drained in the background. Its stderr lines are logged as warnings but
   never abort the check: kubectl prints warnings unrelated to connectivity.
3. **Close**: Terminate this tunnel's own process. SIGTERM first, SIGKILL
   after a grace period. Closing is idempotent.

Isolation
---------
Several checks run at the same time, each with its own tunnel. A tunnel is
closed through its own process handle, never by process name, so closing
one tunnel cannot tear down another.
"""

from __future__ import annotations

import asyncio
import logging
import socket
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from checknode.config import CHECKNODE_KUBECTL, CheckSettings
from checknode.errors import TunnelError
from checknode.models import NodeTarget

logger = logging.getLogger(__name__)

LOCAL_HOST = "127.0.0.1"
"""Interface the forwarder binds."""

PIPE_LIMIT = 1 << 20
"""Longest forwarder output line read whole. Longer lines are skipped."""


def ensure_port_free(chain: str, port: int) -> None:
    """
    Fail if another process listens on a local port.

    Raises:
        TunnelError: If the port cannot be bound.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        # Connections lingering in TIME_WAIT do not make the port busy.
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((LOCAL_HOST, port))
        except OSError as e:
            raise TunnelError(chain, f"Local port {port} is already in use: {e}") from e


async def read_lines(stream: asyncio.StreamReader) -> AsyncIterator[str]:
    """
    Yield decoded, stripped lines until EOF.

    A line longer than the stream limit is dropped and reading continues.
    """
    while True:
        try:
            raw = await stream.readline()
        except ValueError:
            # readline() already discarded the oversized chunk.
            continue
        if not raw:
            return
        yield raw.decode(errors="replace").rstrip()


@dataclass(slots=True)
class Tunnel:
    """A live port-forward for one node."""

    target: NodeTarget
    """The node the tunnel reaches."""

    local_port: int
    """Local port relayed to the remote service."""

    process: asyncio.subprocess.Process
    """The forwarder process. Owned exclusively by this tunnel."""

    errors: list[str] = field(default_factory=list)
    """Lines the forwarder wrote to stderr, in arrival order."""

    closed: bool = False
    """Whether the tunnel was closed."""

    _drains: list[asyncio.Task[None]] = field(default_factory=list, init=False)
    """Background tasks draining the forwarder's output."""

    @property
    def chain(self) -> str:
        """Chain identifier of the target node."""
        return self.target.chain

    @property
    def local_url(self) -> str:
        """Base URL of the local end of the tunnel."""
        return f"http://{LOCAL_HOST}:{self.local_port}"

    @property
    def rpc_url(self) -> str:
        """URL of the node's JSON-RPC endpoint through the tunnel."""
        return f"{self.local_url}{self.target.rpc_path}"

    @property
    def is_alive(self) -> bool:
        """Check if the forwarder is still running."""
        return not self.closed and self.process.returncode is None

    def ensure_alive(self) -> None:
        """
        Fail if the forwarder died after the tunnel was established.

        Raises:
            TunnelError: If the tunnel is closed or its process exited.
        """
        if self.closed:
            raise TunnelError(self.chain, "Tunnel is closed")
        if self.process.returncode is not None:
            detail = f"; last error: {self.errors[-1]}" if self.errors else ""
            raise TunnelError(
                self.chain,
                f"Port forward exited with code {self.process.returncode}{detail}",
            )


@dataclass(slots=True)
class TunnelManager:
    """Opens and closes port-forward tunnels."""

    settings: CheckSettings = field(default_factory=CheckSettings)
    """Readiness and teardown timings."""

    kubectl: str = CHECKNODE_KUBECTL
    """kubectl binary."""

    def build_command(self, target: NodeTarget, local_port: int) -> list[str]:
        """Command line of the forwarder for a target."""
        return [
            self.kubectl,
            "port-forward",
            f"service/{target.service}",
            f"{local_port}:{target.port}",
            "--namespace",
            target.namespace,
        ]

    async def open(self, target: NodeTarget, local_port: int) -> Tunnel:
        """
        Start a forwarder and wait until it accepts connections.

        Args:
            target: Node to reach.
            local_port: Local port to bind. Must not be used by another open tunnel.

        Returns:
            The ready tunnel.

        Raises:
            TunnelError: If the local port is taken, the forwarder cannot start,
                exits early, or does not become ready within `ready_timeout`.
        """
        ensure_port_free(target.chain, local_port)

        command = self.build_command(target, local_port)
        logger.debug("Starting port forward for %s: %s", target.chain, " ".join(command))

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=PIPE_LIMIT,
            )
        except OSError as e:
            raise TunnelError(target.chain, f"Cannot start port forward: {e}") from e

        tunnel = Tunnel(target=target, local_port=local_port, process=process)

        # Drain both pipes for the whole tunnel lifetime.
        #
        # An undrained pipe fills up and blocks the forwarder.
        tunnel._drains.append(asyncio.create_task(self._drain_stderr(tunnel)))
        tunnel._drains.append(asyncio.create_task(self._drain_stdout(tunnel)))

        try:
            await self._wait_ready(tunnel)
        except BaseException:
            await self.close(tunnel)
            raise

        logger.debug("Port forward for %s ready on %s", target.chain, tunnel.local_url)
        return tunnel

    async def close(self, tunnel: Tunnel) -> None:
        """
        Terminate the tunnel's forwarder.

        Idempotent. Only this tunnel's process is signalled.
        """
        if tunnel.closed:
            return
        tunnel.closed = True

        process = tunnel.process
        if process.returncode is None:
            try:
                process.terminate()
                try:
                    await asyncio.wait_for(process.wait(), timeout=self.settings.terminate_timeout)
                except TimeoutError:
                    logger.warning(
                        "Port forward for %s ignored SIGTERM, killing pid %d",
                        tunnel.chain,
                        process.pid,
                    )
                    process.kill()
                    await process.wait()
            except ProcessLookupError:
                # Exited between the returncode check and the signal.
                pass

        # The pipes reach EOF once the process is gone.
        #
        # Cancel anyway so a stuck reader cannot outlive the tunnel.
        for task in tunnel._drains:
            task.cancel()
        await asyncio.gather(*tunnel._drains, return_exceptions=True)
        tunnel._drains.clear()

        logger.debug("Port forward for %s closed (pid %d)", tunnel.chain, process.pid)

    @asynccontextmanager
    async def forward(self, target: NodeTarget, local_port: int) -> AsyncIterator[Tunnel]:
        """
        Scope a tunnel to a block.

        The tunnel is closed exactly once when the block exits, whichever way
        it exits.
        """
        tunnel = await self.open(target, local_port)
        try:
            yield tunnel
        finally:
            await self.close(tunnel)

    async def _wait_ready(self, tunnel: Tunnel) -> None:
        """Probe the local port until it accepts a connection."""
        deadline = time.monotonic() + self.settings.ready_timeout
        last_error: OSError | None = None

        while True:
            if tunnel.process.returncode is not None:
                # The pipes hit EOF once the process is gone.
                # Let the drains record why it died before reporting.
                await asyncio.wait(tunnel._drains, timeout=self.settings.probe_interval)
                tunnel.ensure_alive()

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TunnelError(
                    tunnel.chain,
                    f"Port forward not ready after {self.settings.ready_timeout}s: {last_error}",
                )

            try:
                _, writer = await asyncio.wait_for(
                    asyncio.open_connection(LOCAL_HOST, tunnel.local_port),
                    timeout=remaining,
                )
            except OSError as e:
                last_error = e
                await asyncio.sleep(min(self.settings.probe_interval, remaining))
                continue

            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

            if tunnel.process.returncode is None:
                return

    async def _drain_stderr(self, tunnel: Tunnel) -> None:
        """Log forwarder stderr as non-fatal warnings."""
        assert tunnel.process.stderr is not None
        async for line in read_lines(tunnel.process.stderr):
            if line:
                tunnel.errors.append(line)
                logger.warning("Port forwarding error for %s: %s", tunnel.chain, line)

    async def _drain_stdout(self, tunnel: Tunnel) -> None:
        """Log forwarder stdout at debug level."""
        assert tunnel.process.stdout is not None
        async for line in read_lines(tunnel.process.stdout):
            if line:
                logger.debug("Port forward %s: %s", tunnel.chain, line)
