from __future__ import annotations


class NetworkUpdateState:
    """Networks whose token list refresh has been triggered in this process.

    A network is marked before its refresh starts and unmarked when the refresh
    fails, so the next read of that network triggers a new attempt.
    """

    def __init__(self) -> None:
        self._attempted: set[int] = set()

    def mark(self, network_id: int) -> None:
        self._attempted.add(network_id)

    def unmark(self, network_id: int) -> None:
        self._attempted.discard(network_id)

    def __contains__(self, network_id: object) -> bool:
        return network_id in self._attempted
