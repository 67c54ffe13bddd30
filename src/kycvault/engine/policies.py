"""Deposit policies: the time window and the cap on non-KYC commitments."""

from dataclasses import dataclass

from .errors import InvalidArgument


@dataclass
class DepositWindow:
    """Inclusive [start, end] interval during which deposits are accepted.

    An unconfigured window is never open.
    """
    start: int = 0
    end: int = 0
    configured: bool = False

    def is_open(self, now: int) -> bool:
        return self.configured and self.start <= now <= self.end

    def has_started(self, now: int) -> bool:
        return self.configured and now >= self.start

    def update(self, start: int, end: int, now: int) -> None:
        """
        Set the window bounds.

        Before the window starts both bounds may change, and the new window
        must lie entirely in the future. Once it has started only the end may
        move, and not into the past.

        Args:
            start: Window start timestamp
            end: Window end timestamp
            now: Current clock reading

        Raises:
            InvalidArgument: If the bounds are malformed for the current stage
        """
        if self.has_started(now):
            if start != self.start:
                raise InvalidArgument(
                    "start", f"window already started at {self.start}; start cannot change", start
                )
            if end <= self.start:
                raise InvalidArgument("end", f"end must be after start {self.start}", end)
            if end < now:
                raise InvalidArgument("end", f"end must not be in the past (now={now})", end)
        else:
            if start <= now:
                raise InvalidArgument("start", f"start must be in the future (now={now})", start)
            if end <= start:
                raise InvalidArgument("end", f"end must be after start {start}", end)
        self.start = start
        self.end = end
        self.configured = True

    def snapshot(self) -> tuple:
        return self.start, self.end, self.configured

    def restore(self, snapshot: tuple) -> None:
        self.start, self.end, self.configured = snapshot


@dataclass
class DepositCap:
    """Upper bound on principal committed by the non-KYC cohort."""
    cap: int = 0

    def allowed(self, committed: int) -> int:
        """
        Remaining deposit room.

        Args:
            committed: Principal currently committed (non-KYC shares)

        Returns:
            cap - committed, floored at zero
        """
        return max(self.cap - committed, 0)

    def update(self, cap: int, committed: int) -> None:
        if cap <= 0:
            raise InvalidArgument("cap", "deposit cap must be positive", cap)
        if cap < committed:
            raise InvalidArgument(
                "cap", f"deposit cap below current commitments ({committed})", cap
            )
        self.cap = cap

    def snapshot(self) -> int:
        return self.cap

    def restore(self, snapshot: int) -> None:
        self.cap = snapshot
