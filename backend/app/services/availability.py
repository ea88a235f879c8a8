"""
房间可用性解析
请求区间与已有有效预订冲突时，向后搜索同等时长的下一个空闲区间

区间均为半开区间 [check_in, check_out)
"""
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, Protocol, Sequence
import logging
import threading

logger = logging.getLogger(__name__)

# 搜索轮数上限
DEFAULT_MAX_ROUNDS = 50


class HasCheckOut(Protocol):
    check_out: datetime


# (room_id, check_in, check_out) -> 与该区间重叠的有效预订
OverlapQuery = Callable[[Any, datetime, datetime], Sequence[HasCheckOut]]


@dataclass(frozen=True)
class Resolution:
    """
    解析结果

    Attributes:
        check_in / check_out: 最终区间
        rounds: 执行的查询轮数
        shifted: 区间是否被顺延
        exhausted: 达到轮数上限，最终区间未经复查（尽力而为）
    """
    check_in: datetime
    check_out: datetime
    rounds: int = 0
    shifted: bool = False
    exhausted: bool = False


def intervals_overlap(a_start: datetime, a_end: datetime,
                      b_start: datetime, b_end: datetime) -> bool:
    """[a_start, a_end) 与 [b_start, b_end) 是否重叠"""
    return a_start < b_end and a_end > b_start


def resolve_availability(room_id: Any, check_in: datetime, check_out: datetime,
                         find_overlapping: OverlapQuery,
                         max_rounds: int = DEFAULT_MAX_ROUNDS) -> Resolution:
    """
    解析最终入住区间

    1. 请求区间空闲：原样返回
    2. 否则每轮取重叠预订中最晚的 check_out 作为新起点，保持时长不变
    3. 每轮重新查询（冲突集合随候选区间移动而变化）
    4. 达到轮数上限时返回最后一个候选区间，不视为错误
    """
    duration = check_out - check_in
    if duration.total_seconds() <= 0:
        return Resolution(check_in=check_in, check_out=check_out)

    candidate_in, candidate_out = check_in, check_out

    for round_no in range(max_rounds):
        overlaps = find_overlapping(room_id, candidate_in, candidate_out)
        if not overlaps:
            if round_no > 0:
                logger.info(
                    f"Room {room_id}: shifted {check_in.isoformat()} -> "
                    f"{candidate_in.isoformat()} after {round_no} rounds"
                )
            return Resolution(
                check_in=candidate_in,
                check_out=candidate_out,
                rounds=round_no + 1,
                shifted=round_no > 0,
            )

        latest_check_out = max(b.check_out for b in overlaps)
        candidate_in = latest_check_out
        candidate_out = latest_check_out + duration

    logger.warning(
        f"Room {room_id}: availability search hit the {max_rounds}-round cap, "
        f"returning {candidate_in.isoformat()} unchecked"
    )
    return Resolution(
        check_in=candidate_in,
        check_out=candidate_out,
        rounds=max_rounds,
        shifted=True,
        exhausted=True,
    )


class RoomLockRegistry:
    """
    按房间的进程内互斥锁
    串行化同一房间的 "搜索空闲区间 -> 写入" 过程
    """

    def __init__(self):
        self._locks: Dict[Any, threading.Lock] = {}
        self._guard = threading.Lock()

    def _get(self, room_id: Any) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(room_id)
            if lock is None:
                lock = self._locks[room_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, room_id: Any) -> Iterator[None]:
        lock = self._get(room_id)
        with lock:
            yield


room_locks = RoomLockRegistry()
