from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

Handler = Callable[[AsyncSession, Any], Awaitable[Any]]


@dataclass
class HookOutcome:
    name: str
    ok: bool
    result: Any = None
    error: Optional[str] = None


class HookRegistry:
    """
    Post-commit side effects keyed by topic.

    publish() runs after the durable write has been committed. Each handler gets
    its own commit; a failing handler is rolled back, logged and reported in its
    HookOutcome, and the remaining handlers still run.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Tuple[str, Handler]]] = defaultdict(list)

    def subscribe(self, topic: str, name: str, handler: Handler) -> None:
        subs = [(n, h) for n, h in self._subscribers[topic] if n != name]
        subs.append((name, handler))
        self._subscribers[topic] = subs

    def unsubscribe(self, topic: str, name: str) -> None:
        self._subscribers[topic] = [(n, h) for n, h in self._subscribers[topic] if n != name]

    def handlers(self, topic: str) -> List[str]:
        return [n for n, _ in self._subscribers[topic]]

    async def publish(self, db: AsyncSession, topic: str, fact: Any) -> List[HookOutcome]:
        outcomes: List[HookOutcome] = []
        for name, handler in list(self._subscribers[topic]):
            try:
                result = await handler(db, fact)
                await db.commit()
                outcomes.append(HookOutcome(name=name, ok=True, result=result))
            except Exception as e:
                logger.exception("[hooks] %s/%s failed", topic, name)
                try:
                    await db.rollback()
                except Exception:
                    logger.exception("[hooks] rollback after %s/%s failed", topic, name)
                outcomes.append(HookOutcome(name=name, ok=False, error=str(e) or e.__class__.__name__))
        return outcomes


hooks = HookRegistry()
