"""Memory manager for creating, reviewing and decaying memories."""

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime

from ..errors import NotFoundError, ValidationError
from ..logging import JSONLLogger, get_logger
from ..models import Memory, MemoryType, new_id, utcnow
from ..store import Store
from .decay import calculate_strength, default_decay_rate

logger = logging.getLogger(__name__)

MAX_LEVEL = 3


class MemoryManager:
    """Orchestrates memory operations on top of the store.

    Reads never recompute strengths; ``update_all_strengths`` is the batch
    job that refreshes the cached ``current_strength`` of every memory.
    """

    def __init__(self, store: Store, event_log: JSONLLogger | None = None) -> None:
        """Initialize the manager with a store.

        Args:
            store: The Store for persistence.
            event_log: Structured event log; the global logger if None.
        """
        self.store = store
        self.event_log = event_log or get_logger()

    def create_memory(
        self,
        content: str,
        *,
        type: MemoryType | str = MemoryType.INTERACTION,
        level: int = 0,
        session_id: str | None = None,
        parent_id: str | None = None,
        source_message_ids: Iterable[str] = (),
        tags: Iterable[str] = (),
        decay_rate: float | None = None,
        initial_strength: float = 1.0,
        summary: str | None = None,
    ) -> str:
        """Create a memory from content.

        Args:
            content: The memory text.
            type: Memory type; selects the default decay rate.
            level: 0=raw, 1=episode, 2=theme, 3=archetype.
            session_id: Source session, None for cross-session memories.
            parent_id: Higher-level memory this one feeds into.
            source_message_ids: Messages the memory was derived from.
            tags: Retrieval tags.
            decay_rate: Override for the per-type default.
            initial_strength: Starting strength between 0.0 and 1.0.
            summary: Condensed version for quick retrieval.

        Returns:
            The new memory id.
        """
        if not content or not content.strip():
            raise ValidationError("Memory content required")
        if not 0.0 <= initial_strength <= 1.0:
            raise ValidationError(f"Initial strength out of range: {initial_strength}")
        if not 0 <= level <= MAX_LEVEL:
            raise ValidationError(f"Memory level out of range: {level}")
        if decay_rate is not None and decay_rate < 0:
            raise ValidationError(f"Decay rate must be non-negative: {decay_rate}")

        try:
            memory_type = MemoryType(type)
        except ValueError as e:
            raise ValidationError(f"Invalid memory type: {type!r}") from e

        now = utcnow()
        memory = Memory(
            id=new_id(),
            type=memory_type,
            content=content,
            summary=summary,
            decay_rate=default_decay_rate(memory_type) if decay_rate is None else decay_rate,
            initial_strength=initial_strength,
            current_strength=initial_strength,
            created_at=now,
            last_recall=now,
            level=level,
            session_id=session_id,
            parent_id=parent_id,
            source_messages=frozenset(source_message_ids),
            tags=frozenset(tags),
        )

        with self.store.transaction():
            if session_id is not None and self.store.get("session", session_id) is None:
                raise NotFoundError("session", session_id)
            if parent_id is not None and self.store.get("memory", parent_id) is None:
                raise NotFoundError("memory", parent_id)
            self.store.put("memory", memory.to_record())

        self.event_log.log("memory_created", session_id=session_id, memory_id=memory.id, type=memory_type.value)
        return memory.id

    def get_memory(self, memory_id: str) -> Memory | None:
        row = self.store.get("memory", memory_id)
        return Memory.from_record(row) if row else None

    def require_memory(self, memory_id: str) -> Memory:
        memory = self.get_memory(memory_id)
        if memory is None:
            raise NotFoundError("memory", memory_id)
        return memory

    def get_ancestors(self, memory_id: str) -> list[str]:
        """Ids of the parent chain of a memory, nearest first."""
        ancestors: list[str] = []
        seen = {memory_id}
        current = self.require_memory(memory_id).parent_id
        while current is not None:
            if current in seen:
                raise ValidationError(f"Memory hierarchy cycle at {current}")
            seen.add(current)
            ancestors.append(current)
            parent = self.get_memory(current)
            current = parent.parent_id if parent else None
        return ancestors

    def set_parent(self, memory_id: str, parent_id: str | None) -> Memory:
        """Attach a memory to a higher-level parent.

        Raises:
            ValidationError: If the link would make the memory its own ancestor.
        """
        with self.store.transaction():
            memory = self.require_memory(memory_id)
            if parent_id is not None:
                self.require_memory(parent_id)
                if parent_id == memory_id or memory_id in self.get_ancestors(parent_id):
                    raise ValidationError(
                        f"Memory {memory_id} cannot be its own ancestor"
                    )
            updated = replace(memory, parent_id=parent_id)
            self.store.put("memory", updated.to_record())
        return updated

    def record_recall(self, memory_id: str, now: datetime | None = None) -> Memory:
        """Stamp the time a memory was last retrieved."""
        with self.store.transaction():
            updated = replace(self.require_memory(memory_id), last_recall=now or utcnow())
            self.store.put("memory", updated.to_record())
        return updated

    def mark_reviewed(self, memory_id: str, now: datetime | None = None) -> Memory:
        """Record a review, which restarts the memory's decay clock."""
        now = now or utcnow()
        with self.store.transaction():
            memory = self.require_memory(memory_id)
            reviewed = replace(memory, last_reviewed=now, review_count=memory.review_count + 1)
            updated = replace(reviewed, current_strength=calculate_strength(reviewed, now))
            self.store.put("memory", updated.to_record())
        self.event_log.log("memory_reviewed", memory_id=memory_id, review_count=updated.review_count)
        return updated

    def update_all_strengths(self, now: datetime | None = None) -> int:
        """Recalculate and persist the strength of every memory.

        Returns:
            Number of memories updated.
        """
        now = now or utcnow()
        with self.store.transaction():
            memories = [Memory.from_record(row) for row in self.store.query("memory")]
            records = [
                replace(m, current_strength=calculate_strength(m, now)).to_record()
                for m in memories
            ]
            count = self.store.put_many("memory", records)

        logger.debug("Updated strength of %d memories", count)
        self.event_log.log("memory_strengths_updated", count=count)
        return count

    def get_memories_needing_review(self, threshold: float) -> list[Memory]:
        """Memories whose cached strength is below threshold, weakest first."""
        rows = self.store.query(
            "memory",
            order_by="current_strength",
            predicate=lambda row: row["current_strength"] < threshold,
        )
        return [Memory.from_record(row) for row in rows]

    def get_memories_by_tag(self, tag: str) -> list[Memory]:
        memories = [Memory.from_record(row) for row in self.store.query("memory")]
        return [m for m in memories if tag in m.tags]

    def get_session_memories(self, session_id: str) -> list[Memory]:
        rows = self.store.query("memory", where={"session_id": session_id}, order_by="created_at")
        return [Memory.from_record(row) for row in rows]
