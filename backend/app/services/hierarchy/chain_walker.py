"""
Hierarchy Chain Walker

Walks from a writing agent up through its uplines to the root of the agency
tree. The walk is read-only and bounded: a revisited agent or more than
MAX_HIERARCHY_DEPTH hops is a configuration error, never an infinite loop.
"""
from __future__ import annotations
import logging
import os
from typing import Dict, List, Optional, Protocol

from sqlalchemy.orm import Session

from ...models.db_models import AgentDB
from ...models.ssot import ChainLink, UplineHop
from ..errors import HierarchyCycle

logger = logging.getLogger(__name__)

MAX_HIERARCHY_DEPTH = int(os.getenv("MAX_HIERARCHY_DEPTH", "20"))


class UplineTraversal(Protocol):
    def upline_chain(self, agent_id: str) -> List[UplineHop]:
        ...


class DatabaseUplineTraversal:
    """
    Upline traversal backed by the agents table, one lookup per hop.

    Returns hops ordered from the agent itself to its root. An upline id
    that points at a missing agent ends the chain there.
    """

    def __init__(self, db: Session, max_depth: Optional[int] = None):
        self.db = db
        self.max_depth = MAX_HIERARCHY_DEPTH if max_depth is None else max_depth

    def upline_chain(self, agent_id: str) -> List[UplineHop]:
        hops: List[UplineHop] = []
        visited: List[str] = []
        current_id: Optional[str] = agent_id

        while current_id:
            if current_id in visited:
                raise HierarchyCycle(agent_id, visited + [current_id])
            if len(hops) >= self.max_depth:
                raise HierarchyCycle(agent_id, visited, reason="depth")

            upline_id = self.db.query(AgentDB.upline_id).filter(AgentDB.id == current_id).scalar()
            if upline_id is None and not self._exists(current_id):
                if not hops:
                    return []
                logger.warning(f"Upline {current_id} of agent {hops[-1].agent_id} does not exist")
                break

            visited.append(current_id)
            hops.append(UplineHop(agent_id=current_id, upline_id=upline_id))
            current_id = upline_id

        return hops

    def _exists(self, agent_id: str) -> bool:
        return self.db.query(AgentDB.id).filter(AgentDB.id == agent_id).first() is not None


class HierarchyChainWalker:
    """Turns a traversal into leveled chain links with position details."""

    def __init__(self, db: Session, traversal: Optional[UplineTraversal] = None):
        self.db = db
        self.traversal = traversal or DatabaseUplineTraversal(db)

    def walk(self, agent_id: str) -> List[ChainLink]:
        """
        Chain for `agent_id`; level 0 is the agent itself.

        Raises:
            HierarchyCycle: if the upline graph loops or is too deep
        """
        hops = self.traversal.upline_chain(agent_id)
        if not hops:
            return []

        agents: Dict[str, AgentDB] = {
            a.id: a for a in self.db.query(AgentDB).filter(AgentDB.id.in_([h.agent_id for h in hops])).all()
        }

        chain = []
        for level, hop in enumerate(hops):
            agent = agents.get(hop.agent_id)
            chain.append(ChainLink(
                agent_id=hop.agent_id,
                level=level,
                upline_id=hop.upline_id,
                position_id=agent.position_id if agent else None,
                name=agent.full_name if agent else hop.agent_id,
            ))

        logger.debug(f"Walked {len(chain)} agents up from {agent_id}")
        return chain
