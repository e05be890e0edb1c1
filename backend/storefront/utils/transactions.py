from typing import Dict, Iterable, List, Optional

from sqlalchemy import event
from sqlalchemy.orm import Session, selectinload

from storefront.db import WRITE_LOCK_OPTION
from storefront.models.cart_item import CartItem
from storefront.models.inventory import Inventory

# set on session.info while the open transaction holds flushed or bulk writes
UNCOMMITTED_WRITES = "storefront_uncommitted_writes"


@event.listens_for(Session, "after_flush")
def _mark_flushed_writes(session, flush_context):
    session.info[UNCOMMITTED_WRITES] = True


@event.listens_for(Session, "do_orm_execute")
def _mark_bulk_writes(orm_execute_state):
    if orm_execute_state.is_insert or orm_execute_state.is_update or orm_execute_state.is_delete:
        orm_execute_state.session.info[UNCOMMITTED_WRITES] = True


@event.listens_for(Session, "after_transaction_end")
def _clear_writes(session, transaction):
    if transaction.parent is None:
        session.info.pop(UNCOMMITTED_WRITES, None)


class LockingTransaction:
    """
    A transaction scope that holds the write lock from its first statement.
    Every service operation that writes runs inside one.

    Usage:
        with LockingTransaction(db) as tx:
            items = tx.lock_cart_items(cart.id)
            ... DB work ...
            tx.commit()

    Leaving the block without calling commit() (early return or exception)
    rolls everything back. The lock_* reads emit SELECT ... FOR UPDATE; on
    SQLite the engine takes the write lock at BEGIN instead (see storefront.db).

    The scope always runs in a fresh top-level transaction so locked reads
    never see a snapshot taken before the lock was acquired. A transaction
    left open by earlier plain reads is committed on entry. A session holding
    writes that are not committed yet, flushed or not, is refused with
    RuntimeError so those writes are never committed on the caller's behalf.
    """

    def __init__(self, session: Session):
        self.session = session
        self._tx = None
        self.committed = False

    def __enter__(self) -> "LockingTransaction":
        s = self.session
        if s.new or s.dirty or s.deleted or s.info.get(UNCOMMITTED_WRITES):
            raise RuntimeError("Session holds uncommitted writes; commit or roll them back first")
        if s.in_transaction():
            s.commit()
        self._tx = s.begin()
        # procure the connection now so BEGIN carries the write-lock request
        s.connection(execution_options={WRITE_LOCK_OPTION: True})
        return self

    def __exit__(self, exc_type, exc, tb):
        if not self.committed:
            self.session.rollback()
        return False

    def commit(self):
        self._tx.commit()
        self.committed = True

    # lock-qualified reads

    def lock_cart_items(self, cart_id: int) -> List[CartItem]:
        """All lines of a cart, locked, with their current product loaded."""
        return (
            self.session.query(CartItem)
            .options(selectinload(CartItem.product))
            .filter(CartItem.cart_id == cart_id)
            .order_by(CartItem.id)
            .with_for_update(of=CartItem)
            .populate_existing()
            .all()
        )

    def lock_inventories(self, product_ids: Iterable[int]) -> Dict[int, Inventory]:
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        # fixed lock order keeps two checkouts over the same products from deadlocking
        rows = (
            self.session.query(Inventory)
            .filter(Inventory.product_id.in_(ids))
            .order_by(Inventory.product_id)
            .with_for_update()
            .populate_existing()
            .all()
        )
        return {inv.product_id: inv for inv in rows}

    def lock_inventory(self, product_id: int) -> Optional[Inventory]:
        return (
            self.session.query(Inventory)
            .filter(Inventory.product_id == product_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
