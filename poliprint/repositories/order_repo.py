# poliprint/repositories/order_repo.py
import uuid

from sqlmodel import Session, select

from poliprint.models.order import Order, OrderItem, PaymentTransition


class OrderRepository:
    """
    Data access layer for orders, order_items and payment_transitions.

    NOTE:
      - No commits here; checkout and payment application are multi-step
        transactions. The service is responsible for calling session.commit().
    """

    # ---- Orders ----

    def list_all(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        status: str | None = None,
    ) -> list[Order]:
        stmt = select(Order)
        if status:
            stmt = stmt.where(Order.status == status)
        stmt = stmt.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        return list(session.exec(stmt).all())

    def get_by_reference(self, session: Session, reference: str) -> Order | None:
        stmt = select(Order).where(Order.reference == reference)
        return session.exec(stmt).first()

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    def update_order(self, session: Session, order: Order) -> Order:
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = select(OrderItem).where(OrderItem.order_id == order_id)
        return list(session.exec(stmt).all())

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        for item in items:
            session.refresh(item)
        return items

    # ---- Payment transitions ----

    def get_transition(
        self,
        session: Session,
        order_reference: str,
        status: str,
    ) -> PaymentTransition | None:
        stmt = select(PaymentTransition).where(
            PaymentTransition.order_reference == order_reference,
            PaymentTransition.status == status,
        )
        return session.exec(stmt).first()

    def list_transitions(
        self,
        session: Session,
        order_reference: str,
    ) -> list[PaymentTransition]:
        stmt = (
            select(PaymentTransition)
            .where(PaymentTransition.order_reference == order_reference)
            .order_by(PaymentTransition.created_at)
        )
        return list(session.exec(stmt).all())

    def add_transition(
        self,
        session: Session,
        transition: PaymentTransition,
    ) -> PaymentTransition:
        session.add(transition)
        session.flush()
        return transition
